"""
promoengine/promotions/rewards.py
---------------------------------
Reward calculators, one per reward kind.

Each calculator receives the promotion, the ids of the lines it may
touch (already free of locked lines, lines outside the product filter
and lines with no capacity left), the snapshot map and the state map.
It returns a PromotionComputation, or None when the rule does not apply
or would save nothing. Calculators never mutate state.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from promoengine.promotions.allocation import distribute
from promoengine.promotions.models import (
    BreakdownEntry, BundleReward, BuyXGetYReward, FixedReward, ItemSnapshot, ItemState,
    PercentageReward, PromotionComputation, PromotionDefinition,
)
from promoengine.promotions.money import ZERO, format_money, money_sum, round2


Snapshots = Mapping[str, ItemSnapshot]
States    = Mapping[str, ItemState]
Calculator = Callable[
    [PromotionDefinition, Sequence[str], Snapshots, States],
    Optional[PromotionComputation],
]

HUNDRED = Decimal('100')


# ── Shared helpers ────────────────────────────────────────────────

def target_product_ids(promo: PromotionDefinition) -> Tuple[str, ...]:
    """Product ids a promotion is restricted to (empty → every product)."""
    reward = promo.reward
    if isinstance(reward, BundleReward) and reward.required_product_ids:
        return reward.required_product_ids
    return promo.constraints.product_ids


def _meets_minimums(promo: PromotionDefinition, ids: Sequence[str], snapshots: Snapshots) -> bool:
    """min_spend / min_quantity, measured on base totals, not remaining capacity."""
    constraints = promo.constraints
    if constraints.min_spend is not None:
        spend = money_sum(snapshots[i].base_total for i in ids)
        if spend < constraints.min_spend:
            return False
    if constraints.min_quantity is not None:
        quantity = sum(snapshots[i].quantity for i in ids)
        if quantity < constraints.min_quantity:
            return False
    return True


def _capacities(ids: Sequence[str], states: States) -> List[Tuple[str, Decimal]]:
    return [(i, states[i].remaining) for i in ids]


def _computation(
    promo: PromotionDefinition, allocations: Dict[str, Decimal], reason: str,
) -> PromotionComputation | None:
    allocations = {k: v for k, v in allocations.items() if v > ZERO}
    total = money_sum(allocations.values())
    if total <= ZERO:
        return None

    breakdown = tuple(
        BreakdownEntry(
            promotion_id=promo.id,
            promotion_name=promo.name,
            item_id=item_id,
            amount=amount,
            reason=reason,
        )
        for item_id, amount in allocations.items()
    )
    return PromotionComputation(
        total_savings=total, allocations=allocations, breakdown=breakdown, reason=reason,
    )


def _percent_label(value: Decimal) -> str:
    """Decimal('10') → '10', Decimal('12.50') → '12.5'."""
    return f'{value.normalize():f}'


# ── Percentage ────────────────────────────────────────────────────

def calculate_percentage(promo, ids, snapshots, states):
    """round2(Σ remaining × percentage / 100), optionally capped, prorated."""
    reward: PercentageReward = promo.reward
    if not ids or not _meets_minimums(promo, ids, snapshots):
        return None

    remaining = money_sum(states[i].remaining for i in ids)
    discount  = round2(remaining * reward.percentage / HUNDRED)
    if reward.max_discount is not None:
        discount = min(discount, round2(reward.max_discount))
    if discount <= ZERO:
        return None

    allocations = distribute(discount, _capacities(ids, states))
    reason = f'{promo.name} ({_percent_label(reward.percentage)}% off)'
    return _computation(promo, allocations, reason)


# ── Fixed amount ──────────────────────────────────────────────────

def calculate_fixed(promo, ids, snapshots, states):
    """Declared amount, capped at the remaining value of the eligible lines."""
    reward: FixedReward = promo.reward
    if not ids or not _meets_minimums(promo, ids, snapshots):
        return None

    remaining = money_sum(states[i].remaining for i in ids)
    discount  = round2(min(reward.amount, remaining))
    if discount <= ZERO:
        return None

    allocations = distribute(discount, _capacities(ids, states))
    reason = f'{promo.name} (-${format_money(reward.amount)})'
    return _computation(promo, allocations, reason)


# ── Buy X Get Y ───────────────────────────────────────────────────

def calculate_buy_x_get_y(promo, ids, snapshots, states):
    """
    Evaluated per line, never pooled across lines.
    Example: buy 2 get 1 → every 3 units of a line, 1 unit is free.
    """
    reward: BuyXGetYReward = promo.reward
    if not promo.constraints.product_ids:
        return None
    if reward.buy_quantity <= 0 or reward.get_quantity <= 0:
        return None
    if not ids or not _meets_minimums(promo, ids, snapshots):
        return None

    cycle = reward.buy_quantity + reward.get_quantity
    allocations: Dict[str, Decimal] = {}

    for item_id in ids:
        snap   = snapshots[item_id]
        groups = snap.quantity // cycle
        if promo.max_applications is not None:
            groups = min(groups, promo.max_applications)
        if groups <= 0:
            continue

        free_units = groups * reward.get_quantity
        discount   = round2(snap.unit_price * Decimal(free_units))
        allocations[item_id] = min(discount, states[item_id].remaining)

    reason = f'{promo.name} (Buy {reward.buy_quantity} Get {reward.get_quantity})'
    return _computation(promo, allocations, reason)


# ── Bundle ────────────────────────────────────────────────────────

def calculate_bundle(promo, ids, snapshots, states):
    """
    All-or-nothing: every required product needs a matching line. The
    first matching line per product represents it in the bundle.
    """
    reward: BundleReward = promo.reward
    required = list(dict.fromkeys(target_product_ids(promo)))
    if not required or not ids:
        return None

    members: List[str] = []
    for product_id in required:
        match = next((i for i in ids if snapshots[i].product_id == product_id), None)
        if match is None:
            return None
        members.append(match)

    if not _meets_minimums(promo, members, snapshots):
        return None
    if reward.min_items is not None:
        if sum(snapshots[i].quantity for i in members) < reward.min_items:
            return None

    bundle_count = min(snapshots[i].quantity for i in members)
    if promo.max_applications is not None:
        bundle_count = min(bundle_count, promo.max_applications)
    if bundle_count <= 0:
        return None

    bundle_value = sum((snapshots[i].unit_price for i in members), start=ZERO)
    per_bundle   = round2(bundle_value - reward.bundle_price)
    if per_bundle <= ZERO:
        return None

    discount    = round2(per_bundle * Decimal(bundle_count))
    allocations = distribute(discount, _capacities(members, states))
    return _computation(promo, allocations, f'{promo.name} (Bundle)')


# ── Dispatch ──────────────────────────────────────────────────────

CALCULATORS: Dict[type, Calculator] = {
    PercentageReward: calculate_percentage,
    FixedReward:      calculate_fixed,
    BuyXGetYReward:   calculate_buy_x_get_y,
    BundleReward:     calculate_bundle,
}


def calculate(promo: PromotionDefinition, ids: Sequence[str], snapshots: Snapshots,
              states: States) -> PromotionComputation | None:
    """Run the calculator matching the promotion's reward kind."""
    try:
        calculator = CALCULATORS[type(promo.reward)]
    except KeyError:
        raise TypeError(f'No calculator for reward {type(promo.reward).__name__}') from None
    return calculator(promo, ids, snapshots, states)
