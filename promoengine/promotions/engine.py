"""
promoengine/promotions/engine.py
--------------------------------
Pure-Python promotion evaluation engine.

Pipeline for one call:
  snapshots → context gates → ranking → for each ranked promotion:
  eligible lines → reward calculator → allocation → ledger update

Everything mutable (remaining capacity, locked lines, accumulators)
lives in locals of `evaluate_promotions`; inputs are never touched and
nothing survives the call, so concurrent evaluations need no locking.

Stacking rules:
1. Promotions are applied in rank order against the remaining value of
   each line, so a later promotion only sees what earlier ones left.
2. A non-stackable promotion locks every line it discounts; no later
   promotion in the same call may touch a locked line.
"""
from __future__ import annotations
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Set

from promoengine.promotions.eligibility import filter_eligible, rank_promotions
from promoengine.promotions.models import (
    AppliedPromotion, BreakdownEntry, Cart, ItemSnapshot, ItemState, PromotionDefinition,
    PromotionEvaluation, SkippedPromotion,
)
from promoengine.promotions.money import ZERO, money_sum
from promoengine.promotions.rewards import calculate, target_product_ids
from promoengine.promotions.snapshots import build_snapshots

logger = logging.getLogger(__name__)

# Fallback for direct callers; the app passes PROMO_DEFAULT_CHANNEL.
DEFAULT_CHANNEL = 'pos'


def eligible_item_ids(
    promo: PromotionDefinition,
    snapshots: Mapping[str, ItemSnapshot],
    states: Mapping[str, ItemState],
    locked: Set[str],
) -> List[str]:
    """Lines this promotion may touch, in cart order."""
    wanted   = set(target_product_ids(promo))
    excluded = set(promo.constraints.excluded_product_ids)

    ids = []
    for item_id, snap in snapshots.items():
        if item_id in locked:
            continue
        if wanted and snap.product_id not in wanted:
            continue
        if snap.product_id in excluded:
            continue
        if states[item_id].remaining <= ZERO:
            continue
        ids.append(item_id)
    return ids


def evaluate_promotions(
    promotions: Iterable[PromotionDefinition],
    cart: Cart,
    channel: str | None = None,
    now: datetime | None = None,
) -> PromotionEvaluation:
    """
    Evaluate a promotion catalog against one cart snapshot.

    Args:
        promotions: PromotionDefinitions in declaration order
        cart:       the caller's Cart (lines, order type, optional customer)
        channel:    current sales channel; DEFAULT_CHANNEL when omitted (the
                    routes and CLI pass the configured PROMO_DEFAULT_CHANNEL)
        now:        evaluation instant; the current time when omitted

    Returns a PromotionEvaluation. Never raises for rules that simply do
    not apply; those show up in `skipped`.
    """
    channel = channel or DEFAULT_CHANNEL
    now     = now or datetime.now()

    snapshots, states = build_snapshots(cart.items)
    candidates, skipped = filter_eligible(promotions, cart, channel, now)

    locked:      Set[str]                        = set()
    adjustments: Dict[str, Decimal]              = {}
    breakdowns:  Dict[str, List[BreakdownEntry]] = {}
    applied:     List[AppliedPromotion]          = []

    for promo in rank_promotions(candidates):
        ids = eligible_item_ids(promo, snapshots, states, locked)
        if not ids:
            skipped.append(SkippedPromotion(id=promo.id, name=promo.name, reason='no_eligible_items'))
            continue

        computation = calculate(promo, ids, snapshots, states)
        if computation is None or computation.total_savings <= ZERO:
            skipped.append(SkippedPromotion(id=promo.id, name=promo.name, reason='not_applicable'))
            continue

        entries: List[BreakdownEntry] = []
        for item_id, amount in computation.allocations.items():
            taken = states[item_id].consume(amount)
            if taken <= ZERO:
                continue

            adjustments[item_id] = adjustments.get(item_id, ZERO) + taken
            entry = BreakdownEntry(
                promotion_id=promo.id,
                promotion_name=promo.name,
                item_id=item_id,
                amount=taken,
                reason=computation.reason,
            )
            breakdowns.setdefault(item_id, []).append(entry)
            entries.append(entry)

            if not promo.stackable:
                locked.add(item_id)

        applied.append(AppliedPromotion(
            id=promo.id,
            name=promo.name,
            type=promo.type,
            stackable=promo.stackable,
            total_savings=money_sum(e.amount for e in entries),
            reason=computation.reason,
            breakdown=tuple(entries),
        ))

    total_savings = money_sum(p.total_savings for p in applied)
    logger.debug(
        f"Evaluated {len(snapshots)} line(s) against {len(candidates)} candidate promotion(s): "
        f"{len(applied)} applied, savings {total_savings}"
    )

    return PromotionEvaluation(
        applied_promotions=tuple(applied),
        total_savings=total_savings,
        item_adjustments=adjustments,
        item_breakdowns={k: tuple(v) for k, v in breakdowns.items()},
        skipped=tuple(skipped),
    )
