"""
promoengine/promotions/models.py
--------------------------------
Data model for promotion evaluation.

Inputs (authored elsewhere, never mutated by the engine):
  PromotionDefinition  → one rule, with a reward from the tagged union below
  Cart / CartLine      → the caller's cart snapshot
  EvaluationRequest    → promotions + cart + channel + now, as one value

Per-call working state (created and discarded inside one evaluation):
  ItemSnapshot         → immutable pricing view of one cart line
  ItemState            → mutable remaining discountable value of one line

Outputs:
  PromotionComputation → what one calculator proposes
  AppliedPromotion     → what the engine actually applied
  PromotionEvaluation  → the final result

Reward payloads are one frozen dataclass per kind:
  PercentageReward → {"percentage": 10, "max_discount": 50}
  FixedReward      → {"amount": 5}
  BuyXGetYReward   → {"buy_quantity": 2, "get_quantity": 1}
  BundleReward     → {"bundle_price": 12, "required_product_ids": [...], "min_items": 2}
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar, Dict, Tuple, Union

from promoengine.promotions.money import ZERO


REWARD_TYPES = [
    ('percentage', '% Off Eligible Items'),
    ('fixed',      'Fixed Amount Off'),
    ('bxgy',       'Buy X Get Y Free'),
    ('bundle',     'Bundle Price'),
]
REWARD_TYPE_CHOICES = [r[0] for r in REWARD_TYPES]

SCOPES      = ('item', 'cart')
ORDER_TYPES = ('dine-in', 'takeaway', 'delivery')
WEEKDAYS    = ('mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun')

ANY_CHANNEL = 'any'


# ── Rewards (tagged union) ────────────────────────────────────────

@dataclass(frozen=True)
class PercentageReward:
    kind: ClassVar[str] = 'percentage'

    percentage:   Decimal
    max_discount: Decimal | None = None


@dataclass(frozen=True)
class FixedReward:
    kind: ClassVar[str] = 'fixed'

    amount: Decimal


@dataclass(frozen=True)
class BuyXGetYReward:
    kind: ClassVar[str] = 'bxgy'

    buy_quantity: int
    get_quantity: int


@dataclass(frozen=True)
class BundleReward:
    kind: ClassVar[str] = 'bundle'

    bundle_price:         Decimal
    required_product_ids: Tuple[str, ...] = ()
    min_items:            int | None = None


Reward = Union[PercentageReward, FixedReward, BuyXGetYReward, BundleReward]


# ── Promotion definition ──────────────────────────────────────────

@dataclass(frozen=True)
class PromotionConstraints:
    min_quantity:         int | None = None
    min_spend:            Decimal | None = None
    product_ids:          Tuple[str, ...] = ()
    excluded_product_ids: Tuple[str, ...] = ()
    order_types:          Tuple[str, ...] = ()
    customer_ids:         Tuple[str, ...] = ()


Bound = Union[str, date, datetime, None]


@dataclass(frozen=True)
class PromotionDefinition:
    """A configurable discount rule."""
    id:               str
    name:             str
    reward:           Reward
    stackable:        bool = True
    scope:            str = 'item'
    priority:         int | None = None
    channels:         Tuple[str, ...] = ()
    starts_at:        Bound = None
    ends_at:          Bound = None
    days_of_week:     Tuple[str, ...] = ()
    daily_start:      str | None = None
    daily_end:        str | None = None
    max_applications: int | None = None
    constraints:      PromotionConstraints = field(default_factory=PromotionConstraints)

    @property
    def type(self) -> str:
        return self.reward.kind

    @property
    def type_label(self) -> str:
        return dict(REWARD_TYPES).get(self.type, self.type)


# ── Cart (caller input) ───────────────────────────────────────────

@dataclass(frozen=True)
class Modifier:
    name:  str
    price: Decimal = ZERO


@dataclass(frozen=True)
class CartLine:
    id:           str
    product_id:   str
    product_name: str
    quantity:     int
    unit_price:   Decimal
    modifiers:    Tuple[Modifier, ...] = ()
    discount:     Decimal = ZERO   # pre-existing line discount


@dataclass(frozen=True)
class CustomerRef:
    id:   str
    name: str | None = None


@dataclass(frozen=True)
class Cart:
    items:      Tuple[CartLine, ...] = ()
    order_type: str = 'dine-in'
    customer:   CustomerRef | None = None


@dataclass(frozen=True)
class EvaluationRequest:
    """Everything one evaluation needs, as parsed from a JSON payload."""
    promotions: Tuple[PromotionDefinition, ...]
    cart:       Cart
    channel:    str | None = None
    now:        datetime | None = None


# ── Per-call working state ────────────────────────────────────────

@dataclass(frozen=True)
class ItemSnapshot:
    id:           str
    product_id:   str
    name:         str
    quantity:     int
    unit_price:   Decimal   # base price plus modifier surcharges
    base_total:   Decimal   # max(unit_price × qty − line discount, 0)


@dataclass
class ItemState:
    """Remaining discountable value of one line; 0 ≤ remaining ≤ base_total."""
    remaining: Decimal

    def consume(self, amount: Decimal) -> Decimal:
        """Take up to `amount` off the remaining value; return what was taken."""
        taken = min(amount, self.remaining)
        if taken <= ZERO:
            return ZERO
        self.remaining -= taken
        return taken


# ── Results ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class BreakdownEntry:
    """One promotion's discount on one line, for receipts and audit."""
    promotion_id:   str
    promotion_name: str
    item_id:        str
    amount:         Decimal
    reason:         str

    def to_dict(self) -> dict:
        return {
            'promotion_id':   self.promotion_id,
            'promotion_name': self.promotion_name,
            'item_id':        self.item_id,
            'amount':         str(self.amount),
            'reason':         self.reason,
        }


@dataclass(frozen=True)
class PromotionComputation:
    total_savings: Decimal
    allocations:   Dict[str, Decimal]
    breakdown:     Tuple[BreakdownEntry, ...]
    reason:        str


@dataclass(frozen=True)
class AppliedPromotion:
    id:            str
    name:          str
    type:          str
    stackable:     bool
    total_savings: Decimal
    reason:        str
    breakdown:     Tuple[BreakdownEntry, ...] = ()

    def to_dict(self) -> dict:
        return {
            'id':            self.id,
            'name':          self.name,
            'type':          self.type,
            'stackable':     self.stackable,
            'total_savings': str(self.total_savings),
            'reason':        self.reason,
            'breakdown':     [e.to_dict() for e in self.breakdown],
        }


@dataclass(frozen=True)
class SkippedPromotion:
    id:     str
    name:   str
    reason: str   # channel | order_type | customer | schedule | no_eligible_items | not_applicable


@dataclass(frozen=True)
class PromotionEvaluation:
    """Result of evaluating a promotion catalog against one cart."""
    applied_promotions: Tuple[AppliedPromotion, ...] = ()
    total_savings:      Decimal = ZERO
    item_adjustments:   Dict[str, Decimal] = field(default_factory=dict)
    item_breakdowns:    Dict[str, Tuple[BreakdownEntry, ...]] = field(default_factory=dict)
    skipped:            Tuple[SkippedPromotion, ...] = ()

    def to_dict(self) -> dict:
        """JSON-safe form; money is rendered as strings to avoid float drift."""
        return {
            'applied_promotions': [p.to_dict() for p in self.applied_promotions],
            'total_savings':      str(self.total_savings),
            'item_adjustments':   {k: str(v) for k, v in self.item_adjustments.items()},
            'item_breakdowns':    {
                k: [e.to_dict() for e in entries]
                for k, entries in self.item_breakdowns.items()
            },
            'skipped': [
                {'id': s.id, 'name': s.name, 'reason': s.reason} for s in self.skipped
            ],
        }

