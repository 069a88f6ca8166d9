"""
promoengine/promotions/eligibility.py
-------------------------------------
Context gates (channel, order type, customer, schedule) and the
deterministic ranking of the promotions that survive them.

Nothing here looks at cart contents; product filters, minimum spend and
quantity belong to the reward calculators.
"""
from __future__ import annotations
import logging
from datetime import date, datetime, time
from typing import Iterable, List, Tuple

from promoengine.promotions.models import (
    ANY_CHANNEL, WEEKDAYS, Bound, Cart, CustomerRef, PromotionDefinition, SkippedPromotion,
)

logger = logging.getLogger(__name__)

# Larger than any realistic explicit priority, so unprioritised rules sort last.
DEFAULT_PRIORITY = 10_000


# ── Gates ─────────────────────────────────────────────────────────

def channel_allowed(promo: PromotionDefinition, channel: str) -> bool:
    if not promo.channels:
        return True
    return ANY_CHANNEL in promo.channels or channel in promo.channels


def order_type_allowed(promo: PromotionDefinition, order_type: str) -> bool:
    allowed = promo.constraints.order_types
    return not allowed or order_type in allowed


def customer_allowed(promo: PromotionDefinition, customer: CustomerRef | None) -> bool:
    """An unknown customer fails whenever the rule names specific customers."""
    allowed = promo.constraints.customer_ids
    if not allowed:
        return True
    return customer is not None and customer.id in allowed


def parse_bound(value: Bound, *, end: bool = False) -> datetime | None:
    """
    Normalise a schedule bound to a datetime.

    Date-only bounds cover the whole day: a start bound begins at 00:00,
    an end bound lasts until 23:59:59.999999. Raises ValueError/TypeError
    for anything that cannot be read.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.max if end else time.min)
    if not isinstance(value, str):
        raise TypeError(f'Unsupported schedule bound: {value!r}')

    text = value.strip()
    try:
        day = date.fromisoformat(text)
    except ValueError:
        return datetime.fromisoformat(text)
    return datetime.combine(day, time.max if end else time.min)


def _align(bound: datetime, now: datetime) -> datetime:
    """Make `bound` comparable with `now` (naive bounds take now's zone)."""
    if bound.tzinfo is None and now.tzinfo is not None:
        return bound.replace(tzinfo=now.tzinfo)
    if bound.tzinfo is not None and now.tzinfo is None:
        return bound.astimezone().replace(tzinfo=None)
    return bound


def within_time_window(promo: PromotionDefinition, now: datetime) -> bool:
    """Inclusive [starts_at, ends_at] check. Unreadable bounds exclude the rule."""
    try:
        start = parse_bound(promo.starts_at)
        end   = parse_bound(promo.ends_at, end=True)
    except (ValueError, TypeError):
        logger.warning(f"Promotion {promo.id!r} has an unreadable schedule bound; treating it as inactive.")
        return False

    if start is not None and now < _align(start, now):
        return False
    if end is not None and now > _align(end, now):
        return False
    return True


def _parse_clock(value: str) -> time:
    return datetime.strptime(value.strip(), '%H:%M').time()


def within_recurring_schedule(promo: PromotionDefinition, now: datetime) -> bool:
    """Day-of-week and daily HH:MM window, both inclusive."""
    try:
        days = {d.strip().lower()[:3] for d in promo.days_of_week}
        if days - set(WEEKDAYS):
            raise ValueError(f'Unknown weekday in {promo.days_of_week!r}')
        opens  = _parse_clock(promo.daily_start) if promo.daily_start else time.min
        closes = _parse_clock(promo.daily_end)   if promo.daily_end   else time.max
    except (ValueError, TypeError, AttributeError):
        logger.warning(f"Promotion {promo.id!r} has an unreadable recurring schedule; treating it as inactive.")
        return False

    if days and WEEKDAYS[now.weekday()] not in days:
        return False

    clock = now.time().replace(second=0, microsecond=0, tzinfo=None)
    return opens <= clock <= closes


def ineligibility_reason(
    promo: PromotionDefinition, cart: Cart, channel: str, now: datetime,
) -> str | None:
    """Return the first failing gate's name, or None when every gate passes."""
    if not channel_allowed(promo, channel):
        return 'channel'
    if not order_type_allowed(promo, cart.order_type):
        return 'order_type'
    if not customer_allowed(promo, cart.customer):
        return 'customer'
    if not within_time_window(promo, now) or not within_recurring_schedule(promo, now):
        return 'schedule'
    return None


def filter_eligible(
    promotions: Iterable[PromotionDefinition], cart: Cart, channel: str, now: datetime,
) -> Tuple[List[PromotionDefinition], List[SkippedPromotion]]:
    """Split the catalog into candidates and gate rejections, keeping order."""
    candidates: List[PromotionDefinition] = []
    rejected:   List[SkippedPromotion]    = []

    for promo in promotions:
        reason = ineligibility_reason(promo, cart, channel, now)
        if reason is None:
            candidates.append(promo)
        else:
            rejected.append(SkippedPromotion(id=promo.id, name=promo.name, reason=reason))

    return candidates, rejected


# ── Ranking ───────────────────────────────────────────────────────

def rank_key(promo: PromotionDefinition) -> Tuple[int, int]:
    priority = promo.priority if promo.priority is not None else DEFAULT_PRIORITY
    return (priority, 1 if promo.stackable else 0)


def rank_promotions(promotions: Iterable[PromotionDefinition]) -> List[PromotionDefinition]:
    """
    Order candidates for evaluation:
    1. priority ascending (unset → DEFAULT_PRIORITY)
    2. non-stackable before stackable at equal priority
    3. declaration order (sorted() is stable)
    """
    return sorted(promotions, key=rank_key)
