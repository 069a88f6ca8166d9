"""
promoengine/promotions/allocation.py
------------------------------------
Spreads one promotion's discount across several lines in proportion to
their remaining discountable value.

Guarantees:
  Σ allocations ≤ total discount, always
  Σ allocations = total discount whenever Σ capacities ≥ total discount
  no line receives more than its own capacity
"""
from __future__ import annotations
from decimal import Decimal
from typing import Dict, Sequence, Tuple

from promoengine.promotions.money import ZERO, round2


def distribute(total: Decimal, capacities: Sequence[Tuple[str, Decimal]]) -> Dict[str, Decimal]:
    """
    Allocate `total` over `(item_id, capacity)` pairs.

    Each line but the last gets round2(total × capacity / Σcapacity),
    clipped to its capacity and to what is still unallocated. The last
    line absorbs the exact leftover instead of its proportional share.
    A final pass pushes anything still unallocated (left over by the
    capacity clipping) into lines with spare room, in list order.

    Returns {item_id: amount} in input order; zero shares are omitted.
    """
    total = round2(total)
    if total <= ZERO or not capacities:
        return {}

    pool = sum((cap for _, cap in capacities), start=ZERO)
    if pool <= ZERO:
        return {}

    given: Dict[str, Decimal] = {}
    unallocated = total
    last = len(capacities) - 1

    for idx, (item_id, cap) in enumerate(capacities):
        if idx == last:
            share = unallocated
        else:
            share = round2(total * cap / pool)
        share = min(share, cap, unallocated)
        if share > ZERO:
            given[item_id] = share
            unallocated -= share

    # Remediation: capacity clipping can strand part of the total.
    for item_id, cap in capacities:
        if unallocated <= ZERO:
            break
        spare = cap - given.get(item_id, ZERO)
        if spare > ZERO:
            extra = min(spare, unallocated)
            given[item_id] = given.get(item_id, ZERO) + extra
            unallocated -= extra

    return {item_id: given[item_id] for item_id, _ in capacities if item_id in given}
