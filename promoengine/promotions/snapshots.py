"""
promoengine/promotions/snapshots.py
-----------------------------------
Turns the caller's cart lines into per-call pricing snapshots and the
mutable capacity ledger the engine consumes.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Dict, Iterable, Tuple

from promoengine.promotions.models import CartLine, ItemSnapshot, ItemState
from promoengine.promotions.money import ZERO, round2


def unit_price_of(line: CartLine) -> Decimal:
    """Base price plus every modifier surcharge."""
    return line.unit_price + sum((m.price for m in line.modifiers), start=ZERO)


def build_snapshots(
    lines: Iterable[CartLine],
) -> Tuple[Dict[str, ItemSnapshot], Dict[str, ItemState]]:
    """
    Build the two parallel maps keyed by line id, in cart order.

    A zero-quantity or zero-price line yields a zero base total and is
    simply inert for the rest of the evaluation.
    """
    snapshots: Dict[str, ItemSnapshot] = {}
    states:    Dict[str, ItemState]    = {}

    for line in lines:
        unit_price = unit_price_of(line)
        gross      = unit_price * Decimal(line.quantity)
        base_total = round2(max(gross - line.discount, ZERO))

        snapshots[line.id] = ItemSnapshot(
            id=line.id,
            product_id=line.product_id,
            name=line.product_name,
            quantity=line.quantity,
            unit_price=unit_price,
            base_total=base_total,
        )
        states[line.id] = ItemState(remaining=base_total)

    return snapshots, states
