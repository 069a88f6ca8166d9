"""
promoengine/promotions/validators.py
------------------------------------
Ingestion-side parsing for evaluation payloads (HTTP body or CLI file).

Turns raw JSON dicts into model objects and collects problems as
{field_path: error_message}. An empty dict means the payload is valid.
Malformed input is rejected here so the engine never has to reason
about it.

Payload shape:
{
    "promotions": [ {"id", "name", "type", "reward": {...}, ...}, ... ],
    "cart": {
        "order_type": "dine-in",
        "customer":   {"id": "c-1", "name": "..."} | null,
        "items": [ {"id", "product": {"id", "name"}, "quantity",
                    "unit_price", "discount", "modifiers": [...]}, ... ]
    },
    "channel": "pos",                       ← optional
    "now":     "2025-01-10T12:00:00"        ← optional
}
"""
from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Tuple

from promoengine.promotions.models import (
    ORDER_TYPES, REWARD_TYPE_CHOICES, SCOPES, BundleReward, BuyXGetYReward, Cart, CartLine,
    CustomerRef, EvaluationRequest, FixedReward, Modifier, PercentageReward,
    PromotionConstraints, PromotionDefinition,
)
from promoengine.promotions.money import ZERO

# Amounts and counts at or above this are rejected; keeps cent rounding
# inside Decimal's default 28-digit precision.
MAX_MAGNITUDE = Decimal(10) ** 12


class FieldError(ValueError):
    """A single invalid field; `field` is relative to the object being parsed."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field   = field
        self.message = message


# ── Field readers ─────────────────────────────────────────────────

def _require(data: dict, key: str):
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise FieldError(key, f'{key} is required.')
    return value


def _text(data: dict, key: str, default: str | None = None) -> str | None:
    value = data.get(key, default)
    if value is None:
        return None
    return str(value).strip()


def _decimal(data: dict, key: str, *, required: bool = False, default=None,
             positive: bool = False) -> Decimal | None:
    raw = _require(data, key) if required else data.get(key, default)
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise FieldError(key, f'{key} must be a valid number.')
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise FieldError(key, f'{key} must be a valid number.') from None
    if not value.is_finite():
        raise FieldError(key, f'{key} must be a valid number.')
    if abs(value) >= MAX_MAGNITUDE:
        raise FieldError(key, f'{key} is too large.')
    if value < 0:
        raise FieldError(key, f'{key} cannot be negative.')
    if positive and value == 0:
        raise FieldError(key, f'{key} must be greater than zero.')
    return value


def _int(data: dict, key: str, *, required: bool = False, default=None,
         positive: bool = False, allow_negative: bool = False) -> int | None:
    raw = _require(data, key) if required else data.get(key, default)
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise FieldError(key, f'{key} must be a whole number.')
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise FieldError(key, f'{key} must be a whole number.') from None
    if abs(value) >= MAX_MAGNITUDE:
        raise FieldError(key, f'{key} is too large.')
    if value < 0 and not allow_negative:
        raise FieldError(key, f'{key} cannot be negative.')
    if positive and value == 0:
        raise FieldError(key, f'{key} must be greater than zero.')
    return value


def _str_list(data: dict, key: str) -> Tuple[str, ...]:
    raw = data.get(key)
    if raw is None:
        return ()
    if isinstance(raw, str) or not isinstance(raw, (list, tuple)):
        raise FieldError(key, f'{key} must be a list.')
    return tuple(str(v).strip() for v in raw if str(v).strip())


def _dict(data: dict, key: str, *, required: bool = False) -> dict:
    raw = _require(data, key) if required else data.get(key)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise FieldError(key, f'{key} must be an object.')
    return raw


def _nested(prefix: str, exc: FieldError) -> FieldError:
    return FieldError(f'{prefix}.{exc.field}', exc.message)


# ── Promotions ────────────────────────────────────────────────────

def _parse_reward(reward_type: str, data: dict):
    if reward_type == 'percentage':
        percentage = _decimal(data, 'percentage', required=True, positive=True)
        if percentage > 100:
            raise FieldError('percentage', 'percentage cannot exceed 100.')
        return PercentageReward(
            percentage=percentage,
            max_discount=_decimal(data, 'max_discount'),
        )

    elif reward_type == 'fixed':
        return FixedReward(amount=_decimal(data, 'amount', required=True, positive=True))

    elif reward_type == 'bxgy':
        return BuyXGetYReward(
            buy_quantity=_int(data, 'buy_quantity', required=True, positive=True),
            get_quantity=_int(data, 'get_quantity', required=True, positive=True),
        )

    elif reward_type == 'bundle':
        return BundleReward(
            bundle_price=_decimal(data, 'bundle_price', required=True),
            required_product_ids=_str_list(data, 'required_product_ids'),
            min_items=_int(data, 'min_items'),
        )

    raise FieldError('type', f"type must be one of: {', '.join(REWARD_TYPE_CHOICES)}.")


def _parse_constraints(data: dict) -> PromotionConstraints:
    order_types = _str_list(data, 'order_types')
    unknown = [t for t in order_types if t not in ORDER_TYPES]
    if unknown:
        raise FieldError('order_types', f"Unknown order type(s): {', '.join(unknown)}.")

    return PromotionConstraints(
        min_quantity=_int(data, 'min_quantity'),
        min_spend=_decimal(data, 'min_spend'),
        product_ids=_str_list(data, 'product_ids'),
        excluded_product_ids=_str_list(data, 'excluded_product_ids'),
        order_types=order_types,
        customer_ids=_str_list(data, 'customer_ids'),
    )


def parse_promotion(data: dict) -> PromotionDefinition:
    """
    Build a PromotionDefinition from a raw dict. Raises FieldError.

    Schedule bounds are passed through untouched: an unreadable bound
    makes the promotion inactive at evaluation time instead of failing
    the whole payload.
    """
    if not isinstance(data, dict):
        raise FieldError('promotion', 'Each promotion must be an object.')

    reward_type = str(_require(data, 'type')).strip().lower()
    try:
        reward = _parse_reward(reward_type, _dict(data, 'reward', required=True))
    except FieldError as exc:
        raise (exc if exc.field == 'type' else _nested('reward', exc)) from None

    try:
        constraints = _parse_constraints(_dict(data, 'constraints'))
    except FieldError as exc:
        raise _nested('constraints', exc) from None

    scope = (_text(data, 'scope', 'item') or 'item').lower()
    if scope not in SCOPES:
        raise FieldError('scope', f"scope must be one of: {', '.join(SCOPES)}.")

    stackable = data.get('stackable')
    if stackable is None:
        stackable = True
    elif not isinstance(stackable, bool):
        raise FieldError('stackable', 'stackable must be true or false.')

    return PromotionDefinition(
        id=str(_require(data, 'id')).strip(),
        name=str(_require(data, 'name')).strip(),
        reward=reward,
        stackable=stackable,
        scope=scope,
        priority=_int(data, 'priority', allow_negative=True),
        channels=tuple(c.lower() for c in _str_list(data, 'channels')),
        starts_at=data.get('starts_at'),
        ends_at=data.get('ends_at'),
        days_of_week=_str_list(data, 'days_of_week'),
        daily_start=_text(data, 'daily_start'),
        daily_end=_text(data, 'daily_end'),
        max_applications=_int(data, 'max_applications'),
        constraints=constraints,
    )


# ── Cart ──────────────────────────────────────────────────────────

def _parse_modifier(data: dict) -> Modifier:
    if not isinstance(data, dict):
        raise FieldError('modifier', 'Each modifier must be an object.')
    return Modifier(name=_text(data, 'name', '') or '', price=_decimal(data, 'price', default=0))


def parse_cart_line(data: dict) -> CartLine:
    """Accepts either "product": {"id", "name"} or flat "product_id"/"product_name"."""
    if not isinstance(data, dict):
        raise FieldError('item', 'Each cart item must be an object.')

    product = _dict(data, 'product')
    product_id   = product.get('id', data.get('product_id'))
    product_name = product.get('name', data.get('product_name', data.get('name', '')))
    if product_id is None or not str(product_id).strip():
        raise FieldError('product.id', 'product id is required.')

    raw_modifiers = data.get('modifiers') or []
    if not isinstance(raw_modifiers, list):
        raise FieldError('modifiers', 'modifiers must be a list.')
    modifiers = []
    for idx, raw in enumerate(raw_modifiers):
        try:
            modifiers.append(_parse_modifier(raw))
        except FieldError as exc:
            raise _nested(f'modifiers[{idx}]', exc) from None

    return CartLine(
        id=str(_require(data, 'id')).strip(),
        product_id=str(product_id).strip(),
        product_name=str(product_name or '').strip(),
        quantity=_int(data, 'quantity', required=True),
        unit_price=_decimal(data, 'unit_price', required=True),
        modifiers=tuple(modifiers),
        discount=_decimal(data, 'discount', default=0) or ZERO,
    )


def parse_cart(data: dict, errors: dict) -> Cart:
    order_type = (_text(data, 'order_type', 'dine-in') or 'dine-in').lower()
    if order_type not in ORDER_TYPES:
        errors['cart.order_type'] = f"order_type must be one of: {', '.join(ORDER_TYPES)}."

    customer = None
    raw_customer = data.get('customer')
    if raw_customer is not None:
        if not isinstance(raw_customer, dict) or raw_customer.get('id') in (None, ''):
            errors['cart.customer.id'] = 'customer id is required when a customer is given.'
        else:
            customer = CustomerRef(id=str(raw_customer['id']).strip(), name=raw_customer.get('name'))

    raw_items = data.get('items') or []
    if not isinstance(raw_items, list):
        errors['cart.items'] = 'items must be a list.'
        raw_items = []

    lines, seen = [], set()
    for idx, raw in enumerate(raw_items):
        try:
            line = parse_cart_line(raw)
        except FieldError as exc:
            errors[f'cart.items[{idx}].{exc.field}'] = exc.message
            continue
        if line.id in seen:
            errors[f'cart.items[{idx}].id'] = f'Duplicate cart item id {line.id!r}.'
            continue
        seen.add(line.id)
        lines.append(line)

    return Cart(items=tuple(lines), order_type=order_type, customer=customer)


# ── Whole payload ─────────────────────────────────────────────────

def validate_evaluation_payload(payload) -> Tuple[EvaluationRequest | None, dict]:
    """
    Validate a raw evaluation payload.

    Returns:
        (EvaluationRequest, {}) when valid,
        (None, {field_path: error_message}) otherwise.
    """
    if not isinstance(payload, dict):
        return None, {'payload': 'Request body must be a JSON object.'}

    errors = {}

    raw_promotions = payload.get('promotions') or []
    if not isinstance(raw_promotions, list):
        errors['promotions'] = 'promotions must be a list.'
        raw_promotions = []

    promotions, seen = [], set()
    for idx, raw in enumerate(raw_promotions):
        try:
            promo = parse_promotion(raw)
        except FieldError as exc:
            errors[f'promotions[{idx}].{exc.field}'] = exc.message
            continue
        if promo.id in seen:
            errors[f'promotions[{idx}].id'] = f'Duplicate promotion id {promo.id!r}.'
            continue
        seen.add(promo.id)
        promotions.append(promo)

    raw_cart = payload.get('cart')
    if not isinstance(raw_cart, dict):
        errors['cart'] = 'cart is required and must be an object.'
        raw_cart = {}
    cart = parse_cart(raw_cart, errors)

    channel = payload.get('channel')
    if channel is not None:
        channel = str(channel).strip().lower() or None

    now = payload.get('now')
    if now is not None:
        try:
            now = datetime.fromisoformat(str(now).strip())
        except ValueError:
            errors['now'] = 'now must be an ISO-8601 timestamp.'
            now = None

    if errors:
        return None, errors

    return EvaluationRequest(
        promotions=tuple(promotions), cart=cart, channel=channel, now=now,
    ), {}
