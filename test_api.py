"""
test_api.py — Tests for payload validation, the HTTP routes and the CLI.
Run: pytest test_api.py -v
"""
import json

import pytest

from promoengine import create_app
from promoengine.promotions.models import BundleReward, PercentageReward
from promoengine.promotions.validators import validate_evaluation_payload


# ── Fixtures ──────────────────────────────────────────────────────

@pytest.fixture
def app():
    return create_app('testing')


@pytest.fixture
def client(app):
    return app.test_client()


def sample_payload(**overrides):
    payload = {
        'promotions': [
            {
                'id': 'percent-10', 'name': '10% Off Everything', 'type': 'percentage',
                'stackable': True, 'reward': {'percentage': 10}, 'channels': ['pos'],
            },
            {
                'id': 'cart-5', 'name': '$5 Off Orders $30+', 'type': 'fixed', 'scope': 'cart',
                'stackable': True, 'reward': {'amount': '5.00'},
                'constraints': {'min_spend': 30}, 'channels': ['pos'],
            },
        ],
        'cart': {
            'order_type': 'dine-in',
            'items': [
                {'id': 'item-a', 'product': {'id': 'prod-a', 'name': 'Pasta'},
                 'quantity': 1, 'unit_price': '20.00'},
                {'id': 'item-b', 'product': {'id': 'prod-b', 'name': 'Soup'},
                 'quantity': 1, 'unit_price': '15.00'},
            ],
        },
        'now': '2025-01-15T12:00:00',
    }
    payload.update(overrides)
    return payload


# ── 1. Validation ─────────────────────────────────────────────────

def test_valid_payload_is_parsed():
    req, errors = validate_evaluation_payload(sample_payload(channel='POS'))

    assert errors == {}
    assert req.channel == 'pos'
    assert isinstance(req.promotions[0].reward, PercentageReward)
    assert req.promotions[1].constraints.min_spend == 30
    assert req.cart.items[0].product_name == 'Pasta'
    assert req.now.year == 2025


def test_flat_product_fields_and_modifiers_are_accepted():
    payload = sample_payload()
    payload['cart']['items'] = [{
        'id': 'x', 'product_id': 'pizza', 'product_name': 'Pizza', 'quantity': 2,
        'unit_price': 10, 'discount': '1.50', 'modifiers': [{'name': 'olives', 'price': '0.75'}],
    }]
    req, errors = validate_evaluation_payload(payload)

    assert errors == {}
    line = req.cart.items[0]
    assert line.product_id == 'pizza'
    assert str(line.modifiers[0].price) == '0.75'
    assert str(line.discount) == '1.50'


def test_bundle_payload():
    payload = sample_payload(promotions=[{
        'id': 'combo', 'name': 'Combo', 'type': 'bundle',
        'reward': {'bundle_price': 12, 'required_product_ids': ['prod-a', 'prod-b'], 'min_items': 2},
    }])
    req, errors = validate_evaluation_payload(payload)

    assert errors == {}
    assert req.promotions[0].reward == BundleReward(12, ('prod-a', 'prod-b'), 2)


def test_malformed_input_is_rejected_with_field_paths():
    payload = sample_payload()
    payload['promotions'][0]['reward'] = {'percentage': 'ten'}
    payload['promotions'][1]['type'] = 'mystery'
    payload['cart']['items'][0]['quantity'] = -1
    payload['cart']['items'][1]['unit_price'] = 'free'
    payload['cart']['order_type'] = 'drive-thru'
    payload['now'] = 'yesterday'

    req, errors = validate_evaluation_payload(payload)

    assert req is None
    assert errors == {
        'promotions[0].reward.percentage': 'percentage must be a valid number.',
        'promotions[1].type': 'type must be one of: percentage, fixed, bxgy, bundle.',
        'cart.items[0].quantity': 'quantity cannot be negative.',
        'cart.items[1].unit_price': 'unit_price must be a valid number.',
        'cart.order_type': 'order_type must be one of: dine-in, takeaway, delivery.',
        'now': 'now must be an ISO-8601 timestamp.',
    }


def test_duplicate_ids_and_missing_cart():
    payload = sample_payload(cart=None)
    payload['promotions'].append(dict(payload['promotions'][0]))

    req, errors = validate_evaluation_payload(payload)

    assert req is None
    assert errors['promotions[2].id'] == "Duplicate promotion id 'percent-10'."
    assert errors['cart'] == 'cart is required and must be an object.'


def test_unreadable_schedule_is_not_a_validation_error():
    payload = sample_payload()
    payload['promotions'][0]['starts_at'] = 'whenever'
    req, errors = validate_evaluation_payload(payload)
    assert errors == {}
    assert req.promotions[0].starts_at == 'whenever'


def test_oversized_numbers_are_rejected():
    payload = sample_payload()
    payload['cart']['items'][0]['unit_price'] = '1e30'
    payload['cart']['items'][1]['quantity'] = 10 ** 15
    req, errors = validate_evaluation_payload(payload)

    assert req is None
    assert errors == {
        'cart.items[0].unit_price': 'unit_price is too large.',
        'cart.items[1].quantity': 'quantity is too large.',
    }


@pytest.mark.parametrize('value', ['false', 'no', 0, 1])
def test_stackable_must_be_a_boolean(value):
    payload = sample_payload()
    payload['promotions'][0]['stackable'] = value
    req, errors = validate_evaluation_payload(payload)

    assert req is None
    assert errors == {'promotions[0].stackable': 'stackable must be true or false.'}


def test_stackable_defaults_to_true_when_missing_or_null():
    payload = sample_payload()
    payload['promotions'][0]['stackable'] = None
    del payload['promotions'][1]['stackable']
    req, errors = validate_evaluation_payload(payload)

    assert errors == {}
    assert [p.stackable for p in req.promotions] == [True, True]


def test_priority_must_be_a_whole_number():
    payload = sample_payload()
    payload['promotions'][0]['priority'] = 2.9
    payload['promotions'][1]['priority'] = True
    req, errors = validate_evaluation_payload(payload)

    assert req is None
    assert errors == {
        'promotions[0].priority': 'priority must be a whole number.',
        'promotions[1].priority': 'priority must be a whole number.',
    }


def test_priority_accepts_negative_and_numeric_strings():
    payload = sample_payload()
    payload['promotions'][0]['priority'] = -1
    payload['promotions'][1]['priority'] = '3'
    req, errors = validate_evaluation_payload(payload)

    assert errors == {}
    assert [p.priority for p in req.promotions] == [-1, 3]


def test_non_object_payload():
    req, errors = validate_evaluation_payload(['not', 'an', 'object'])
    assert req is None
    assert 'payload' in errors


# ── 2. HTTP ───────────────────────────────────────────────────────

def test_evaluate_endpoint(client):
    resp = client.post('/promotions/evaluate', json=sample_payload())
    assert resp.status_code == 200

    data = resp.get_json()
    assert data['total_savings'] == '8.50'
    assert [p['id'] for p in data['applied_promotions']] == ['percent-10', 'cart-5']
    assert data['applied_promotions'][0]['reason'] == '10% Off Everything (10% off)'
    assert set(data['item_adjustments']) == {'item-a', 'item-b'}
    assert len(data['item_breakdowns']['item-a']) == 2


def test_evaluate_uses_configured_default_channel(client):
    payload = sample_payload()
    payload['promotions'][0]['channels'] = ['online']
    data = client.post('/promotions/evaluate', json=payload).get_json()

    assert [p['id'] for p in data['applied_promotions']] == ['cart-5']
    assert {'id': 'percent-10', 'name': '10% Off Everything', 'reason': 'channel'} in data['skipped']


def test_evaluate_rejects_bad_payload(client):
    payload = sample_payload()
    payload['cart']['items'][0]['quantity'] = -3
    resp = client.post('/promotions/evaluate', json=payload)

    assert resp.status_code == 400
    assert resp.get_json()['errors'] == {'cart.items[0].quantity': 'quantity cannot be negative.'}


def test_evaluate_rejects_oversized_price(client):
    payload = sample_payload()
    payload['cart']['items'][0]['unit_price'] = '1e30'
    resp = client.post('/promotions/evaluate', json=payload)

    assert resp.status_code == 400
    assert resp.get_json()['errors'] == {'cart.items[0].unit_price': 'unit_price is too large.'}


def test_configured_channel_overrides_engine_fallback():
    app = create_app('testing')
    app.config['PROMO_DEFAULT_CHANNEL'] = 'online'
    payload = sample_payload()
    payload['promotions'][0]['channels'] = ['online']
    data = app.test_client().post('/promotions/evaluate', json=payload).get_json()

    assert [p['id'] for p in data['applied_promotions']] == ['percent-10']
    assert {'id': 'cart-5', 'name': '$5 Off Orders $30+', 'reason': 'channel'} in data['skipped']


def test_evaluate_rejects_non_json(client):
    resp = client.post('/promotions/evaluate', data='nope', content_type='text/plain')
    assert resp.status_code == 400
    assert 'payload' in resp.get_json()['errors']


def test_empty_payload_evaluates_to_nothing(client):
    resp = client.post('/promotions/evaluate', json={'promotions': [], 'cart': {'items': []}})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['total_savings'] == '0.00'
    assert data['item_adjustments'] == {}
    assert data['item_breakdowns'] == {}


def test_reward_types_and_health(client):
    types = client.get('/promotions/reward-types').get_json()
    assert [t['type'] for t in types] == ['percentage', 'fixed', 'bxgy', 'bundle']
    assert client.get('/health').get_json() == {'status': 'ok'}


def test_unknown_route_returns_json_404(client):
    resp = client.get('/nowhere')
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'Not Found'


def test_wrong_method_returns_json_405(client):
    resp = client.get('/promotions/evaluate')
    assert resp.status_code == 405


# ── 3. CLI ────────────────────────────────────────────────────────

def test_cli_evaluate_cart(app, tmp_path):
    payload_file = tmp_path / 'cart.json'
    payload_file.write_text(json.dumps(sample_payload()))

    result = app.test_cli_runner().invoke(args=['evaluate-cart', str(payload_file)])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)['total_savings'] == '8.50'


def test_cli_channel_override(app, tmp_path):
    payload_file = tmp_path / 'cart.json'
    payload_file.write_text(json.dumps(sample_payload()))

    result = app.test_cli_runner().invoke(
        args=['evaluate-cart', str(payload_file), '--channel', 'kiosk'],
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)['total_savings'] == '0.00'


def test_cli_reports_validation_errors(app, tmp_path):
    payload = sample_payload()
    payload['cart']['items'][0]['unit_price'] = 'free'
    payload_file = tmp_path / 'cart.json'
    payload_file.write_text(json.dumps(payload))

    result = app.test_cli_runner().invoke(args=['evaluate-cart', str(payload_file)])

    assert result.exit_code != 0
    assert 'cart.items[0].unit_price' in result.output
