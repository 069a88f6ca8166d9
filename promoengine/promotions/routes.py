"""
promoengine/promotions/routes.py
--------------------------------
JSON routes for evaluating a promotion catalog against a sample cart.
The engine itself stays pure; these routes only parse, evaluate and
serialise.
"""
from flask import current_app, jsonify, request

from promoengine.promotions import promotions
from promoengine.promotions.engine import evaluate_promotions
from promoengine.promotions.models import EvaluationRequest, REWARD_TYPES
from promoengine.promotions.validators import validate_evaluation_payload


# ── Helper ────────────────────────────────────────────────────────

def run_evaluation(req: EvaluationRequest, default_channel: str):
    """Evaluate a parsed request, falling back to the configured channel."""
    return evaluate_promotions(
        req.promotions,
        req.cart,
        channel=req.channel or default_channel,
        now=req.now,
    )


# ── Reward types ──────────────────────────────────────────────────

@promotions.route('/reward-types')
def reward_types():
    return jsonify([{'type': key, 'label': label} for key, label in REWARD_TYPES])


# ── Evaluate ──────────────────────────────────────────────────────

@promotions.route('/evaluate', methods=['POST'])
def evaluate():
    """
    Body: {"promotions": [...], "cart": {...}, "channel"?: str, "now"?: ISO-8601}
    200 → serialised PromotionEvaluation
    400 → {"errors": {field_path: message}}
    """
    payload = request.get_json(silent=True)
    req, errors = validate_evaluation_payload(payload)
    if errors:
        current_app.logger.info(f"Rejected evaluation payload: {len(errors)} error(s)")
        return jsonify({'errors': errors}), 400

    result = run_evaluation(req, current_app.config['PROMO_DEFAULT_CHANNEL'])
    current_app.logger.info(
        f"Evaluated {len(req.promotions)} promotion(s) against {len(req.cart.items)} item(s): "
        f"{len(result.applied_promotions)} applied, savings {result.total_savings}"
    )
    return jsonify(result.to_dict())
