import json

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from config import config


def create_app(config_name='default'):
    """Application factory — creates and configures the Flask app."""
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # ── Logging ───────────────────────────────────────────────────
    from promoengine.utils.logging import setup_logging
    setup_logging(app)

    # ── Blueprints ────────────────────────────────────────────────
    from promoengine.promotions import promotions as promotions_blueprint
    app.register_blueprint(promotions_blueprint, url_prefix='/promotions')

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    # ── Error Handlers ────────────────────────────────────────────
    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({'error': e.name, 'description': e.description}), e.code

    @app.errorhandler(500)
    def internal_error(e):
        app.logger.error(f"Unhandled error: {e}")
        return jsonify({'error': 'Internal Server Error'}), 500

    # ── CLI Commands ──────────────────────────────────────────────
    register_commands(app)

    # ── ProxyFix (HTTPS termination in front of gunicorn) ─────────
    if app.config.get('PROXY_FIX'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app


def register_commands(app):
    """Register custom Flask CLI commands."""

    @app.cli.command('evaluate-cart')
    @click.argument('payload_file', type=click.File('r'))
    @click.option('--channel', default=None, help='Sales channel (overrides the payload).')
    @click.option('--now', 'now', default=None, help='Evaluation instant, ISO-8601 (overrides the payload).')
    def evaluate_cart(payload_file, channel, now):
        """Evaluate the promotions in PAYLOAD_FILE against its cart and print the result."""
        from promoengine.promotions.routes import run_evaluation
        from promoengine.promotions.validators import validate_evaluation_payload

        try:
            payload = json.load(payload_file)
        except json.JSONDecodeError as exc:
            raise click.ClickException(f'Invalid JSON: {exc}')

        if isinstance(payload, dict):
            if channel:
                payload['channel'] = channel
            if now:
                payload['now'] = now

        req, errors = validate_evaluation_payload(payload)
        if errors:
            for field, message in sorted(errors.items()):
                click.echo(f'❌  {field}: {message}', err=True)
            raise click.ClickException(f'{len(errors)} validation error(s).')

        result = run_evaluation(req, app.config['PROMO_DEFAULT_CHANNEL'])
        click.echo(json.dumps(result.to_dict(), indent=2))
