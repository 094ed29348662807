import os
import logging

import click
from flask import Flask, jsonify

from regpay.config import config_by_name
from regpay.extensions import db, migrate


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from regpay import models  # noqa: F401

    # --- Register blueprints ---
    from regpay.blueprints.webhooks import webhooks_bp

    app.register_blueprint(webhooks_bp)

    # --- Error handlers ---
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "Internal server error"}), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("replay-webhook")
    @click.argument("event_id")
    @click.option("--account", default=None, help="Connect account the event belongs to")
    def replay_webhook(event_id, account):
        """Fetch a Stripe event and reconcile it again.

        Bypasses the stripe_events idempotency check, for repairing state
        after a failed or partially applied delivery.

        Usage:
            flask replay-webhook evt_1Abc...
            flask replay-webhook evt_1Abc... --account acct_1Xyz...
        """
        import stripe as _stripe

        from regpay.services.stripe_service import StripeGateway
        from regpay.services.webhook_service import handle_webhook_event

        gateway = StripeGateway.from_config(app.config)
        try:
            event = gateway.retrieve_event(event_id, account)
        except _stripe.StripeError as e:
            click.echo(f"ERROR: could not retrieve {event_id}: {e}")
            return

        success, message = handle_webhook_event(
            event, account=account, gateway=gateway, force=True
        )
        click.echo(f"{event_id} ({event['type']}): {message}")
        if not success:
            click.echo("See `flask activity-log --severity ERROR` for details.")

    @app.cli.command("activity-log")
    @click.option("--severity", default=None, help="Only show WARNING or ERROR entries")
    @click.option("--limit", default=20, show_default=True, help="Number of entries")
    def activity_log(severity, limit):
        """Print the most recent activity log entries, newest first.

        Usage:
            flask activity-log
            flask activity-log --severity ERROR --limit 50
        """
        from regpay.models.activity_log import ActivityLog

        query = ActivityLog.query
        if severity:
            query = query.filter_by(severity=severity.upper())
        entries = query.order_by(ActivityLog.created_at.desc()).limit(limit).all()

        if not entries:
            click.echo("No activity log entries.")
            return

        for entry in entries:
            created = entry.created_at.isoformat() if entry.created_at else "-"
            click.echo(
                f"{created}  {entry.severity:<7}  [{entry.category}] {entry.message}"
            )
