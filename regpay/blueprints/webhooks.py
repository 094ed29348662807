"""Webhooks blueprint — /stripe/webhooks

Receives Stripe webhook events on two endpoints:
- /stripe/webhooks            events of the platform account
- /stripe/webhooks/connected  events of connected (tenant) accounts

Each endpoint has its own signing secret. Raw body is required for
signature verification.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from regpay.services.stripe_service import WebhookVerificationError, WebhookVerifier
from regpay.services.webhook_service import handle_webhook_event

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/stripe")


def _receive(secret, connected):
    """Verify and process one delivery.

    1. Get raw body (required for signature verification)
    2. Verify signature with the endpoint's secret
    3. Pass to handle_webhook_event (idempotent via stripe_events table)
    4. Return 200 to acknowledge receipt, even if reconciliation failed;
       failures are in the activity log and a redelivery would not help
    """
    payload = request.get_data(as_text=True)
    sig_header = request.headers.get("Stripe-Signature")

    # --- Verify signature ---
    try:
        event = WebhookVerifier(secret).verify(payload, sig_header)
    except WebhookVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        return jsonify({"error": f"Webhook Error: {e}"}), 400

    account = event.get("account") if connected else None
    logger.info(f"Received {event['type']} ({event['id']}, account={account})")

    # --- Process event (idempotent) ---
    success, message = handle_webhook_event(event, account=account)
    if not success:
        logger.error(f"Webhook processing failed for {event['id']}: {message}")

    return jsonify({"status": message}), 200


@webhooks_bp.route("/webhooks", methods=["POST"])
def stripe_webhook():
    """Receive events for the platform account."""
    return _receive(current_app.config["STRIPE_WEBHOOK_SECRET"], connected=False)


@webhooks_bp.route("/webhooks/connected", methods=["POST"])
def stripe_connected_webhook():
    """Receive events for connected accounts, scoped by event.account."""
    return _receive(
        current_app.config["STRIPE_CONNECT_WEBHOOK_SECRET"], connected=True
    )
