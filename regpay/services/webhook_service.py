"""Webhook service — reconcile Stripe payment events with local records.

Responsible for:
- Idempotency via the stripe_events table
- Dispatching verified events to event-specific handlers
- Applying payment lifecycle changes to payments, transactions,
  registrations, purchases and transfer codes
- Recording anomalies in the activity log instead of failing the delivery

Stripe may deliver an event more than once, concurrently, or out of order.
Handlers therefore set the status named by the event rather than stepping
through states, re-check succeeded/canceled/refunded against the live
Stripe object, and look for derived records before creating them.

Handlers flush but do NOT commit — handle_webhook_event() owns the unit of
work and commits once per delivery.
"""

import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from regpay.extensions import db
from regpay.models.payment import MalformedEventLog, StripePayment
from regpay.models.stripe_event import StripeEvent
from regpay.models.transaction import Transaction
from regpay.services.activity_log_service import ActivityLogger
from regpay.services.payment_lookup import (
    find_payment_by_checkout_session,
    find_payment_for_charge,
    find_payment_for_intent,
)
from regpay.services.stripe_service import (
    MissingConnectAccountError,
    StripeGateway,
    to_plain,
)
from regpay.services.transfer_code_service import (
    resolve_transfer_code,
    revert_transfer_code,
)

logger = logging.getLogger(__name__)

TIMED_OUT_REASON = "Payment intent timed out"
MALFORMED_EVENTS_MESSAGE = "Saved payment events are not an array"
NOT_SINGULAR_MESSAGE = "Transaction for payment intent is not singular"
NO_ACCOUNT_MESSAGE = "No account id found for incoming event"
NO_CHARGE_MESSAGE = "No charges found for payment intent"


def _to_major_units(minor):
    return Decimal(minor) / 100


def _incoming_transactions(payment):
    """The USER_TO_SYSTEM transactions of a payment, oldest first."""
    return (
        payment.transactions
        .filter_by(direction="USER_TO_SYSTEM")
        .order_by(Transaction.created_at)
        .all()
    )


def _first_transaction(payment):
    return payment.transactions.order_by(Transaction.created_at).first()


class WebhookReconciler:
    """Applies one verified Stripe event to the database.

    The Stripe client and the activity logger are injected so handlers can
    run against any account setup and be exercised without network access.
    """

    def __init__(self, gateway, activity):
        self.gateway = gateway
        self.activity = activity
        self.handlers = {
            "checkout.session.expired": self.handle_checkout_session_expired,
            "payment_intent.processing": self.handle_payment_intent_processing,
            "payment_intent.succeeded": self.handle_payment_intent_succeeded,
            "payment_intent.payment_failed": self.handle_payment_intent_failed,
            "payment_intent.canceled": self.handle_payment_intent_canceled,
            "charge.dispute.created": self.handle_charge_dispute_created,
            "charge.refunded": self.handle_charge_refunded,
        }

    def handle(self, event, account=None):
        """Dispatch an event to its handler.

        Returns True if the event type has a handler, False otherwise.
        """
        event_type = event["type"]
        handler = self.handlers.get(event_type)
        if handler is None:
            self.handle_unhandled(event_type)
            return False

        logger.info(f"Processing event: {event_type}")
        handler(event["data"]["object"], account)
        return True

    def handle_unhandled(self, event_type):
        logger.info(f"Unhandled event type {event_type}")

    # ──────────────────────────────────────────────
    # Shared steps
    # ──────────────────────────────────────────────

    def _append_event(self, payment, obj, event_type, name):
        """Append to the payment's event log.

        Returns False (after logging) when the stored log is corrupt; the
        caller must then leave the payment row untouched.
        """
        try:
            payment.append_event(event_type, name)
        except MalformedEventLog:
            self.activity.warning(
                MALFORMED_EVENTS_MESSAGE, data=obj, old_data=payment
            )
            return False
        return True

    def _require_connect_account(self, payment, obj):
        """Fail the event when the payment's tenant has no connect account."""
        transaction = _first_transaction(payment)
        tenant = transaction.tenant if transaction else None
        if not tenant or not tenant.stripe_connect_account_id:
            self.activity.warning(NO_ACCOUNT_MESSAGE, data=obj)
            raise MissingConnectAccountError(NO_ACCOUNT_MESSAGE)
        return tenant.stripe_connect_account_id

    def cancel_payment(self, payment, obj):
        """Cancel a payment and everything waiting on it.

        Shared by expired checkout sessions and canceled payment intents.
        `obj` is the Stripe object the cancellation came from.
        """
        snapshot = payment.to_dict()
        if self._append_event(payment, obj, obj.get("object"), "canceled"):
            payment.status = obj.get("status") or "canceled"
        db.session.flush()

        incoming = _incoming_transactions(payment)
        if len(incoming) != 1:
            self.activity.warning(NOT_SINGULAR_MESSAGE, data=obj, old_data=snapshot)
            return

        transaction = incoming[0]
        transaction.status = "CANCELLED"

        registration = transaction.event_registration
        if registration and registration.status != "CANCELLED":
            registration.status = "CANCELLED"
            registration.cancellation_reason = TIMED_OUT_REASON

        purchase = transaction.purchase
        if purchase and purchase.status != "CANCELLED":
            purchase.status = "CANCELLED"
            purchase.cancellation_reason = TIMED_OUT_REASON
        db.session.flush()

        if registration:
            revert_transfer_code(registration)

    # ──────────────────────────────────────────────
    # Event Handlers
    # ──────────────────────────────────────────────

    def handle_checkout_session_expired(self, session, account=None):
        """Handle checkout.session.expired — the session was never paid."""
        payment = find_payment_by_checkout_session(session, self.activity)
        if not payment:
            return
        self.cancel_payment(payment, session)

    def handle_payment_intent_processing(self, intent, account=None):
        """Handle payment_intent.processing.

        Records the payment method while an asynchronous method (e.g. SEPA
        debit) is pending.
        """
        payment = find_payment_for_intent(intent, self.activity)
        if not payment:
            return

        if not intent.get("latest_charge"):
            self.activity.warning(NO_CHARGE_MESSAGE, data=intent)
            return
        charge = self.gateway.charge_for(intent["latest_charge"], account)

        if not self._append_event(
            payment, intent, "payment_intent.processing", "processing"
        ):
            return
        payment.status = intent.get("status")
        if intent.get("shipping"):
            payment.shipping = intent["shipping"]
        payment.payment_method = charge.get("payment_method")
        payment.payment_method_type = (
            charge.get("payment_method_details") or {}
        ).get("type")
        db.session.flush()

    def handle_payment_intent_succeeded(self, event_intent, account=None):
        """Handle payment_intent.succeeded.

        Confirms the payment, books the Stripe fee, and confirms whatever
        the payment was for (registration, purchase, registration move).
        """
        payment = find_payment_for_intent(event_intent, self.activity)
        if not payment:
            return

        intent = self.gateway.retrieve_payment_intent(event_intent["id"], account)
        if intent.get("status") != "succeeded":
            self.activity.warning(
                "Payment intent status is not succeeded",
                data=intent,
                old_data=event_intent,
            )
            return

        if not intent.get("latest_charge"):
            self.activity.warning(NO_CHARGE_MESSAGE, data=intent)
            return
        charge = self.gateway.charge_for(intent["latest_charge"], account)
        balance_transaction = self.gateway.balance_transaction_for(charge, account)

        if not self._append_event(
            payment, intent, "payment_intent.succeeded", "succeeded"
        ):
            return
        payment.status = intent.get("status")
        if intent.get("shipping"):
            payment.shipping = intent["shipping"]
        payment.payment_method = charge.get("payment_method")
        payment.payment_method_type = (
            charge.get("payment_method_details") or {}
        ).get("type")
        if balance_transaction:
            payment.fee_amount = balance_transaction.get("fee")
            payment.net_amount = balance_transaction.get("net")
        else:
            self.activity.warning(
                "No balance transaction found for charge", data=charge
            )
        db.session.flush()

        incoming = _incoming_transactions(payment)
        if len(incoming) != 1:
            self.activity.warning(NOT_SINGULAR_MESSAGE, data=intent, old_data=payment)
            return

        transaction = incoming[0]
        transaction.status = "CONFIRMED"
        if balance_transaction:
            self._book_stripe_fee(payment, transaction, balance_transaction["fee"])

        registration = transaction.event_registration
        if registration and registration.status != "SUCCESSFUL":
            registration.status = "SUCCESSFUL"

        purchase = transaction.purchase
        if purchase and purchase.status != "PAID":
            purchase.status = "PAID"
        db.session.flush()

        if registration:
            resolve_transfer_code(registration, self.gateway, self.activity, account)

    def _book_stripe_fee(self, payment, transaction, fee):
        """Create the fee transaction for a payment unless it already exists."""
        amount = _to_major_units(fee)
        existing = Transaction.query.filter_by(
            direction="SYSTEM_TO_EXTERNAL",
            stripe_payment_id=payment.id,
            amount=amount,
        ).first()
        if existing:
            logger.info(f"Fee transaction already booked for payment {payment.id}")
            return existing

        fee_transaction = Transaction(
            type="STRIPE",
            direction="SYSTEM_TO_EXTERNAL",
            subject=f"Stripe fees for {transaction.id}",
            amount=amount,
            status="CONFIRMED",
            user_id=transaction.user_id,
            created_by_id=transaction.user_id,
            tenant_id=transaction.tenant_id,
            stripe_payment_id=payment.id,
            event_registration_id=transaction.event_registration_id,
            purchase_id=transaction.purchase_id,
        )
        db.session.add(fee_transaction)
        db.session.flush()
        return fee_transaction

    def handle_payment_intent_failed(self, intent, account=None):
        """Handle payment_intent.payment_failed.

        The intent stays open for another attempt, so only the payment row
        changes; linked records keep waiting.
        """
        payment = find_payment_for_intent(intent, self.activity)
        if not payment:
            return

        if not self._append_event(
            payment, intent, "payment_intent.payment_failed", "failed"
        ):
            return
        payment.status = intent.get("status")
        if intent.get("shipping"):
            payment.shipping = intent["shipping"]
        db.session.flush()

    def handle_payment_intent_canceled(self, event_intent, account=None):
        """Handle payment_intent.canceled.

        Raises MissingConnectAccountError when the payment's tenant has no
        connect account.
        """
        payment = find_payment_for_intent(event_intent, self.activity)
        if not payment:
            return
        self._require_connect_account(payment, event_intent)

        intent = self.gateway.retrieve_payment_intent(event_intent["id"], account)
        if intent.get("status") != "canceled":
            self.activity.warning(
                "Payment intent status is not canceled",
                data=intent,
                old_data=event_intent,
            )
            return

        self.cancel_payment(payment, intent)

    def handle_charge_dispute_created(self, dispute, account=None):
        """Handle charge.dispute.created — record the dispute on the payment."""
        payment = find_payment_for_charge(dispute, self.activity)
        if not payment:
            return

        if not self._append_event(
            payment, dispute, "charge.dispute.created", "disputed"
        ):
            return
        payment.status = dispute.get("status")
        db.session.flush()

    def handle_charge_refunded(self, event_charge, account=None):
        """Handle charge.refunded.

        Raises MissingConnectAccountError when the payment's tenant has no
        connect account.
        """
        payment = find_payment_for_charge(event_charge, self.activity)
        if not payment:
            return
        self._require_connect_account(payment, event_charge)

        charge = self.gateway.retrieve_charge(event_charge["id"], account)

        if not self._append_event(payment, charge, "charge.refunded", "refunded"):
            return
        amount_refunded = charge.get("amount_refunded") or 0
        payment.status = "refunded"
        payment.refunded_amount = StripePayment.refunded_amount + amount_refunded
        db.session.flush()

        transaction = _first_transaction(payment)
        if (
            transaction
            and transaction.event_registration_id
            and transaction.tenant_id
            and transaction.user_id
        ):
            db.session.add(Transaction(
                type="STRIPE",
                direction="SYSTEM_TO_USER",
                subject=f"Refund for {transaction.event_registration_id}",
                amount=_to_major_units(amount_refunded),
                status="CONFIRMED",
                user_id=transaction.user_id,
                created_by_id=transaction.user_id,
                tenant_id=transaction.tenant_id,
                event_registration_id=transaction.event_registration_id,
                stripe_payment_id=payment.id,
            ))
            db.session.flush()
        else:
            self.activity.warning(
                "No connected transaction for stripe payment", data=payment
            )


# ──────────────────────────────────────────────
# Delivery
# ──────────────────────────────────────────────

def handle_webhook_event(event, account=None, gateway=None, force=False):
    """Process a verified Stripe webhook event as one unit of work.

    Idempotency: checks stripe_events table before processing, unless
    `force` is set (operator replay).
    Any exception from a handler rolls back the event's changes; the
    activity log entries written so far are kept and an ERROR entry added.

    Returns (success: bool, message: str).
    """
    event = to_plain(event)
    event_id = event["id"]
    event_type = event["type"]

    # --- Idempotency check ---
    existing = StripeEvent.query.filter_by(stripe_event_id=event_id).first()
    if existing and not force:
        logger.info(f"Duplicate webhook event {event_id}, skipping")
        return True, "already_processed"

    if gateway is None:
        gateway = StripeGateway.from_config(current_app.config)
    activity = ActivityLogger(
        category=current_app.config.get("ACTIVITY_LOG_CATEGORY", "webhook")
    )
    reconciler = WebhookReconciler(gateway, activity)

    result = "processed"
    try:
        reconciler.handle(event, account)
    except Exception as e:
        logger.error(f"Error handling {event_type}: {e}", exc_info=True)
        db.session.rollback()
        activity.restore()
        activity.error(
            f"Error handling {event_type}",
            data={"event_id": event_id, "account": account, "error": str(e)},
        )
        result = "failed"

    # --- Record event for idempotency ---
    if existing:
        existing.result = result
    else:
        db.session.add(StripeEvent(
            stripe_event_id=event_id,
            event_type=event_type,
            account=account,
            result=result,
        ))

    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent delivery of the same event committed first
        db.session.rollback()
        logger.info(f"Duplicate webhook event {event_id} committed concurrently")
        return True, "already_processed"

    return result == "processed", result
