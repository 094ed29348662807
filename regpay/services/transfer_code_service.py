"""Transfer code service — finalize or undo registration moves.

A transfer code moves a registration slot from one registrant to another.
The new registration is created PENDING and paid through Stripe; the
payment webhooks then either resolve the move (old registration cancelled
and refunded, new one confirmed) or revert it (old registration restored,
new one cancelled).

Every write checks the current status first, so running either effect
twice leaves the same state. Functions flush but do NOT commit.
"""

import logging

import stripe

from regpay.extensions import db
from regpay.models.registration import EventRegistration
from regpay.models.transaction import Transaction
from regpay.services.stripe_service import MissingConnectAccountError

logger = logging.getLogger(__name__)

MOVED_REASON = "Event was moved to another person"
MOVE_FAILED_REASON = "Payment for move failed"


def resolve_transfer_code(registration, gateway, activity, account=None):
    """Finalize the move attached to a registration whose payment succeeded."""
    code = registration.transfer_code
    if code is None:
        return

    if code.registration_to_remove_id:
        removed = db.session.get(EventRegistration, code.registration_to_remove_id)
        if removed and removed.status != "CANCELLED":
            removed.status = "CANCELLED"
            removed.cancellation_reason = MOVED_REASON
            db.session.flush()
            _refund_removed_registration(removed, gateway, activity, account)

    if code.registration_created_id:
        created = db.session.get(EventRegistration, code.registration_created_id)
        if created and created.status != "SUCCESSFUL":
            created.status = "SUCCESSFUL"

    if code.status != "SUCCESSFUL":
        code.status = "SUCCESSFUL"
    db.session.flush()
    logger.info(f"Resolved transfer code {code.id}")


def _refund_removed_registration(removed, gateway, activity, account=None):
    """Refund the Stripe payment of a registration given away through a move.

    Failures are recorded and swallowed: the move itself is already paid
    for, only the refund needs operator follow-up.
    """
    transaction = (
        removed.transactions
        .filter_by(direction="USER_TO_SYSTEM")
        .order_by(Transaction.created_at)
        .first()
    )
    if not transaction or not transaction.stripe_payment:
        return

    payment = transaction.stripe_payment
    if not payment.payment_intent:
        activity.error(
            "Transaction to refund is missing payment intent",
            data=removed,
            old_data=payment,
        )
        return

    try:
        if not transaction.tenant or not transaction.tenant.stripe_connect_account_id:
            raise MissingConnectAccountError(
                "Tenant does not have a stripe connect account id"
            )
        gateway.create_refund(payment.payment_intent, account)
    except (MissingConnectAccountError, stripe.StripeError) as e:
        activity.error(
            "Refund failed during registration move",
            data=e,
            old_data=removed,
        )


def revert_transfer_code(registration):
    """Undo the move attached to a registration whose payment was cancelled."""
    code = registration.transfer_code
    if code is None:
        return

    if code.registration_to_remove_id:
        removed = db.session.get(EventRegistration, code.registration_to_remove_id)
        if removed and removed.status != "SUCCESSFUL":
            removed.status = "SUCCESSFUL"
            removed.cancellation_reason = None

    if code.registration_created_id:
        created = db.session.get(EventRegistration, code.registration_created_id)
        if created and created.status != "CANCELLED":
            created.status = "CANCELLED"
            created.cancellation_reason = MOVE_FAILED_REASON

    code.registration_created_id = None
    code.status = "PENDING"
    db.session.flush()
    logger.info(f"Reverted transfer code {code.id}")
