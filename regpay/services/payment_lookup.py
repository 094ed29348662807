"""Payment lookup — resolve Stripe objects to local StripePayment rows.

A miss is never fatal: it is recorded once in the activity log and the
caller gets None back, so the handler can stop without side effects.
"""

import logging

from regpay.extensions import db
from regpay.models.payment import StripePayment
from regpay.services.stripe_service import extract_id

logger = logging.getLogger(__name__)

# Metadata key set on payment intents when they are created for a StripePayment
PAYMENT_ID_METADATA_KEY = "stripe_payment_id"

NOT_FOUND_MESSAGE = "No database payment found for incoming event"


def _not_found(obj, activity):
    activity.warning(NOT_FOUND_MESSAGE, data=obj)
    return None


def find_payment_for_intent(intent, activity):
    """Find the payment for a payment intent.

    Prefers the internal id from the intent metadata. When found that way,
    the intent id is stored on the row (backfill) so later events that only
    carry the intent id resolve too.
    """
    intent_id = intent.get("id")
    metadata = intent.get("metadata") or {}
    payment_id = metadata.get(PAYMENT_ID_METADATA_KEY)

    if payment_id:
        payment = db.session.get(StripePayment, payment_id)
        if payment and intent_id and payment.payment_intent != intent_id:
            logger.info(f"Backfilling payment intent {intent_id} on payment {payment.id}")
            payment.payment_intent = intent_id
            db.session.flush()
    elif intent_id:
        payment = StripePayment.query.filter_by(payment_intent=intent_id).first()
    else:
        payment = None

    if not payment:
        return _not_found(intent, activity)
    return payment


def find_payment_by_checkout_session(session, activity):
    """Find the payment created together with a checkout session."""
    session_id = session.get("id")
    payment = None
    if session_id:
        payment = StripePayment.query.filter_by(checkout_session=session_id).first()
    if not payment:
        return _not_found(session, activity)
    return payment


def find_payment_for_charge(charge, activity):
    """Find the payment for a charge (or dispute) through its payment intent."""
    intent_id = extract_id(charge.get("payment_intent"))
    payment = None
    if intent_id:
        payment = StripePayment.query.filter_by(payment_intent=intent_id).first()
    if not payment:
        return _not_found(charge, activity)
    return payment
