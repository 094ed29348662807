"""Stripe event model (idempotency table).

Every verified webhook delivery is recorded by its Stripe event ID. Before
processing, the handler checks this table; a redelivered event returns 200
immediately instead of being reconciled again.
"""

import uuid

from regpay.extensions import db


class StripeEvent(db.Model):
    __tablename__ = "stripe_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    stripe_event_id = db.Column(
        db.String(255), unique=True, nullable=False
    )  # e.g. "evt_1Abc..."
    event_type = db.Column(
        db.String(255), nullable=False
    )  # e.g. "payment_intent.succeeded"
    account = db.Column(
        db.String(255), nullable=True
    )  # connect account the event came from, None for the platform
    result = db.Column(db.String(50), nullable=False)  # processed | failed
    processed_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<StripeEvent {self.stripe_event_id} ({self.event_type})>"
