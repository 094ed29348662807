"""Stripe payment model.

One row per payment attempt with Stripe (a payment intent, optionally
started through a checkout session). The `events` column is an append-only
log of the lifecycle events seen for the payment; each entry has the shape
{"type": str, "name": str, "timestamp": epoch milliseconds}.
"""

import uuid
from datetime import datetime, timezone

from regpay.extensions import db


class MalformedEventLog(ValueError):
    """The stored event log is not a list of {type, name, timestamp} entries."""


def _is_event_entry(entry):
    return (
        isinstance(entry, dict)
        and isinstance(entry.get("type"), str)
        and isinstance(entry.get("name"), str)
        and isinstance(entry.get("timestamp"), (int, float))
        and not isinstance(entry.get("timestamp"), bool)
    )


class StripePayment(db.Model):
    __tablename__ = "stripe_payments"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    payment_intent = db.Column(
        db.String(255), unique=True, nullable=True
    )  # e.g. "pi_1Abc..."
    checkout_session = db.Column(
        db.String(255), unique=True, nullable=True
    )  # e.g. "cs_test_..."
    status = db.Column(
        db.String(50), nullable=False, default="created"
    )  # mirrors the Stripe status of the intent / session
    events = db.Column(db.JSON, default=list)
    shipping = db.Column(db.JSON, nullable=True)
    payment_method = db.Column(db.String(255), nullable=True)
    payment_method_type = db.Column(db.String(50), nullable=True)
    # Amounts below are in minor units (cents), as reported by Stripe.
    amount = db.Column(db.Integer, nullable=True)
    currency = db.Column(db.String(3), default="eur")
    fee_amount = db.Column(db.Integer, nullable=True)
    net_amount = db.Column(db.Integer, nullable=True)
    refunded_amount = db.Column(
        db.Integer, nullable=False, default=0, server_default="0"
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    transactions = db.relationship(
        "Transaction", back_populates="stripe_payment", lazy="dynamic"
    )

    # ── Event log ──

    def event_log(self):
        """Return the validated event log entries.

        Raises MalformedEventLog if the stored value has any other shape.
        A row that was never written (None) counts as an empty log.
        """
        raw = self.events
        if raw is None:
            return []
        if not isinstance(raw, list) or not all(_is_event_entry(e) for e in raw):
            raise MalformedEventLog(
                f"Event log of payment {self.id} is not a list of event entries"
            )
        return list(raw)

    def append_event(self, event_type, name):
        """Append one entry to the event log.

        Assigns a new list so the JSON column is marked dirty. Existing
        entries are never changed.
        """
        entries = self.event_log()
        entries.append({
            "type": event_type,
            "name": name,
            "timestamp": int(datetime.now(timezone.utc).timestamp() * 1000),
        })
        self.events = entries
        return entries

    def to_dict(self):
        """JSON-safe snapshot used as prior state in activity log entries."""
        return {
            "id": self.id,
            "payment_intent": self.payment_intent,
            "checkout_session": self.checkout_session,
            "status": self.status,
            "events": self.events,
            "payment_method": self.payment_method,
            "payment_method_type": self.payment_method_type,
            "amount": self.amount,
            "currency": self.currency,
            "fee_amount": self.fee_amount,
            "net_amount": self.net_amount,
            "refunded_amount": self.refunded_amount,
        }

    def __repr__(self):
        return f"<StripePayment {self.payment_intent or self.id} ({self.status})>"
