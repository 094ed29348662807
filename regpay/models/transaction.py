"""Transaction model.

One ledger entry per money movement. A Stripe payment normally has exactly
one USER_TO_SYSTEM transaction (the registrant paying), plus derived entries
created by webhooks: Stripe fees (SYSTEM_TO_EXTERNAL) and refunds
(SYSTEM_TO_USER).
"""

import uuid

from regpay.extensions import db


class Transaction(db.Model):
    __tablename__ = "transactions"

    # -- Valid values --
    TYPES = ["STRIPE", "CASH", "TRANSFER", "PAYPAL"]
    DIRECTIONS = ["USER_TO_SYSTEM", "SYSTEM_TO_USER", "SYSTEM_TO_EXTERNAL"]
    STATUSES = ["PENDING", "CONFIRMED", "CANCELLED"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    type = db.Column(db.String(50), nullable=False, default="STRIPE")
    direction = db.Column(
        db.String(50), nullable=False
    )  # USER_TO_SYSTEM | SYSTEM_TO_USER | SYSTEM_TO_EXTERNAL
    subject = db.Column(db.String(255), nullable=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)  # major units
    status = db.Column(
        db.String(50), nullable=False, default="PENDING"
    )  # PENDING | CONFIRMED | CANCELLED
    event_registration_id = db.Column(
        db.String(36), db.ForeignKey("event_registrations.id"), nullable=True
    )
    purchase_id = db.Column(
        db.String(36), db.ForeignKey("purchases.id"), nullable=True
    )
    stripe_payment_id = db.Column(
        db.String(36), db.ForeignKey("stripe_payments.id"), nullable=True
    )
    tenant_id = db.Column(
        db.String(36), db.ForeignKey("tenants.id"), nullable=True
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    created_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    __table_args__ = (
        db.Index(
            "ix_transactions_stripe_payment_direction",
            "stripe_payment_id",
            "direction",
        ),
    )

    # --- Relationships ---
    event_registration = db.relationship(
        "EventRegistration", back_populates="transactions"
    )
    purchase = db.relationship("Purchase", back_populates="transactions")
    stripe_payment = db.relationship(
        "StripePayment", back_populates="transactions"
    )
    tenant = db.relationship("Tenant", back_populates="transactions")
    user = db.relationship("User", foreign_keys=[user_id])
    created_by = db.relationship("User", foreign_keys=[created_by_id])

    def __repr__(self):
        return f"<Transaction {self.direction} {self.amount} ({self.status})>"
