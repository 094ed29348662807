"""Purchase model (non-registration sales paid through Stripe)."""

import uuid

from regpay.extensions import db


class Purchase(db.Model):
    __tablename__ = "purchases"

    # -- Valid statuses --
    STATUSES = ["PENDING", "PAID", "CANCELLED"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    status = db.Column(
        db.String(50), default="PENDING", nullable=False
    )  # PENDING | PAID | CANCELLED
    cancellation_reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="purchases")
    transactions = db.relationship(
        "Transaction", back_populates="purchase", lazy="dynamic"
    )

    def __repr__(self):
        return f"<Purchase {self.id} ({self.status})>"
