"""Tenant model.

A tenant is an organizing section that receives registration payments.
Charges and refunds for a tenant live on its Stripe connect account.
"""

import uuid

from regpay.extensions import db


class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    stripe_connect_account_id = db.Column(
        db.String(255), nullable=True
    )  # e.g. "acct_1Abc..."
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    transactions = db.relationship(
        "Transaction", back_populates="tenant", lazy="dynamic"
    )

    def __repr__(self):
        return f"<Tenant {self.name}>"
