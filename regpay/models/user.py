"""User model.

Profile record referenced by registrations, purchases and transactions.
Authentication lives outside this service.
"""

import uuid

from regpay.extensions import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    first_name = db.Column(db.String(255))
    last_name = db.Column(db.String(255))
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    registrations = db.relationship(
        "EventRegistration", back_populates="user", lazy="dynamic"
    )
    purchases = db.relationship(
        "Purchase", back_populates="user", lazy="dynamic"
    )

    def __repr__(self):
        return f"<User {self.email}>"
