"""Registration models.

- EventRegistration: a user's registration for an event.
- RegistrationTransferCode: a pending move of a registration slot from one
  registrant to another, finalized once the new registrant's payment succeeds.
"""

import uuid

from regpay.extensions import db


# -- Valid statuses (shared by registrations and transfer codes) --
REGISTRATION_STATUSES = [
    "PENDING",
    "SUCCESSFUL",
    "CANCELLED",
    "REJECTED",
    "ACCEPTED",
]


class EventRegistration(db.Model):
    __tablename__ = "event_registrations"

    STATUSES = REGISTRATION_STATUSES

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    status = db.Column(
        db.String(50), default="PENDING", nullable=False
    )  # PENDING | SUCCESSFUL | CANCELLED | REJECTED | ACCEPTED
    cancellation_reason = db.Column(db.String(255), nullable=True)
    transfer_code_id = db.Column(
        db.String(36),
        db.ForeignKey(
            "registration_transfer_codes.id",
            use_alter=True,
            name="fk_event_registrations_transfer_code_id",
        ),
        nullable=True,
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
    user = db.relationship("User", back_populates="registrations")
    # The transfer code this registration was created through.
    transfer_code = db.relationship(
        "RegistrationTransferCode", foreign_keys=[transfer_code_id]
    )
    transactions = db.relationship(
        "Transaction", back_populates="event_registration", lazy="dynamic"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "cancellation_reason": self.cancellation_reason,
            "transfer_code_id": self.transfer_code_id,
        }

    def __repr__(self):
        return f"<EventRegistration {self.id} ({self.status})>"


class RegistrationTransferCode(db.Model):
    __tablename__ = "registration_transfer_codes"

    STATUSES = REGISTRATION_STATUSES

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    status = db.Column(
        db.String(50), default="PENDING", nullable=False
    )
    # Registration vacated by the move (refunded once the move is paid).
    registration_to_remove_id = db.Column(
        db.String(36), db.ForeignKey("event_registrations.id"), nullable=True
    )
    # Registration created for the new registrant, pending payment.
    registration_created_id = db.Column(
        db.String(36), db.ForeignKey("event_registrations.id"), nullable=True
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
    registration_to_remove = db.relationship(
        "EventRegistration", foreign_keys=[registration_to_remove_id]
    )
    registration_created = db.relationship(
        "EventRegistration", foreign_keys=[registration_created_id]
    )

    def to_dict(self):
        return {
            "id": self.id,
            "status": self.status,
            "registration_to_remove_id": self.registration_to_remove_id,
            "registration_created_id": self.registration_created_id,
        }

    def __repr__(self):
        return f"<RegistrationTransferCode {self.id} ({self.status})>"
