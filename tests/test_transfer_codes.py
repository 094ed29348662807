"""Tests for registration moves through transfer codes.

Covers:
- Resolving a move when the new registrant's payment succeeds
  (old registration cancelled and refunded, new one confirmed)
- Refund failures during a move (logged, move still completes)
- Reverting a move when the payment is cancelled
- Running either effect twice
"""

from decimal import Decimal

import pytest
import stripe

from regpay.extensions import db
from regpay.models.activity_log import ActivityLog
from regpay.models.payment import StripePayment
from regpay.models.registration import EventRegistration, RegistrationTransferCode
from regpay.models.tenant import Tenant
from regpay.models.transaction import Transaction
from regpay.models.user import User
from regpay.services.activity_log_service import ActivityLogger
from regpay.services.transfer_code_service import (
    resolve_transfer_code,
    revert_transfer_code,
)
from regpay.services.webhook_service import WebhookReconciler


@pytest.fixture
def move(seed_data):
    """A move of an existing paid registration to the seeded pending one.

    The seeded registration (paid through pi_test_123) takes over the slot
    of `old`, which was paid through pi_old_456.
    """
    previous_owner = User(email="max@example.com", first_name="Max", last_name="Muster")
    db.session.add(previous_owner)
    db.session.flush()

    old = EventRegistration(user_id=previous_owner.id, status="SUCCESSFUL")
    old_payment = StripePayment(
        payment_intent="pi_old_456", status="succeeded", events=[], amount=5000
    )
    db.session.add_all([old, old_payment])
    db.session.flush()

    old_transaction = Transaction(
        type="STRIPE",
        direction="USER_TO_SYSTEM",
        subject="Registration for Harbour Tour",
        amount=Decimal("50.00"),
        status="CONFIRMED",
        event_registration_id=old.id,
        stripe_payment_id=old_payment.id,
        tenant_id=seed_data["tenant_id"],
        user_id=previous_owner.id,
    )
    code = RegistrationTransferCode(
        status="PENDING",
        registration_to_remove_id=old.id,
        registration_created_id=seed_data["registration_id"],
    )
    db.session.add_all([old_transaction, code])
    db.session.flush()

    new = db.session.get(EventRegistration, seed_data["registration_id"])
    new.transfer_code_id = code.id
    db.session.commit()

    return {
        "old_id": old.id,
        "old_payment_id": old_payment.id,
        "old_transaction_id": old_transaction.id,
        "new_id": new.id,
        "code_id": code.id,
    }


@pytest.fixture
def reconciler(gateway):
    return WebhookReconciler(gateway, ActivityLogger())


def _succeeded(make_event):
    return make_event("payment_intent.succeeded", {
        "id": "pi_test_123",
        "object": "payment_intent",
        "status": "succeeded",
        "metadata": {},
    })


def _canceled(make_event):
    return make_event("payment_intent.canceled", {
        "id": "pi_test_123",
        "object": "payment_intent",
        "status": "canceled",
        "metadata": {},
    })


class TestResolveTransferCode:
    """payment_intent.succeeded on a registration created through a move."""

    def test_move_completed(self, reconciler, make_event, move, gateway):
        reconciler.handle(_succeeded(make_event), account="acct_tenant_test")

        old = db.session.get(EventRegistration, move["old_id"])
        assert old.status == "CANCELLED"
        assert old.cancellation_reason == "Event was moved to another person"

        new = db.session.get(EventRegistration, move["new_id"])
        assert new.status == "SUCCESSFUL"

        code = db.session.get(RegistrationTransferCode, move["code_id"])
        assert code.status == "SUCCESSFUL"

        assert [r["payment_intent"] for r in gateway.refunds] == ["pi_old_456"]
        assert ("refund", "pi_old_456", "acct_tenant_test") in gateway.calls
        assert ActivityLog.query.count() == 0

    def test_refund_failure_logged(self, reconciler, make_event, move, gateway):
        gateway.refund_error = stripe.APIConnectionError("Stripe unreachable")

        reconciler.handle(_succeeded(make_event))

        entries = ActivityLog.query.all()
        assert [(e.severity, e.message) for e in entries] == [
            ("ERROR", "Refund failed during registration move")
        ]
        assert entries[0].data["type"] == "APIConnectionError"
        assert entries[0].old_data["id"] == move["old_id"]

        # The move itself still goes through
        assert db.session.get(EventRegistration, move["new_id"]).status == "SUCCESSFUL"
        assert db.session.get(EventRegistration, move["old_id"]).status == "CANCELLED"
        assert db.session.get(RegistrationTransferCode, move["code_id"]).status == "SUCCESSFUL"

    def test_old_payment_without_intent(self, reconciler, make_event, move, gateway):
        db.session.get(StripePayment, move["old_payment_id"]).payment_intent = None
        db.session.commit()

        reconciler.handle(_succeeded(make_event))

        assert gateway.refunds == []
        assert [e.message for e in ActivityLog.query.filter_by(severity="ERROR")] == [
            "Transaction to refund is missing payment intent"
        ]
        assert db.session.get(RegistrationTransferCode, move["code_id"]).status == "SUCCESSFUL"

    def test_old_tenant_without_connect_account(self, reconciler, make_event, move, gateway):
        other = Tenant(name="Other Section")
        db.session.add(other)
        db.session.flush()
        db.session.get(Transaction, move["old_transaction_id"]).tenant_id = other.id
        db.session.commit()

        reconciler.handle(_succeeded(make_event))

        assert gateway.refunds == []
        entries = ActivityLog.query.all()
        assert [e.message for e in entries] == ["Refund failed during registration move"]
        assert entries[0].data["type"] == "MissingConnectAccountError"

    def test_resolving_twice_refunds_once(self, move, gateway):
        new = db.session.get(EventRegistration, move["new_id"])
        activity = ActivityLogger()

        resolve_transfer_code(new, gateway, activity)
        resolve_transfer_code(new, gateway, activity)

        assert len(gateway.refunds) == 1
        assert db.session.get(RegistrationTransferCode, move["code_id"]).status == "SUCCESSFUL"

    def test_registration_without_code(self, seed_data, gateway):
        registration = db.session.get(EventRegistration, seed_data["registration_id"])

        resolve_transfer_code(registration, gateway, ActivityLogger())

        assert gateway.calls == []
        assert registration.status == "PENDING"


class TestRevertTransferCode:
    """payment_intent.canceled on a registration created through a move."""

    def test_move_reverted(self, reconciler, make_event, move, gateway):
        gateway.payment_intents["pi_test_123"]["status"] = "canceled"
        old = db.session.get(EventRegistration, move["old_id"])
        old.status = "CANCELLED"
        old.cancellation_reason = "Event was moved to another person"
        db.session.commit()

        reconciler.handle(_canceled(make_event), account="acct_tenant_test")

        assert old.status == "SUCCESSFUL"
        assert old.cancellation_reason is None

        new = db.session.get(EventRegistration, move["new_id"])
        assert new.status == "CANCELLED"

        code = db.session.get(RegistrationTransferCode, move["code_id"])
        assert code.status == "PENDING"
        assert code.registration_created_id is None
        assert gateway.refunds == []

    def test_created_registration_cancelled_with_reason(self, move):
        new = db.session.get(EventRegistration, move["new_id"])

        revert_transfer_code(new)

        assert new.status == "CANCELLED"
        assert new.cancellation_reason == "Payment for move failed"

    def test_reverting_twice_is_stable(self, move):
        new = db.session.get(EventRegistration, move["new_id"])

        revert_transfer_code(new)
        first = (
            db.session.get(EventRegistration, move["old_id"]).status,
            new.status,
            db.session.get(RegistrationTransferCode, move["code_id"]).status,
        )
        revert_transfer_code(new)
        second = (
            db.session.get(EventRegistration, move["old_id"]).status,
            new.status,
            db.session.get(RegistrationTransferCode, move["code_id"]).status,
        )

        assert first == second == ("SUCCESSFUL", "CANCELLED", "PENDING")
