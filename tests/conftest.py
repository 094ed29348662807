"""Shared test fixtures for the registration payments test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: tenant, user, pending registration, Stripe payment and its
  USER_TO_SYSTEM transaction
- gateway: FakeStripeGateway serving canned Stripe objects
- make_event: builds webhook event dicts
"""

import itertools
from decimal import Decimal

import pytest
import stripe

from regpay import create_app
from regpay.extensions import db as _db
from regpay.models.payment import StripePayment
from regpay.models.registration import EventRegistration
from regpay.models.tenant import Tenant
from regpay.models.transaction import Transaction
from regpay.models.user import User
from regpay.services.stripe_service import StripeGateway


class FakeStripeGateway(StripeGateway):
    """StripeGateway backed by dicts instead of the Stripe API.

    Records every call as (method, object_id, account) and every refund
    request in `refunds`. Set `refund_error` to make create_refund raise.
    """

    def __init__(self):
        super().__init__("sk_test_fake")
        self.payment_intents = {}
        self.charges = {}
        self.balance_transactions = {}
        self.events = {}
        self.refunds = []
        self.refund_error = None
        self.calls = []

    def _lookup(self, store, method, object_id, account):
        self.calls.append((method, object_id, account))
        if object_id not in store:
            raise stripe.InvalidRequestError(f"No such object: '{object_id}'", "id")
        return store[object_id]

    def retrieve_payment_intent(self, payment_intent_id, account=None):
        return self._lookup(
            self.payment_intents, "payment_intent", payment_intent_id, account
        )

    def retrieve_charge(self, charge_id, account=None):
        return self._lookup(self.charges, "charge", charge_id, account)

    def retrieve_balance_transaction(self, balance_transaction_id, account=None):
        return self._lookup(
            self.balance_transactions,
            "balance_transaction",
            balance_transaction_id,
            account,
        )

    def retrieve_event(self, event_id, account=None):
        return self._lookup(self.events, "event", event_id, account)

    def create_refund(self, payment_intent_id, account=None):
        self.calls.append(("refund", payment_intent_id, account))
        if self.refund_error:
            raise self.refund_error
        refund = {"id": f"re_{len(self.refunds) + 1}", "payment_intent": payment_intent_id}
        self.refunds.append(refund)
        return refund


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def seed_data(db_session):
    """Seed a pending registration paid through a Stripe payment intent.

    Returns a dict of plain IDs for easy access in tests.
    """
    tenant = Tenant(name="ESN Test Section", stripe_connect_account_id="acct_tenant_test")
    db_session.add(tenant)

    user = User(email="erika@example.com", first_name="Erika", last_name="Muster")
    db_session.add(user)
    db_session.flush()

    registration = EventRegistration(user_id=user.id, status="PENDING")
    db_session.add(registration)

    payment = StripePayment(
        payment_intent="pi_test_123",
        checkout_session="cs_test_123",
        status="requires_payment_method",
        events=[],
        amount=5000,
    )
    db_session.add(payment)
    db_session.flush()

    transaction = Transaction(
        type="STRIPE",
        direction="USER_TO_SYSTEM",
        subject="Registration for Harbour Tour",
        amount=Decimal("50.00"),
        status="PENDING",
        event_registration_id=registration.id,
        stripe_payment_id=payment.id,
        tenant_id=tenant.id,
        user_id=user.id,
        created_by_id=user.id,
    )
    db_session.add(transaction)
    db_session.commit()

    return {
        "tenant_id": tenant.id,
        "user_id": user.id,
        "registration_id": registration.id,
        "payment_id": payment.id,
        "transaction_id": transaction.id,
    }


@pytest.fixture
def gateway():
    """FakeStripeGateway preloaded with a succeeded intent, its charge and fees."""
    fake = FakeStripeGateway()
    fake.payment_intents["pi_test_123"] = {
        "id": "pi_test_123",
        "object": "payment_intent",
        "status": "succeeded",
        "metadata": {},
        "latest_charge": "ch_test_123",
    }
    fake.charges["ch_test_123"] = {
        "id": "ch_test_123",
        "object": "charge",
        "payment_intent": "pi_test_123",
        "payment_method": "pm_test_card",
        "payment_method_details": {"type": "card"},
        "balance_transaction": "txn_test_123",
        "amount": 5000,
        "amount_refunded": 0,
        "status": "succeeded",
    }
    fake.balance_transactions["txn_test_123"] = {
        "id": "txn_test_123",
        "object": "balance_transaction",
        "fee": 175,
        "net": 4825,
    }
    return fake


@pytest.fixture
def make_event():
    """Return a builder for webhook event dicts with unique event ids."""
    counter = itertools.count(1)

    def _make(event_type, obj, event_id=None, account=None):
        event = {
            "id": event_id or f"evt_test_{next(counter)}",
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        }
        if account:
            event["account"] = account
        return event

    return _make
