"""Stripe service — all Stripe API calls and webhook signature verification.

Responsible for:
- Verifying inbound webhook payloads against the signing secret of the
  endpoint they arrived on (platform or connected accounts)
- Fetching live payment intents, charges, balance transactions and events
- Issuing refunds

Credentials are passed in at construction; nothing here reads the global
stripe.api_key, so the platform and test setups can hold separate clients.
"""

import logging

import stripe

logger = logging.getLogger(__name__)


class WebhookVerificationError(Exception):
    """Inbound payload must be rejected with a 400 and not processed."""


class InvalidSignature(WebhookVerificationError):
    pass


class MalformedPayload(WebhookVerificationError):
    pass


class MissingConnectAccountError(RuntimeError):
    """The tenant has no Stripe connect account to scope a provider call to."""


def to_plain(obj):
    """Return a Stripe object as nested plain dicts and lists.

    Handlers and JSON columns only ever see the converted form. Plain
    values pass through unchanged.
    """
    if isinstance(obj, stripe.StripeObject):
        return obj.to_dict()
    return obj


def extract_id(value):
    """Return the id of a Stripe reference that may be a string or expanded object."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value.get("id")


# ──────────────────────────────────────────────
# Webhook Verification
# ──────────────────────────────────────────────

class WebhookVerifier:
    """Verifies webhook deliveries for one endpoint."""

    def __init__(self, secret):
        self.secret = secret

    def verify(self, payload, sig_header):
        """Verify the signature and construct the event.

        Returns the verified event as a plain dict.
        Raises InvalidSignature or MalformedPayload.
        """
        if not sig_header:
            raise InvalidSignature("Missing signature")
        if not self.secret:
            raise InvalidSignature("No signing secret configured for this endpoint")

        try:
            event = stripe.Webhook.construct_event(payload, sig_header, self.secret)
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature(str(e)) from e
        except ValueError as e:
            # construct_event raises ValueError when the body is not JSON
            raise MalformedPayload(str(e)) from e

        event = to_plain(event)
        data = event.get("data")
        if (
            not event.get("id")
            or not event.get("type")
            or not isinstance(data, dict)
            or not isinstance(data.get("object"), dict)
        ):
            raise MalformedPayload("Event is missing id, type or data.object")
        return event


# ──────────────────────────────────────────────
# Stripe API
# ──────────────────────────────────────────────

class StripeGateway:
    """Thin client over the Stripe resources the webhook handlers need.

    Every call takes an optional connect account id; when given, the
    request is made on behalf of that connected account.
    """

    def __init__(self, api_key):
        self.api_key = api_key

    @classmethod
    def from_config(cls, config):
        return cls(config["STRIPE_SECRET_KEY"])

    def retrieve_payment_intent(self, payment_intent_id, account=None):
        return to_plain(stripe.PaymentIntent.retrieve(
            payment_intent_id, api_key=self.api_key, stripe_account=account
        ))

    def retrieve_charge(self, charge_id, account=None):
        return to_plain(stripe.Charge.retrieve(
            charge_id, api_key=self.api_key, stripe_account=account
        ))

    def retrieve_balance_transaction(self, balance_transaction_id, account=None):
        return to_plain(stripe.BalanceTransaction.retrieve(
            balance_transaction_id, api_key=self.api_key, stripe_account=account
        ))

    def create_refund(self, payment_intent_id, account=None):
        logger.info(f"Creating refund for {payment_intent_id} (account={account})")
        return to_plain(stripe.Refund.create(
            payment_intent=payment_intent_id,
            api_key=self.api_key,
            stripe_account=account,
        ))

    def retrieve_event(self, event_id, account=None):
        return to_plain(stripe.Event.retrieve(
            event_id, api_key=self.api_key, stripe_account=account
        ))

    # ── Helpers resolving possibly-expanded references ──

    def charge_for(self, latest_charge, account=None):
        """Return the charge object for an intent's latest_charge field."""
        if isinstance(latest_charge, str):
            return self.retrieve_charge(latest_charge, account)
        return latest_charge

    def balance_transaction_for(self, charge, account=None):
        """Return the balance transaction of a charge, fetching it if needed."""
        balance_transaction = charge.get("balance_transaction") if charge else None
        if isinstance(balance_transaction, str):
            return self.retrieve_balance_transaction(balance_transaction, account)
        return balance_transaction
