# Models package — import all models here so Alembic can discover them.

from regpay.models.tenant import Tenant  # noqa: F401
from regpay.models.user import User  # noqa: F401
from regpay.models.registration import (  # noqa: F401
    EventRegistration,
    RegistrationTransferCode,
)
from regpay.models.purchase import Purchase  # noqa: F401
from regpay.models.payment import StripePayment  # noqa: F401
from regpay.models.transaction import Transaction  # noqa: F401
from regpay.models.activity_log import ActivityLog  # noqa: F401
from regpay.models.stripe_event import StripeEvent  # noqa: F401
