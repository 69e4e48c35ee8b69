"""Enumeration types used throughout the DirigIA API.

Enumerations make it easier to constrain the values that can be
stored in the database or passed through the API.  Database columns
store the lower/upper-case *values* shown here, which match what the
client and the payment providers exchange.
"""

from enum import Enum


class PlanType(str, Enum):
    """Entitlement tier of a profile."""

    FREE = "free"
    PREMIUM = "premium"


class BillingPlan(str, Enum):
    """Purchasable premium period."""

    MONTHLY = "monthly"
    ANNUAL = "annual"


class PaymentStatus(str, Enum):
    """Lifecycle of a payment row.

    PENDING -> PAID and PENDING -> EXPIRED are the only transitions.
    """

    PENDING = "PENDING"
    PAID = "PAID"
    EXPIRED = "EXPIRED"


class PaymentMethod(str, Enum):
    """Payment method requested at checkout or reported by a webhook."""

    PIX = "PIX"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    CAKTO = "CAKTO"


class PaymentProvider(str, Enum):
    ABACATEPAY = "abacatepay"
    CAKTO = "cakto"


class PaymentEventKind(str, Enum):
    """Provider-independent webhook event categories."""

    CHECKOUT_CREATED = "checkout_created"
    PURCHASE_APPROVED = "purchase_approved"
    REFUNDED = "refunded"
    CHARGEBACK = "chargeback"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


class CaptureMode(str, Enum):
    """Input method whose permission prompt the client primes."""

    CAMERA = "camera"
    FILE = "file"


class ExportFormat(str, Enum):
    TXT = "txt"
    PDF = "pdf"


class ErrorKind(str, Enum):
    """Stable categories for client-facing failures."""

    VALIDATION = "validation"
    UPSTREAM = "upstream"
    ENTITLEMENT = "entitlement"
    PERSISTENCE = "persistence"
    AUTH = "auth"
    NOT_FOUND = "not_found"
