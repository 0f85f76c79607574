"""Enumerations for the payment gateway domain model."""

from enum import Enum
from typing import Any

DEFAULT_CURRENCY = "XOF"


class PaymentStatus(str, Enum):
    """Canonical payment states every provider status is mapped onto."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


class ErrorCode(str, Enum):
    """Error codes the gateways attach to failure envelopes."""

    MISSING_FIELD = "MISSING_FIELD"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_CURRENCY = "INVALID_CURRENCY"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class Environment(str, Enum):
    """Deployment environment a gateway is configured for."""

    PRODUCTION = "production"
    TEST = "test"
    SANDBOX = "sandbox"


def map_status(status_map: dict[str, PaymentStatus], provider_status: Any) -> str:
    """
    Map a provider status onto the canonical vocabulary.

    Lookups are case-insensitive. Anything the table does not know about
    (including None) becomes "unknown".

    Returns:
        A PaymentStatus value such as "completed".
    """
    if provider_status is None:
        return PaymentStatus.UNKNOWN.value
    mapped = status_map.get(str(provider_status).strip().upper())
    return mapped.value if mapped else PaymentStatus.UNKNOWN.value
