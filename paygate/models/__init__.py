from paygate.models.enums import DEFAULT_CURRENCY, Environment, ErrorCode, PaymentStatus
from paygate.models.response import PaymentResponse
from paygate.models.transaction import AuditLog, Base, GatewayHealth, PaymentTransaction

__all__ = [
    "Base",
    "PaymentTransaction",
    "GatewayHealth",
    "AuditLog",
    "DEFAULT_CURRENCY",
    "Environment",
    "ErrorCode",
    "PaymentStatus",
    "PaymentResponse",
]
