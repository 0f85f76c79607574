"""
Uniform result envelope returned by every gateway operation.

The envelope is a dumb data carrier: it applies defaults but never
validates. Whoever builds it decides what the result means.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from paygate.models.enums import DEFAULT_CURRENCY, PaymentStatus


@dataclass
class PaymentResponse:
    """Success/failure result of a payment operation on one gateway."""

    successful: bool
    gateway_name: str
    transaction_id: Optional[str] = None
    status: str = PaymentStatus.UNKNOWN.value
    amount: Any = 0
    currency: str = DEFAULT_CURRENCY
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    payment_url: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    raw_data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def _build(cls, successful: bool, gateway_name: str, data: Mapping[str, Any]) -> "PaymentResponse":
        raw = data.get("raw_data")
        return cls(
            successful=successful,
            gateway_name=gateway_name,
            transaction_id=data.get("transaction_id"),
            status=data.get("status") or PaymentStatus.UNKNOWN.value,
            amount=data.get("amount") if data.get("amount") is not None else 0,
            currency=data.get("currency") or DEFAULT_CURRENCY,
            error_message=data.get("error_message"),
            error_code=data.get("error_code"),
            payment_url=data.get("payment_url"),
            metadata=dict(data.get("metadata") or {}),
            raw_data=dict(raw) if isinstance(raw, Mapping) else dict(data),
        )

    @classmethod
    def success(cls, gateway_name: str, data: Optional[Mapping[str, Any]] = None) -> "PaymentResponse":
        response = cls._build(True, gateway_name, data or {})
        response.error_message = None
        response.error_code = None
        return response

    @classmethod
    def failure(
        cls,
        gateway_name: str,
        error_message: str,
        error_code: Optional[str] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> "PaymentResponse":
        merged = dict(data or {})
        merged["error_message"] = error_message
        merged["error_code"] = str(error_code) if error_code is not None else None
        response = cls._build(False, gateway_name, merged)
        if "raw_data" not in (data or {}):
            # Keep the provider payload untouched by the error fields.
            response.raw_data = dict(data or {})
        return response

    def to_dict(self) -> dict[str, Any]:
        return {
            "successful": self.successful,
            "transaction_id": self.transaction_id,
            "status": self.status,
            "amount": self.amount,
            "currency": self.currency,
            "gateway_name": self.gateway_name,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "payment_url": self.payment_url,
            "metadata": self.metadata,
            "raw_data": self.raw_data,
        }
