"""
CinetPay payment gateway (cinetpay.com).

West/Central African aggregator (mobile money, cards). Result codes are
strings: "201" for a created payment, "00" for a successful status check.
Webhook notifications are signed with sha256 over a fixed tuple of fields
followed by the API key.
"""

import hashlib
from typing import Any, Mapping

from paygate.engine.retry import PaymentError
from paygate.gateways.base import (
    PaymentGateway,
    PaymentRequest,
    json_amount,
    signature_value,
    signatures_match,
)
from paygate.models.enums import ErrorCode, PaymentStatus, map_status
from paygate.models.response import PaymentResponse

STATUS_MAP = {
    "SUCCESS": PaymentStatus.COMPLETED,
    "ACCEPTED": PaymentStatus.COMPLETED,
    "PENDING": PaymentStatus.PENDING,
    "WAITING_FOR_CUSTOMER": PaymentStatus.PENDING,
    "FAILED": PaymentStatus.FAILED,
    "REFUSED": PaymentStatus.FAILED,
    "CANCELLED": PaymentStatus.CANCELLED,
    "EXPIRED": PaymentStatus.EXPIRED,
}

SIGNED_FIELDS = ("transaction_id", "amount", "currency", "status")


class CinetpayGateway(PaymentGateway):
    required_config = ("api_key", "site_id", "base_url")
    reference_prefix = "CP_"

    def _credentials(self) -> dict[str, Any]:
        config = self.get_config()
        return {"apikey": config.get("api_key"), "site_id": config.get("site_id")}

    async def initialize_payment(self, request: PaymentRequest) -> PaymentResponse:
        self.http.log_operation("initialize_payment", request.to_log())

        rejected = self.check_request(request)
        if rejected:
            return rejected

        config = self.get_config()
        currency = request.currency or config.currency
        payload = {
            **self._credentials(),
            "transaction_id": self.reference_for(request),
            "amount": json_amount(request.amount),
            "currency": currency,
            "description": request.description,
            "return_url": request.return_url,
            "cancel_url": request.cancel_url,
            "notify_url": request.notify_url or config.webhook_url,
            "lang": request.extra.get("lang", "fr"),
            "channels": request.extra.get("channels", "ALL"),
        }

        try:
            reply = await self.http.request("POST", "/payment", json=payload)
        except PaymentError as e:
            self.http.log_operation("initialize_payment_error", request.to_log(), {"error": str(e)})
            raise

        body = reply.body
        self.http.log_operation("initialize_payment_response", request.to_log(), body)

        if str(body.get("code")) == "201":
            data = body.get("data") or {}
            return PaymentResponse.success(self.get_name(), {
                "transaction_id": payload["transaction_id"],
                "status": PaymentStatus.PENDING.value,
                "amount": request.amount,
                "currency": currency,
                "payment_url": data.get("payment_url"),
                "metadata": {
                    "cinetpay_transaction_id": data.get("transaction_id"),
                    "payment_token": data.get("payment_token"),
                },
                "raw_data": body,
            })

        return PaymentResponse.failure(
            self.get_name(),
            body.get("message") or "Payment initialization failed",
            body.get("code"),
            body,
        )

    async def verify_payment(self, transaction_id: str) -> PaymentResponse:
        log_data = {"transaction_id": transaction_id}
        self.http.log_operation("verify_payment", log_data)

        payload = {**self._credentials(), "transaction_id": transaction_id}
        try:
            reply = await self.http.request("POST", "/payment/check", json=payload)
        except PaymentError as e:
            self.http.log_operation("verify_payment_error", log_data, {"error": str(e)})
            raise

        body = reply.body
        self.http.log_operation("verify_payment_response", log_data, body)

        if str(body.get("code")) == "00":
            data = body.get("data") or {}
            return PaymentResponse.success(self.get_name(), {
                "transaction_id": transaction_id,
                "status": map_status(STATUS_MAP, data.get("status")),
                "amount": data.get("amount", 0),
                "currency": data.get("currency") or self.get_config().currency,
                "metadata": {
                    "cinetpay_transaction_id": data.get("transaction_id"),
                    "payment_method": data.get("payment_method"),
                    "operator": data.get("operator"),
                },
                "raw_data": body,
            })

        return PaymentResponse.failure(
            self.get_name(),
            body.get("message") or "Payment verification failed",
            body.get("code"),
            body,
        )

    async def process_webhook(self, payload: Mapping[str, Any]) -> PaymentResponse:
        self.http.log_operation("process_webhook", payload)

        if not self.verify_signature(payload):
            return PaymentResponse.failure(
                self.get_name(), "Invalid webhook signature", ErrorCode.INVALID_SIGNATURE.value
            )

        return PaymentResponse.success(self.get_name(), {
            "transaction_id": payload.get("transaction_id"),
            "status": map_status(STATUS_MAP, payload.get("status")),
            "amount": payload.get("amount", 0),
            "currency": payload.get("currency") or self.get_config().currency,
            "metadata": {
                "cinetpay_transaction_id": payload.get("transaction_id"),
                "payment_method": payload.get("payment_method"),
                "operator": payload.get("operator"),
            },
            "raw_data": dict(payload),
        })

    def sign(self, payload: Mapping[str, Any]) -> str:
        parts = [signature_value(payload.get(name)) for name in SIGNED_FIELDS]
        parts.append(str(self.get_config().get("api_key")))
        return hashlib.sha256("".join(parts).encode("utf-8")).hexdigest()

    def verify_signature(self, payload: Mapping[str, Any]) -> bool:
        return signatures_match(self.sign(payload), payload.get("signature"))
