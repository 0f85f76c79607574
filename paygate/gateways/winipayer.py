"""
Winipayer payment gateway (winipayer.com).

Requests and webhook notifications share one signing scheme: every field
except "signature", sorted by key, joined as key=value&..., followed by the
API key, hashed with sha256. Nested objects and lists (e.g. "metadata") are
left out of the signed string. Success is a boolean "success" flag.
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
    "PENDING": PaymentStatus.PENDING,
    "FAILED": PaymentStatus.FAILED,
    "CANCELLED": PaymentStatus.CANCELLED,
    "EXPIRED": PaymentStatus.EXPIRED,
}

HEALTH_TIMEOUT = 5.0


class WinipayerGateway(PaymentGateway):
    required_config = ("merchant_id", "api_key", "base_url")
    reference_prefix = "WP_"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.get_config().get('api_key')}"}

    def sign(self, data: Mapping[str, Any]) -> str:
        fields = sorted(
            ((k, v) for k, v in data.items() if k != "signature" and not isinstance(v, (Mapping, list, tuple))),
            key=lambda kv: kv[0],
        )
        message = "&".join(f"{k}={signature_value(v)}" for k, v in fields)
        message += str(self.get_config().get("api_key"))
        return hashlib.sha256(message.encode("utf-8")).hexdigest()

    def verify_signature(self, payload: Mapping[str, Any]) -> bool:
        return signatures_match(self.sign(payload), payload.get("signature"))

    async def initialize_payment(self, request: PaymentRequest) -> PaymentResponse:
        self.http.log_operation("initialize_payment", request.to_log())

        rejected = self.check_request(request)
        if rejected:
            return rejected

        config = self.get_config()
        currency = request.currency or config.currency
        payload = {
            "merchant_id": config.get("merchant_id"),
            "amount": json_amount(request.amount),
            "currency": currency,
            "description": request.description,
            "reference": self.reference_for(request),
            "return_url": request.return_url,
            "cancel_url": request.cancel_url,
            "notify_url": request.notify_url or config.webhook_url,
            "customer_email": request.customer_email,
            "customer_phone": request.customer_phone,
            "customer_name": request.customer_name,
        }
        payload["signature"] = self.sign(payload)

        try:
            reply = await self.http.request("POST", "/api/payment/init", json=payload, headers=self._headers())
        except PaymentError as e:
            self.http.log_operation("initialize_payment_error", request.to_log(), {"error": str(e)})
            raise

        body = reply.body
        self.http.log_operation("initialize_payment_response", request.to_log(), body)

        if body.get("success") is True:
            data = body.get("data") or {}
            return PaymentResponse.success(self.get_name(), {
                "transaction_id": payload["reference"],
                "status": PaymentStatus.PENDING.value,
                "amount": request.amount,
                "currency": currency,
                "payment_url": data.get("payment_url"),
                "metadata": {
                    "winipayer_transaction_id": data.get("transaction_id"),
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

        payload = {"merchant_id": self.get_config().get("merchant_id"), "reference": transaction_id}
        payload["signature"] = self.sign(payload)

        try:
            reply = await self.http.request("POST", "/api/payment/status", json=payload, headers=self._headers())
        except PaymentError as e:
            self.http.log_operation("verify_payment_error", log_data, {"error": str(e)})
            raise

        body = reply.body
        self.http.log_operation("verify_payment_response", log_data, body)

        if body.get("success") is True:
            data = body.get("data") or {}
            return PaymentResponse.success(self.get_name(), {
                "transaction_id": transaction_id,
                "status": map_status(STATUS_MAP, data.get("status")),
                "amount": data.get("amount", 0),
                "currency": data.get("currency") or self.get_config().currency,
                "metadata": {
                    "winipayer_transaction_id": data.get("transaction_id"),
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
            "transaction_id": payload.get("reference"),
            "status": map_status(STATUS_MAP, payload.get("status")),
            "amount": payload.get("amount", 0),
            "currency": payload.get("currency") or self.get_config().currency,
            "metadata": {
                "winipayer_transaction_id": payload.get("transaction_id"),
                "payment_method": payload.get("payment_method"),
                "operator": payload.get("operator"),
            },
            "raw_data": dict(payload),
        })

    async def health_check(self) -> bool:
        if not self.is_available():
            return False
        try:
            reply = await self.http.request("GET", "/api/health", headers=self._headers(), timeout=HEALTH_TIMEOUT)
        except PaymentError as e:
            self.http.logger.warning("Winipayer health check failed: %s", e)
            return False
        return reply.status_code == 200 and reply.body.get("status") == "OK"
