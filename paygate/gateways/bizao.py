"""
Bizao payment gateway (bizao.com).

Every payment call needs a bearer token from a client-credentials exchange.
The token is cached in memory with its expiry; a 401 on a payment call
drops it, re-authenticates once and repeats the call. A token endpoint that
refuses the credentials is a configuration problem and is reported as a
non-retriable failure. A 429 or 5xx token reply is raised as a NetworkError,
the same as a transport failure.
"""

import hashlib
import time
from typing import Any, Awaitable, Callable, Mapping, Optional

from paygate.engine.retry import PaymentError
from paygate.gateways.base import (
    GatewayReply,
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
    "SUCCESSFUL": PaymentStatus.COMPLETED,
    "PENDING": PaymentStatus.PENDING,
    "INPROGRESS": PaymentStatus.PENDING,
    "FAILED": PaymentStatus.FAILED,
    "CANCELLED": PaymentStatus.CANCELLED,
    "EXPIRED": PaymentStatus.EXPIRED,
}

SIGNED_FIELDS = ("merchant_reference", "amount", "currency", "payment_status")
TOKEN_EXPIRY_SKEW = 30.0  # seconds shaved off expires_in


class TokenRejected(Exception):
    """The token endpoint refused the client credentials."""


class BizaoGateway(PaymentGateway):
    required_config = ("client_id", "client_secret", "base_url")
    reference_prefix = "BZ_"

    def __init__(self, *args: Any, clock: Callable[[], float] = time.monotonic, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._clock = clock
        self._access_token: Optional[str] = None
        self._token_expires_at: Optional[float] = None

    # Token handling

    def _token_valid(self) -> bool:
        if not self._access_token:
            return False
        return self._token_expires_at is None or self._clock() < self._token_expires_at

    def invalidate_token(self) -> None:
        self._access_token = None
        self._token_expires_at = None

    async def ensure_access_token(self) -> str:
        """
        Return a cached token or fetch a new one.

        Raises:
            TokenRejected: The endpoint refused the credentials.
            NetworkError: The endpoint could not be reached, or answered
                with a 429 or 5xx reply.
        """
        if self._token_valid():
            return self._access_token

        config = self.get_config()
        reply = await self.http.request("POST", "/v1/auth/token", json={
            "client_id": config.get("client_id"),
            "client_secret": config.get("client_secret"),
            "grant_type": "client_credentials",
        })

        token = reply.body.get("access_token")
        if not token and (reply.status_code == 429 or reply.status_code >= 500):
            raise PaymentError.network_error(
                self.get_name(),
                f"token endpoint unavailable (HTTP {reply.status_code})",
                {"status_code": reply.status_code, "error": reply.body.get("error")},
                code=502 if reply.status_code >= 500 else 503,
            )
        if not token:
            self.http.logger.error(
                "Bizao token request rejected (HTTP %d): %s",
                reply.status_code,
                reply.body.get("error_description") or reply.body.get("error") or reply.body.get("message"),
            )
            raise TokenRejected(reply.body.get("error") or f"HTTP {reply.status_code}")

        self._access_token = token
        expires_in = reply.body.get("expires_in")
        self._token_expires_at = (
            self._clock() + max(float(expires_in) - TOKEN_EXPIRY_SKEW, 0.0) if expires_in else None
        )
        return token

    async def _authorized(self, call: Callable[[dict[str, str]], Awaitable[GatewayReply]]) -> GatewayReply:
        token = await self.ensure_access_token()
        reply = await call({"Authorization": f"Bearer {token}"})
        if reply.status_code != 401:
            return reply

        self.http.logger.info("Bizao rejected the cached token, re-authenticating")
        self.invalidate_token()
        token = await self.ensure_access_token()
        return await call({"Authorization": f"Bearer {token}"})

    def _token_failure(self) -> PaymentResponse:
        return PaymentResponse.failure(
            self.get_name(), "Failed to obtain access token", ErrorCode.INVALID_CONFIGURATION.value
        )

    # Operations

    async def initialize_payment(self, request: PaymentRequest) -> PaymentResponse:
        self.http.log_operation("initialize_payment", request.to_log())

        rejected = self.check_request(request)
        if rejected:
            return rejected

        config = self.get_config()
        currency = request.currency or config.currency
        payload = {
            "amount": json_amount(request.amount),
            "currency": currency,
            "description": request.description,
            "merchant_reference": self.reference_for(request),
            "return_url": request.return_url,
            "cancel_url": request.cancel_url,
            "notify_url": request.notify_url or config.webhook_url,
            "customer_email": request.customer_email,
            "customer_phone": request.customer_phone,
            "customer_name": request.customer_name,
        }

        try:
            reply = await self._authorized(
                lambda auth: self.http.request("POST", "/v1/payment/init", json=payload, headers=auth)
            )
        except TokenRejected:
            return self._token_failure()
        except PaymentError as e:
            self.http.log_operation("initialize_payment_error", request.to_log(), {"error": str(e)})
            raise

        body = reply.body
        self.http.log_operation("initialize_payment_response", request.to_log(), body)

        if body.get("status") == "success":
            data = body.get("data") or {}
            return PaymentResponse.success(self.get_name(), {
                "transaction_id": payload["merchant_reference"],
                "status": PaymentStatus.PENDING.value,
                "amount": request.amount,
                "currency": currency,
                "payment_url": data.get("payment_url"),
                "metadata": {
                    "bizao_transaction_id": data.get("transaction_id"),
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

        try:
            reply = await self._authorized(
                lambda auth: self.http.request("GET", f"/v1/payment/status/{transaction_id}", headers=auth)
            )
        except TokenRejected:
            return self._token_failure()
        except PaymentError as e:
            self.http.log_operation("verify_payment_error", log_data, {"error": str(e)})
            raise

        body = reply.body
        self.http.log_operation("verify_payment_response", log_data, body)

        if body.get("status") == "success":
            data = body.get("data") or {}
            return PaymentResponse.success(self.get_name(), {
                "transaction_id": transaction_id,
                "status": map_status(STATUS_MAP, data.get("payment_status")),
                "amount": data.get("amount", 0),
                "currency": data.get("currency") or self.get_config().currency,
                "metadata": {
                    "bizao_transaction_id": data.get("transaction_id"),
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
            "transaction_id": payload.get("merchant_reference"),
            "status": map_status(STATUS_MAP, payload.get("payment_status")),
            "amount": payload.get("amount", 0),
            "currency": payload.get("currency") or self.get_config().currency,
            "metadata": {
                "bizao_transaction_id": payload.get("transaction_id"),
                "payment_method": payload.get("payment_method"),
                "operator": payload.get("operator"),
            },
            "raw_data": dict(payload),
        })

    async def health_check(self) -> bool:
        """Bizao is considered live when a token can be obtained."""
        if not self.is_available():
            return False
        try:
            await self.ensure_access_token()
        except (TokenRejected, PaymentError) as e:
            self.http.logger.warning("Bizao health check failed: %s", e)
            return False
        return True

    def sign(self, payload: Mapping[str, Any]) -> str:
        parts = [signature_value(payload.get(name)) for name in SIGNED_FIELDS]
        parts.append(str(self.get_config().get("client_secret")))
        return hashlib.sha256("".join(parts).encode("utf-8")).hexdigest()

    def verify_signature(self, payload: Mapping[str, Any]) -> bool:
        return signatures_match(self.sign(payload), payload.get("signature"))
