"""
Abstract payment gateway interface.

All payment gateways (CinetPay, Bizao, Winipayer) implement PaymentGateway.
HTTP dispatch and operation logging live in GatewayClient; each gateway
owns one as `self.http`.
"""

import hmac
import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence

import httpx

from paygate.engine.retry import PaymentError
from paygate.models.enums import DEFAULT_CURRENCY, Environment, ErrorCode
from paygate.models.response import PaymentResponse

REQUIRED_REQUEST_FIELDS = ("amount", "currency", "description", "return_url", "cancel_url")
REDACTED_FIELDS = {"apikey", "api_key", "client_secret", "signature", "access_token", "authorization"}
_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")


def _parse_amount(value: Any) -> Any:
    """Decimal for numeric input; anything unparseable is kept as given for check_request to reject."""
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return value


@dataclass
class PaymentRequest:
    """Normalized request to initialize a payment."""

    amount: Optional[Decimal] = None  # Unparseable input is kept as given and rejected by check_request
    currency: Optional[str] = None
    description: Optional[str] = None
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    notify_url: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_name: Optional[str] = None
    transaction_id: Optional[str] = None  # Caller reference; generated per gateway when absent
    extra: dict[str, Any] = field(default_factory=dict)  # Provider-specific: lang, channels, ...

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PaymentRequest":
        known = {name for name in cls.__dataclass_fields__ if name != "extra"}
        return cls(
            amount=_parse_amount(data.get("amount")),
            extra={k: v for k, v in data.items() if k not in known},
            **{k: data.get(k) for k in known if k != "amount"},
        )

    def missing_field(self) -> Optional[str]:
        """Name of the first required field that is absent or empty."""
        for name in REQUIRED_REQUEST_FIELDS:
            if not getattr(self, name):
                return name
        return None

    def to_log(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "amount": str(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "description": self.description,
        }


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable configuration for one gateway."""

    name: str
    enabled: bool = True
    priority: int = 999
    environment: str = "production"
    base_url: str = ""
    timeout: float = 30.0
    webhook_url: Optional[str] = None
    currency: str = DEFAULT_CURRENCY
    credentials: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "GatewayConfig":
        """
        Raises:
            InvalidConfiguration: priority or timeout is not a number.
        """
        known = {"enabled", "priority", "environment", "base_url", "timeout", "webhook_url", "currency"}
        try:
            priority = int(data.get("priority") if data.get("priority") is not None else 999)
            timeout = float(data.get("timeout") or 30)
        except (TypeError, ValueError) as e:
            raise PaymentError.invalid_configuration(name, f"priority and timeout must be numeric ({e})") from e

        return cls(
            name=name,
            enabled=bool(data.get("enabled", True)),
            priority=priority,
            environment=str(data.get("environment") or "production"),
            base_url=(data.get("base_url") or "").rstrip("/"),
            timeout=timeout,
            webhook_url=data.get("webhook_url"),
            currency=data.get("currency") or DEFAULT_CURRENCY,
            credentials={k: v for k, v in data.items() if k not in known},
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a config field by name, credentials included."""
        if key in self.credentials:
            return self.credentials[key]
        return getattr(self, key, default)

    @property
    def is_test_mode(self) -> bool:
        return self.environment.lower() in (Environment.TEST.value, Environment.SANDBOX.value, "dev")


@dataclass
class GatewayReply:
    """Decoded HTTP reply from a provider."""

    status_code: int
    body: dict[str, Any]


def require_config(config: GatewayConfig, fields: Sequence[str]) -> None:
    """Raise InvalidConfiguration naming the first missing or empty field."""
    for name in fields:
        if not config.get(name):
            raise PaymentError.invalid_configuration(
                config.name, f"Missing required configuration field: {name}"
            )


def redact(data: Mapping[str, Any]) -> dict[str, Any]:
    return {k: ("***" if k.lower() in REDACTED_FIELDS else v) for k, v in data.items()}


def signature_value(value: Any) -> str:
    """Render a payload value the way providers concatenate it for signing."""
    if value is None or value is False:
        return ""
    if value is True:
        return "1"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return str(int(value))
    return str(value)


def signatures_match(expected: str, supplied: Any) -> bool:
    """Constant-time comparison of a computed hex digest with a supplied one."""
    if not isinstance(supplied, str):
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


def json_amount(amount: Any) -> Any:
    """Amount as a JSON-friendly number (integral amounts stay integers)."""
    if amount is None:
        return None
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def new_reference(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:16]}"


class GatewayClient:
    """
    HTTP dispatch and operation logging for a single gateway.

    Owns one httpx.AsyncClient (unless one is injected). Transport failures
    become NetworkError; non-2xx replies are handed back when their body is
    JSON so the gateway can map them, and raised as NetworkError otherwise.
    """

    def __init__(
        self,
        config: GatewayConfig,
        logger: logging.Logger,
        client: Optional[httpx.AsyncClient] = None,
        log_enabled: bool = True,
        log_level: int = logging.INFO,
    ):
        self.config = config
        self.logger = logger
        self.log_enabled = log_enabled
        self.log_level = log_level
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout, connect=10.0)
        )

    def url(self, path: str) -> str:
        return f"{self.config.base_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> GatewayReply:
        url = self.url(path)
        context = {"url": url, "method": method}
        request_headers = {"Accept": "application/json"}
        if json is not None:
            request_headers["Content-Type"] = "application/json"
        request_headers.update(headers or {})

        try:
            response = await self._client.request(
                method,
                url,
                json=json,
                headers=request_headers,
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.TimeoutException as e:
            raise PaymentError.network_error(self.config.name, f"timeout: {e}", context, code=504) from e
        except httpx.HTTPError as e:
            raise PaymentError.network_error(self.config.name, str(e) or type(e).__name__, context) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success:
            return GatewayReply(response.status_code, body if isinstance(body, dict) else {})

        if not isinstance(body, dict):
            context["status_code"] = response.status_code
            raise PaymentError.network_error(
                self.config.name,
                f"HTTP {response.status_code} with unreadable body",
                context,
                code=502 if response.status_code >= 500 else 503,
            )
        return GatewayReply(response.status_code, body)

    def log_operation(
        self,
        operation: str,
        data: Mapping[str, Any],
        response: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if not self.log_enabled:
            return
        self.logger.log(
            self.log_level,
            "Payment operation %s on %s | data=%s response=%s",
            operation,
            self.config.name,
            redact(data),
            redact(response) if response else {},
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class PaymentGateway(ABC):
    """Abstract base class for payment gateways."""

    #: Config fields that must be present to sign or authenticate requests.
    required_config: Sequence[str] = ("base_url",)
    #: Prefix for generated transaction references.
    reference_prefix: str = "PG_"

    def __init__(
        self,
        config: GatewayConfig,
        *,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
        log_enabled: bool = True,
        log_level: int = logging.INFO,
    ):
        require_config(config, self.required_config)
        self._config = config
        self.http = GatewayClient(
            config,
            logger or logging.getLogger(f"paygate.gateways.{config.name}"),
            client=client,
            log_enabled=log_enabled,
            log_level=log_level,
        )

    @abstractmethod
    async def initialize_payment(self, request: PaymentRequest) -> PaymentResponse:
        """
        Start a payment with the provider.

        Returns a failure envelope for missing/invalid request fields or a
        provider-reported rejection.

        Raises:
            NetworkError: On transport failure (retried by the orchestrator).
        """
        ...

    @abstractmethod
    async def verify_payment(self, transaction_id: str) -> PaymentResponse:
        """Query the provider for the current status of a transaction."""
        ...

    @abstractmethod
    async def process_webhook(self, payload: Mapping[str, Any]) -> PaymentResponse:
        """Check a notification's signature and map it onto the envelope."""
        ...

    async def health_check(self) -> bool:
        """Explicit liveness probe. Without a provider probe, falls back to config."""
        return self.is_available()

    def is_available(self) -> bool:
        return self._config.enabled and bool(self._config.base_url)

    def is_enabled(self) -> bool:
        return self._config.enabled

    def get_priority(self) -> int:
        return self._config.priority

    def get_name(self) -> str:
        return self._config.name

    def get_config(self) -> GatewayConfig:
        return self._config

    async def aclose(self) -> None:
        await self.http.aclose()

    def check_request(self, request: PaymentRequest) -> Optional[PaymentResponse]:
        """Failure envelope for an unusable request, None when it can be sent."""
        missing = request.missing_field()
        if missing:
            return PaymentResponse.failure(
                self.get_name(), f"Missing required field: {missing}", ErrorCode.MISSING_FIELD.value
            )
        try:
            amount = Decimal(str(request.amount))
        except InvalidOperation:
            amount = None
        if amount is None or not amount.is_finite() or amount <= 0:
            return PaymentResponse.failure(
                self.get_name(), f"Invalid amount: {request.amount}", ErrorCode.INVALID_AMOUNT.value
            )
        if not _CURRENCY_RE.match(str(request.currency)):
            return PaymentResponse.failure(
                self.get_name(), f"Invalid currency: {request.currency}", ErrorCode.INVALID_CURRENCY.value
            )
        return None

    def reference_for(self, request: PaymentRequest) -> str:
        return request.transaction_id or new_reference(self.reference_prefix)
