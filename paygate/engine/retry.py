"""
Bounded retry with exponential backoff for single-gateway dispatch.

Every call the orchestrator makes to one gateway goes through with_retry.
Two kinds of outcome are retried:

  - failure envelopes whose error code is not in NON_RETRIABLE_ERROR_CODES
  - raised PaymentErrors whose code is in RETRIABLE_FAULT_CODES (network class)

Everything else (success, non-retriable failure, non-retriable fault) is
returned or raised on the spot.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from paygate.models.enums import ErrorCode
from paygate.models.response import PaymentResponse

logger = logging.getLogger("paygate.retry")

RETRIABLE_FAULT_CODES = {500, 502, 503, 504}
NON_RETRIABLE_ERROR_CODES = {
    ErrorCode.INVALID_AMOUNT.value,
    ErrorCode.INVALID_CURRENCY.value,
    ErrorCode.INVALID_CONFIGURATION.value,
    ErrorCode.MISSING_FIELD.value,
    ErrorCode.INVALID_SIGNATURE.value,
}

Sleep = Callable[[float], Awaitable[Any]]


class PaymentError(Exception):
    """
    Base fault for payment operations.

    Carries a numeric code used for retry classification (400 = config,
    500/502/503/504 = network class), the gateway it came from ("all" for
    aggregate failures) and optional structured context.
    """

    default_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        gateway_name: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else self.default_code
        self.gateway_name = gateway_name
        self.context = context or {}

    @property
    def retriable(self) -> bool:
        return self.code in RETRIABLE_FAULT_CODES

    @classmethod
    def gateway_failure(
        cls, gateway_name: str, message: str, context: Optional[dict[str, Any]] = None
    ) -> "GatewayFailure":
        return GatewayFailure(
            f"Gateway '{gateway_name}' failed: {message}",
            gateway_name=gateway_name,
            context=context,
        )

    @classmethod
    def invalid_configuration(cls, gateway_name: str, message: str) -> "InvalidConfiguration":
        return InvalidConfiguration(
            f"Invalid configuration for gateway '{gateway_name}': {message}",
            gateway_name=gateway_name,
        )

    @classmethod
    def network_error(
        cls,
        gateway_name: str,
        message: str,
        context: Optional[dict[str, Any]] = None,
        code: int = 503,
    ) -> "NetworkError":
        return NetworkError(
            f"Network error for gateway '{gateway_name}': {message}",
            code=code,
            gateway_name=gateway_name,
            context=context,
        )


class GatewayFailure(PaymentError):
    """A gateway (or every gateway, for "all") could not serve the operation."""

    default_code = 500


class InvalidConfiguration(PaymentError):
    """Gateway configuration is missing a required field or names an unknown gateway."""

    default_code = 400


class NetworkError(PaymentError):
    """Transport-level failure talking to a provider (timeout, connection, unreadable error)."""

    default_code = 503


@dataclass(frozen=True)
class FailoverPolicy:
    """Retry and failover knobs loaded from the "failover" config section."""

    enabled: bool = True
    max_retries: int = 3
    retry_delay: float = 2.0
    exponential_backoff: bool = True
    preferred_failover: bool = True

    @classmethod
    def from_mapping(cls, data: Optional[dict[str, Any]]) -> "FailoverPolicy":
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", True)),
            max_retries=int(data.get("max_retries", 3)),
            retry_delay=float(data.get("retry_delay", 2)),
            exponential_backoff=bool(data.get("exponential_backoff", True)),
            preferred_failover=bool(data.get("preferred_failover", True)),
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry that follows `attempt` (1-indexed)."""
        if self.exponential_backoff:
            return self.retry_delay * (2 ** (attempt - 1))
        return self.retry_delay

    def should_retry_response(self, response: PaymentResponse, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        return response.error_code not in NON_RETRIABLE_ERROR_CODES

    def should_retry_error(self, error: PaymentError, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        return error.retriable


async def with_retry(
    func: Callable[..., Awaitable[PaymentResponse]],
    *args: Any,
    gateway_name: str,
    policy: FailoverPolicy,
    sleep: Sleep = asyncio.sleep,
    **kwargs: Any,
) -> PaymentResponse:
    """
    Call a gateway operation up to `policy.max_retries` times.

    Args:
        func: Bound async gateway operation (e.g. gateway.initialize_payment).
        gateway_name: Used for logging and for the exhaustion fault.
        policy: Retry limits and backoff shape.
        sleep: Awaitable sleep primitive.

    Returns:
        The first successful envelope, or a failure envelope that is not
        worth retrying (or the last one once attempts run out).

    Raises:
        PaymentError: Non-retriable fault, the last fault after exhausting
            attempts, or a GatewayFailure when no attempt was made at all.
    """
    last_error: Optional[PaymentError] = None

    for attempt in range(1, policy.max_retries + 1):
        try:
            response = await func(*args, **kwargs)
        except PaymentError as e:
            last_error = e
            if not policy.should_retry_error(e, attempt):
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                "Gateway %s raised on attempt %d/%d: %s; retrying in %.1fs",
                gateway_name,
                attempt,
                policy.max_retries,
                e,
                delay,
            )
            await sleep(delay)
            continue

        if response.successful:
            return response

        if not policy.should_retry_response(response, attempt):
            return response

        delay = policy.delay_for(attempt)
        logger.warning(
            "Gateway %s returned failure on attempt %d/%d (%s); retrying in %.1fs",
            gateway_name,
            attempt,
            policy.max_retries,
            response.error_code or response.error_message,
            delay,
        )
        await sleep(delay)

    if last_error is not None:
        raise last_error
    raise PaymentError.gateway_failure(gateway_name, "all retry attempts failed")
