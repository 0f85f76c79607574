"""
Payment orchestrator: the core dispatch engine.

Decides, for every payment operation, which gateway to try, in what order
and how often. The flow for initialize_payment:

  1. Compute available gateways (enabled + configured, by priority)
  2. Preferred gateway, if the caller named one that is available
  3. Configured default gateway
  4. Every available gateway in priority order (failover)
  5. Terminal GatewayFailure("all") when nothing succeeded

Each single-gateway dispatch runs through with_retry (bounded attempts,
exponential backoff). Failover only moves on after a raised fault: a
failure envelope is a clean negative answer and is returned as-is.

Gateways are contacted strictly one after another; total latency can add up
across gateways x retries x backoff, so callers that need a bound must
apply their own timeout.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

from paygate.engine.retry import FailoverPolicy, PaymentError, Sleep, with_retry
from paygate.gateways import GATEWAY_CLASSES
from paygate.gateways.base import PaymentGateway, PaymentRequest
from paygate.models.response import PaymentResponse
from paygate.routing.registry import GatewayFactory, GatewayRegistry

logger = logging.getLogger("paygate.orchestrator")

DEFAULT_GATEWAY = "cinetpay"


class PaymentManager:
    """
    Provider-agnostic entry point for payment operations.

    Built once from the payment config mapping:
        {default, failover: {enabled, max_retries, retry_delay,
         exponential_backoff, preferred_failover}, gateways: {...}}
    """

    def __init__(
        self,
        config: Optional[Mapping[str, Any]] = None,
        *,
        registry: Optional[GatewayRegistry] = None,
        gateway_classes: Optional[Mapping[str, type[PaymentGateway]]] = None,
        gateway_factory: Optional[GatewayFactory] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        config = config or {}
        self._default_gateway: str = config.get("default") or DEFAULT_GATEWAY
        self._policy = FailoverPolicy.from_mapping(config.get("failover"))
        self._failover_enabled = self._policy.enabled
        self._sleep = sleep
        self.registry = registry or GatewayRegistry.from_config(
            config.get("gateways") or {},
            gateway_classes or GATEWAY_CLASSES,
            factory=gateway_factory,
        )

        if self._default_gateway not in self.registry:
            logger.warning("Default gateway %r is not registered", self._default_gateway)

    @property
    def policy(self) -> FailoverPolicy:
        return self._policy

    # Dispatch

    async def _try_gateway(self, name: str, operation: str, *args: Any) -> PaymentResponse:
        gateway = self.registry.get(name)
        if gateway is None:
            raise PaymentError.gateway_failure(name, "gateway not found")
        return await with_retry(
            getattr(gateway, operation),
            *args,
            gateway_name=name,
            policy=self._policy,
            sleep=self._sleep,
        )

    async def initialize_payment(
        self,
        request: PaymentRequest | Mapping[str, Any],
        preferred_gateway: Optional[str] = None,
    ) -> PaymentResponse:
        """
        Initialize a payment on the best available gateway.

        Args:
            request: PaymentRequest (or a mapping of its fields).
            preferred_gateway: Gateway to try first. Falls through to the
                normal order on a fault only when failover is enabled and
                the policy's preferred_failover flag is set.

        Returns:
            The first successful envelope, or a terminal failure envelope.

        Raises:
            GatewayFailure: No gateway available, or all gateways faulted.
            PaymentError: A fault that failover was not allowed to absorb.
        """
        if not isinstance(request, PaymentRequest):
            request = PaymentRequest.from_mapping(request)

        gateways = self.get_available_gateways()
        if not gateways:
            raise PaymentError.gateway_failure("all", "no gateways available")

        if preferred_gateway:
            if preferred_gateway in gateways:
                try:
                    return await self._try_gateway(preferred_gateway, "initialize_payment", request)
                except PaymentError as e:
                    if not (self._failover_enabled and self._policy.preferred_failover):
                        raise
                    logger.warning("Preferred gateway %s failed, falling back: %s", preferred_gateway, e)
            else:
                logger.warning("Preferred gateway %s is not available, using default order", preferred_gateway)

        if self._default_gateway in gateways:
            try:
                return await self._try_gateway(self._default_gateway, "initialize_payment", request)
            except PaymentError as e:
                if not self._failover_enabled:
                    raise
                logger.warning("Default gateway %s failed, starting failover: %s", self._default_gateway, e)

        for name in gateways:
            try:
                return await self._try_gateway(name, "initialize_payment", request)
            except PaymentError as e:
                logger.error("Gateway %s failed: %s", name, e)
                if not self._failover_enabled:
                    raise

        raise PaymentError.gateway_failure("all", "all gateways failed")

    async def verify_payment(self, transaction_id: str, gateway_name: Optional[str] = None) -> PaymentResponse:
        """
        Verify a transaction.

        With a gateway name only that gateway is asked. Otherwise every
        registered gateway is asked in configuration order, since the
        caller does not always know which one processed the transaction;
        the first answer that is not a fault wins.
        """
        if gateway_name:
            return await self._try_gateway(gateway_name, "verify_payment", transaction_id)

        for name in self.registry.names():
            try:
                return await self._try_gateway(name, "verify_payment", transaction_id)
            except PaymentError as e:
                logger.info("Gateway %s could not verify %s: %s", name, transaction_id, e)

        raise PaymentError.gateway_failure("all", "could not verify payment with any gateway")

    async def process_webhook(self, payload: Mapping[str, Any], gateway_name: str) -> PaymentResponse:
        """
        Route a provider notification to its gateway.

        One dispatch, no retry and no failover: redelivery is the
        provider's job.
        """
        gateway = self.registry.get(gateway_name)
        if gateway is None:
            raise PaymentError.gateway_failure(gateway_name, "gateway not found")
        return await gateway.process_webhook(payload)

    # Registry and policy accessors

    def get_available_gateways(self) -> dict[str, PaymentGateway]:
        return self.registry.available()

    def get_gateway(self, name: str) -> Optional[PaymentGateway]:
        return self.registry.get(name)

    def get_default_gateway(self) -> str:
        return self._default_gateway

    def set_default_gateway(self, name: str) -> None:
        if name not in self.registry:
            raise PaymentError.invalid_configuration(name, "gateway not found")
        logger.info("Default gateway changed from %s to %s", self._default_gateway, name)
        self._default_gateway = name

    def is_failover_enabled(self) -> bool:
        return self._failover_enabled

    def set_failover_enabled(self, enabled: bool) -> None:
        logger.info("Failover %s", "enabled" if enabled else "disabled")
        self._failover_enabled = enabled

    async def check_health(self, name: Optional[str] = None) -> dict[str, bool]:
        """Run the explicit health probe on one gateway, or on all of them."""
        if name is not None:
            gateway = self.registry.get(name)
            if gateway is None:
                raise PaymentError.gateway_failure(name, "gateway not found")
            targets = {name: gateway}
        else:
            targets = self.registry.all()

        results = {}
        for gateway_name, gateway in targets.items():
            results[gateway_name] = await gateway.health_check()
        return results

    async def aclose(self) -> None:
        await self.registry.aclose()
