"""
Gateway registry.

Holds the constructed gateways keyed by name, in configuration order.
Priority order is never stored: available() sorts on every call, so ties
keep their configuration order.

A gateway whose configuration is incomplete is logged and left out; it
never stops the other gateways from starting.
"""

import logging
from typing import Any, Callable, Mapping, Optional

from paygate.engine.retry import InvalidConfiguration
from paygate.gateways.base import GatewayConfig, PaymentGateway

logger = logging.getLogger("paygate.registry")

GatewayFactory = Callable[[type[PaymentGateway], GatewayConfig], PaymentGateway]


class GatewayRegistry:
    def __init__(self, gateways: Optional[Mapping[str, PaymentGateway]] = None):
        self._gateways: dict[str, PaymentGateway] = dict(gateways or {})

    @classmethod
    def from_config(
        cls,
        gateways_config: Mapping[str, Mapping[str, Any]],
        gateway_classes: Mapping[str, type[PaymentGateway]],
        factory: Optional[GatewayFactory] = None,
    ) -> "GatewayRegistry":
        """
        Build gateways from the "gateways" config section.

        Args:
            gateways_config: {name: {enabled, priority, base_url, credentials...}}.
            gateway_classes: Known gateway implementations by name.
            factory: Optional constructor hook (used to inject HTTP clients
                and loggers); defaults to calling the class with the config.
        """
        build = factory or (lambda gateway_class, config: gateway_class(config))
        gateways: dict[str, PaymentGateway] = {}

        for name, raw in gateways_config.items():
            gateway_class = gateway_classes.get(name)
            if gateway_class is None:
                logger.warning("Skipping unknown gateway %r (known: %s)", name, ", ".join(gateway_classes))
                continue

            try:
                config = GatewayConfig.from_mapping(name, raw or {})
                if not config.enabled:
                    logger.info("Gateway %s is disabled, not registering it", name)
                    continue
                gateways[name] = build(gateway_class, config)
            except InvalidConfiguration as e:
                logger.error("Failed to initialize gateway %s: %s", name, e)
                continue

            logger.info("Registered gateway %s (priority=%d, env=%s)", name, config.priority, config.environment)

        return cls(gateways)

    def get(self, name: str) -> Optional[PaymentGateway]:
        return self._gateways.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._gateways

    def __len__(self) -> int:
        return len(self._gateways)

    def names(self) -> list[str]:
        return list(self._gateways)

    def all(self) -> dict[str, PaymentGateway]:
        """Every registered gateway, in configuration order."""
        return dict(self._gateways)

    def available(self) -> dict[str, PaymentGateway]:
        """Enabled, configured gateways in ascending priority (stable on ties)."""
        candidates = [
            (name, gateway)
            for name, gateway in self._gateways.items()
            if gateway.is_enabled() and gateway.is_available()
        ]
        candidates.sort(key=lambda item: item[1].get_priority())
        return dict(candidates)

    async def aclose(self) -> None:
        for gateway in self._gateways.values():
            await gateway.aclose()
