"""Wires settings into a PaymentManager (used by the API and the diagnose CLI)."""

import logging
from typing import Optional

from fastapi import Request

from paygate.config import Settings, settings as default_settings
from paygate.engine.orchestrator import PaymentManager
from paygate.gateways.base import GatewayConfig, PaymentGateway


def build_payment_manager(settings: Optional[Settings] = None) -> PaymentManager:
    settings = settings or default_settings

    def factory(gateway_class: type[PaymentGateway], config: GatewayConfig) -> PaymentGateway:
        return gateway_class(
            config,
            logger=logging.getLogger(f"paygate.gateways.{config.name}"),
            log_enabled=settings.payment_log_enabled,
            log_level=settings.gateway_log_level,
        )

    return PaymentManager(settings.payment_config(), gateway_factory=factory)


def get_payment_manager(request: Request) -> PaymentManager:
    """FastAPI dependency: the manager built at startup."""
    return request.app.state.payment_manager
