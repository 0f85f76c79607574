"""Application configuration via environment variables."""

import logging
from typing import Any, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./paygate.db"
    log_level: str = "INFO"

    # Orchestration
    payment_default_gateway: str = "cinetpay"
    payment_failover_enabled: bool = True
    payment_max_retries: int = 3
    payment_retry_delay: float = 2.0  # seconds
    payment_exponential_backoff: bool = True
    payment_preferred_failover: bool = True  # preferred gateway may fall through on faults

    # Gateway operation logging
    payment_log_enabled: bool = True
    payment_log_level: str = "INFO"

    # CinetPay
    cinetpay_enabled: bool = True
    cinetpay_priority: int = 1
    cinetpay_api_key: Optional[str] = None
    cinetpay_site_id: Optional[str] = None
    cinetpay_base_url: str = "https://api-checkout.cinetpay.com/v2"
    cinetpay_currency: str = "XOF"
    cinetpay_timeout: float = 30
    cinetpay_webhook_url: Optional[str] = None
    cinetpay_environment: str = "test"

    # Bizao
    bizao_enabled: bool = True
    bizao_priority: int = 2
    bizao_client_id: Optional[str] = None
    bizao_client_secret: Optional[str] = None
    bizao_base_url: str = "https://api.bizao.com"
    bizao_currency: str = "XOF"
    bizao_timeout: float = 30
    bizao_webhook_url: Optional[str] = None
    bizao_environment: str = "sandbox"

    # Winipayer
    winipayer_enabled: bool = True
    winipayer_priority: int = 3
    winipayer_merchant_id: Optional[str] = None
    winipayer_api_key: Optional[str] = None
    winipayer_base_url: str = "https://api.winipayer.com"
    winipayer_currency: str = "XOF"
    winipayer_timeout: float = 30
    winipayer_webhook_url: Optional[str] = None
    winipayer_environment: str = "test"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def _gateway(self, name: str, *credentials: str) -> dict[str, Any]:
        section = {
            field: getattr(self, f"{name}_{field}")
            for field in ("enabled", "priority", "base_url", "currency", "timeout", "webhook_url", "environment")
        }
        section.update({field: getattr(self, f"{name}_{field}") for field in credentials})
        return section

    def payment_config(self) -> dict[str, Any]:
        """The config mapping PaymentManager is built from."""
        return {
            "default": self.payment_default_gateway,
            "failover": {
                "enabled": self.payment_failover_enabled,
                "max_retries": self.payment_max_retries,
                "retry_delay": self.payment_retry_delay,
                "exponential_backoff": self.payment_exponential_backoff,
                "preferred_failover": self.payment_preferred_failover,
            },
            "gateways": {
                "cinetpay": self._gateway("cinetpay", "api_key", "site_id"),
                "bizao": self._gateway("bizao", "client_id", "client_secret"),
                "winipayer": self._gateway("winipayer", "merchant_id", "api_key"),
            },
        }

    @property
    def gateway_log_level(self) -> int:
        return getattr(logging, self.payment_log_level.upper(), logging.INFO)


settings = Settings()
