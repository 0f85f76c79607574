"""Tests for settings rendering and the diagnose command."""

import logging

import pytest

from paygate.config import Settings
from paygate.diagnose import describe_configuration, main, run


def make_settings(**overrides):
    return Settings(_env_file=None, **overrides)


def test_payment_config_shape():
    settings = make_settings(
        payment_default_gateway="bizao",
        payment_max_retries=5,
        payment_exponential_backoff=False,
        bizao_client_id="id",
        bizao_client_secret="secret",
    )

    config = settings.payment_config()

    assert config["default"] == "bizao"
    assert config["failover"] == {
        "enabled": True,
        "max_retries": 5,
        "retry_delay": 2.0,
        "exponential_backoff": False,
        "preferred_failover": True,
    }
    assert list(config["gateways"]) == ["cinetpay", "bizao", "winipayer"]
    bizao = config["gateways"]["bizao"]
    assert bizao["client_id"] == "id"
    assert bizao["client_secret"] == "secret"
    assert bizao["priority"] == 2
    assert bizao["environment"] == "sandbox"


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("PAYMENT_FAILOVER_ENABLED", "false")
    monkeypatch.setenv("WINIPAYER_PRIORITY", "0")
    monkeypatch.setenv("PAYMENT_LOG_LEVEL", "debug")

    settings = make_settings()

    assert settings.payment_config()["failover"]["enabled"] is False
    assert settings.payment_config()["gateways"]["winipayer"]["priority"] == 0
    assert settings.gateway_log_level == logging.DEBUG


def test_describe_configuration_flags_missing_credentials():
    settings = make_settings(cinetpay_api_key="key")

    lines = describe_configuration(settings, only="cinetpay")
    text = "\n".join(lines)

    assert "Gateway cinetpay" in text
    assert "bizao" not in text
    assert any(line.split() == ["api_key", "ok"] for line in lines)
    assert any(line.split() == ["site_id", "MISSING"] for line in lines)


@pytest.mark.asyncio
async def test_run_without_credentials_reports_failure(capsys):
    code = await run(make_settings())

    out = capsys.readouterr().out
    assert code == 1
    assert "(none)" in out


@pytest.mark.asyncio
async def test_run_with_probe(capsys):
    settings = make_settings(cinetpay_api_key="key", cinetpay_site_id="site")

    code = await run(settings, only="cinetpay", probe=True)

    out = capsys.readouterr().out
    assert code == 0
    lines = [line.split() for line in out.splitlines()]
    assert ["cinetpay", "priority=1", "available"] in lines
    assert ["cinetpay", "healthy"] in lines


def test_main_rejects_unknown_gateway(capsys):
    with pytest.raises(SystemExit):
        main(["--gateway", "paystack"])
