"""Tests for gateway registration and priority ordering."""

import logging

import pytest

from paygate.gateways import GATEWAY_CLASSES
from paygate.routing.registry import GatewayRegistry


def test_available_sorted_by_priority(gateways_config):
    gateways_config["cinetpay"]["priority"] = 3
    gateways_config["winipayer"]["priority"] = 1

    registry = GatewayRegistry.from_config(gateways_config, GATEWAY_CLASSES)

    assert list(registry.available()) == ["winipayer", "bizao", "cinetpay"]
    # Configuration order is kept for everything that is not priority-based
    assert registry.names() == ["cinetpay", "bizao", "winipayer"]


def test_priority_ties_keep_configuration_order(gateways_config):
    for section in gateways_config.values():
        section["priority"] = 5

    registry = GatewayRegistry.from_config(gateways_config, GATEWAY_CLASSES)

    assert list(registry.available()) == ["cinetpay", "bizao", "winipayer"]


def test_missing_priority_sorts_last(gateways_config):
    del gateways_config["cinetpay"]["priority"]

    registry = GatewayRegistry.from_config(gateways_config, GATEWAY_CLASSES)

    assert registry.get("cinetpay").get_priority() == 999
    assert list(registry.available())[-1] == "cinetpay"


def test_disabled_gateway_never_listed(gateways_config):
    gateways_config["bizao"]["enabled"] = False

    registry = GatewayRegistry.from_config(gateways_config, GATEWAY_CLASSES)

    assert "bizao" not in registry
    assert "bizao" not in registry.available()


def test_missing_credentials_exclude_gateway(gateways_config, caplog):
    del gateways_config["winipayer"]["merchant_id"]

    with caplog.at_level(logging.ERROR, logger="paygate.registry"):
        registry = GatewayRegistry.from_config(gateways_config, GATEWAY_CLASSES)

    assert registry.names() == ["cinetpay", "bizao"]
    assert "merchant_id" in caplog.text


@pytest.mark.parametrize("field, value", [("priority", "high"), ("timeout", "soon"), ("priority", [1])])
def test_non_numeric_settings_exclude_only_that_gateway(gateways_config, caplog, field, value):
    gateways_config["winipayer"][field] = value

    with caplog.at_level(logging.ERROR, logger="paygate.registry"):
        registry = GatewayRegistry.from_config(gateways_config, GATEWAY_CLASSES)

    assert registry.names() == ["cinetpay", "bizao"]
    assert "winipayer" in caplog.text


def test_unknown_gateway_skipped(gateways_config):
    gateways_config["paystack"] = {"enabled": True, "base_url": "https://paystack.test"}

    registry = GatewayRegistry.from_config(gateways_config, GATEWAY_CLASSES)

    assert "paystack" not in registry
    assert len(registry) == 3


def test_factory_receives_class_and_config(gateways_config):
    seen = []

    def factory(gateway_class, config):
        seen.append((gateway_class.__name__, config.name))
        return gateway_class(config)

    GatewayRegistry.from_config({"bizao": gateways_config["bizao"]}, GATEWAY_CLASSES, factory=factory)

    assert seen == [("BizaoGateway", "bizao")]


class StubGateway:
    def __init__(self, priority, available=True):
        self.priority = priority
        self.available = available

    def is_enabled(self):
        return True

    def is_available(self):
        return self.available

    def get_priority(self):
        return self.priority


def test_unavailable_gateway_is_registered_but_not_offered():
    registry = GatewayRegistry({
        "a": StubGateway(2),
        "b": StubGateway(1, available=False),
        "c": StubGateway(2),
    })

    assert "b" in registry
    assert list(registry.available()) == ["a", "c"]
