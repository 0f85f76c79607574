"""Shared test fixtures."""

import copy
from collections import Counter

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from paygate.engine.orchestrator import PaymentManager
from paygate.gateways import GATEWAY_CLASSES
from paygate.gateways.base import GatewayConfig
from paygate.models.transaction import Base

GATEWAYS = {
    "cinetpay": {
        "enabled": True,
        "priority": 1,
        "environment": "test",
        "base_url": "https://cinetpay.test/v2",
        "api_key": "cp-api-key",
        "site_id": "105900",
    },
    "bizao": {
        "enabled": True,
        "priority": 2,
        "environment": "sandbox",
        "base_url": "https://bizao.test",
        "client_id": "bz-client",
        "client_secret": "bz-secret",
    },
    "winipayer": {
        "enabled": True,
        "priority": 3,
        "environment": "test",
        "base_url": "https://winipayer.test",
        "merchant_id": "WP-MERCHANT-1",
        "api_key": "wp-api-key",
    },
}


class RecordingSleep:
    """Stands in for asyncio.sleep; remembers every requested delay."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class FakeProvider:
    """
    Routes MockTransport requests by (method, path) and counts hits.

    Routes map to a JSON body (status 200), a (status, body) tuple where a
    str body is sent as plain text, a callable taking the request and
    returning one of those, or an exception instance to raise.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.hits = Counter()
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path)
        self.hits[key] += 1
        self.requests.append(request)

        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"message": "no route"})
        if callable(route):
            route = route(request)
        if isinstance(route, Exception):
            raise route
        status, body = route if isinstance(route, tuple) else (200, route)
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def fail_all(self):
        """Make every known route fail at the connection level."""
        for key in self.routes:
            self.routes[key] = self.connect_error

    @staticmethod
    def connect_error(request: httpx.Request) -> Exception:
        return httpx.ConnectError("connection refused", request=request)


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def healthy():
    """One healthy FakeProvider per gateway, keyed by gateway name."""
    return {
        "cinetpay": FakeProvider({
            ("POST", "/v2/payment"): {"code": "201", "data": {"payment_url": "https://cinetpay.test/pay"}},
            ("POST", "/v2/payment/check"): {"code": "00", "data": {"status": "ACCEPTED", "amount": 5000}},
        }),
        "bizao": FakeProvider({
            ("POST", "/v1/auth/token"): {"access_token": "tok", "expires_in": 3600},
            ("POST", "/v1/payment/init"): {"status": "success", "data": {"payment_url": "https://bizao.test/pay"}},
        }),
        "winipayer": FakeProvider({
            ("POST", "/api/payment/init"): {"success": True, "data": {"payment_url": "https://winipayer.test/pay"}},
            ("POST", "/api/payment/status"): {"success": True, "data": {"status": "SUCCESS"}},
        }),
    }


@pytest.fixture
def gateways_config():
    return copy.deepcopy(GATEWAYS)


@pytest.fixture
def payment_data():
    return {
        "amount": 5000,
        "currency": "XOF",
        "description": "Order #1042",
        "return_url": "https://shop.test/return",
        "cancel_url": "https://shop.test/cancel",
        "notify_url": "https://shop.test/notify",
        "customer_email": "awa@example.com",
        "customer_phone": "+22507000000",
        "customer_name": "Awa Traore",
    }


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def build_gateway(gateways_config):
    """Build one gateway adapter wired to a FakeProvider."""

    def _build(name, provider=None, **overrides):
        provider = provider or FakeProvider()
        config = GatewayConfig.from_mapping(name, {**gateways_config[name], **overrides})
        return GATEWAY_CLASSES[name](config, client=provider.client())

    return _build


@pytest.fixture
def build_manager(gateways_config, recording_sleep):
    """Build a PaymentManager whose gateways talk to the given FakeProviders."""

    def _build(providers=None, gateways=None, **options):
        providers = {} if providers is None else providers
        failover = {
            "enabled": options.pop("failover_enabled", True),
            "max_retries": options.pop("max_retries", 3),
            "retry_delay": options.pop("retry_delay", 1.0),
            "exponential_backoff": options.pop("exponential_backoff", True),
            "preferred_failover": options.pop("preferred_failover", True),
        }
        config = {
            "default": options.pop("default", "cinetpay"),
            "failover": failover,
            "gateways": gateways if gateways is not None else gateways_config,
        }

        def factory(gateway_class, gateway_config):
            provider = providers.setdefault(gateway_config.name, FakeProvider())
            return gateway_class(gateway_config, client=provider.client())

        return PaymentManager(config, gateway_factory=factory, sleep=recording_sleep)

    return _build


@pytest_asyncio.fixture
async def db_session():
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()
