"""
Paygate: Payment Gateway Orchestration API.

Routes payment initialization, verification and provider webhooks across
CinetPay, Bizao and Winipayer, with bounded retries per gateway and
failover by priority.

Start the server:
    uvicorn paygate.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from paygate.api.gateways import router as gateways_router
from paygate.api.health import router as health_router
from paygate.api.payments import router as payments_router
from paygate.api.webhooks import router as webhooks_router
from paygate.bootstrap import build_payment_manager
from paygate.config import settings
from paygate.database import dispose_db, init_db
from paygate.engine.orchestrator import PaymentManager

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def create_app(manager: Optional[PaymentManager] = None) -> FastAPI:
    """Build the API. Tests pass their own manager; otherwise settings decide."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db()
        if getattr(app.state, "payment_manager", None) is None:
            app.state.payment_manager = build_payment_manager()
        yield
        await app.state.payment_manager.aclose()
        await dispose_db()

    app = FastAPI(
        title="Paygate",
        description=(
            "Payment gateway orchestration for West African mobile money and card providers. "
            "Initializes and verifies payments on the best available gateway, with retries, "
            "priority failover, signed webhook verification and an audit trail."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.payment_manager = manager

    app.include_router(health_router)
    app.include_router(payments_router, prefix="/api")
    app.include_router(webhooks_router, prefix="/api")
    app.include_router(gateways_router, prefix="/api")
    return app


app = create_app()
