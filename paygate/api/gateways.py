"""
Gateway administration endpoints.

GET  /gateways                 Registered gateways with availability and priority.
PUT  /gateways/default         Change the default gateway.
PUT  /gateways/failover        Enable or disable failover.
POST /gateways/{name}/health   Run the live health probe and record it.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from paygate.audit.logger import log_event
from paygate.bootstrap import get_payment_manager
from paygate.database import get_session
from paygate.engine.orchestrator import PaymentManager
from paygate.engine.retry import PaymentError
from paygate.services.transactions import record_health

router = APIRouter(prefix="/gateways", tags=["gateways"])


class GatewaySummary(BaseModel):
    name: str
    enabled: bool
    available: bool
    priority: int
    environment: str
    test_mode: bool


class GatewayListResponse(BaseModel):
    default_gateway: str
    failover_enabled: bool
    gateways: list[GatewaySummary]


class DefaultGatewayBody(BaseModel):
    gateway: str


class FailoverBody(BaseModel):
    enabled: bool


class HealthResult(BaseModel):
    gateway: str
    healthy: bool


@router.get("", response_model=GatewayListResponse)
async def list_gateways(manager: PaymentManager = Depends(get_payment_manager)):
    available = manager.get_available_gateways()
    summaries = []
    for name, gateway in manager.registry.all().items():
        config = gateway.get_config()
        summaries.append(
            GatewaySummary(
                name=name,
                enabled=gateway.is_enabled(),
                available=name in available,
                priority=gateway.get_priority(),
                environment=config.environment,
                test_mode=config.is_test_mode,
            )
        )
    summaries.sort(key=lambda s: s.priority)

    return GatewayListResponse(
        default_gateway=manager.get_default_gateway(),
        failover_enabled=manager.is_failover_enabled(),
        gateways=summaries,
    )


@router.put("/default")
async def set_default_gateway(
    body: DefaultGatewayBody,
    session: AsyncSession = Depends(get_session),
    manager: PaymentManager = Depends(get_payment_manager),
):
    previous = manager.get_default_gateway()
    try:
        manager.set_default_gateway(body.gateway)
    except PaymentError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await log_event(
        session,
        "default_gateway_changed",
        gateway_name=body.gateway,
        details={"previous": previous},
    )
    await session.commit()
    return {"default_gateway": manager.get_default_gateway()}


@router.put("/failover")
async def set_failover(
    body: FailoverBody,
    session: AsyncSession = Depends(get_session),
    manager: PaymentManager = Depends(get_payment_manager),
):
    manager.set_failover_enabled(body.enabled)
    await log_event(session, "failover_changed", details={"enabled": body.enabled})
    await session.commit()
    return {"failover_enabled": manager.is_failover_enabled()}


@router.post("/{name}/health", response_model=HealthResult)
async def check_gateway_health(
    name: str,
    session: AsyncSession = Depends(get_session),
    manager: PaymentManager = Depends(get_payment_manager),
):
    gateway = manager.get_gateway(name)
    if gateway is None:
        raise HTTPException(status_code=404, detail=f"Gateway not found: {name}")

    results = await manager.check_health(name)
    healthy = results[name]
    await record_health(session, gateway.get_config(), healthy)
    return HealthResult(gateway=name, healthy=healthy)
