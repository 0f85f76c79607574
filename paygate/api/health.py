"""Liveness endpoint."""

from fastapi import APIRouter, Depends

from paygate.bootstrap import get_payment_manager
from paygate.engine.orchestrator import PaymentManager

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(manager: PaymentManager = Depends(get_payment_manager)):
    return {
        "status": "ok",
        "default_gateway": manager.get_default_gateway(),
        "available_gateways": list(manager.get_available_gateways()),
    }
