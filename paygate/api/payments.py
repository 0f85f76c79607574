"""
Payment endpoints.

POST /payments                            Initialize a payment (failover across gateways).
GET  /payments/{transaction_id}           Stored ledger record.
POST /payments/{transaction_id}/verify    Ask the gateway(s) for the current status.
"""

import json
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from paygate.bootstrap import get_payment_manager
from paygate.database import get_session
from paygate.engine.orchestrator import PaymentManager
from paygate.engine.retry import PaymentError
from paygate.gateways.base import PaymentRequest
from paygate.models.transaction import PaymentTransaction
from paygate.services.transactions import apply_response, get_transaction, record_initialization

router = APIRouter(prefix="/payments", tags=["payments"])


class InitializePaymentBody(BaseModel):
    amount: Decimal = Field(gt=0)
    currency: str = Field(min_length=3, max_length=3)
    description: str = Field(min_length=1)
    return_url: str
    cancel_url: str
    notify_url: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_name: Optional[str] = None
    transaction_id: Optional[str] = None
    lang: Optional[str] = None
    channels: Optional[str] = None
    gateway: Optional[str] = None  # Preferred gateway

    def to_request(self) -> PaymentRequest:
        extra = {k: v for k, v in {"lang": self.lang, "channels": self.channels}.items() if v is not None}
        return PaymentRequest(
            amount=self.amount,
            currency=self.currency.upper(),
            description=self.description,
            return_url=self.return_url,
            cancel_url=self.cancel_url,
            notify_url=self.notify_url,
            customer_email=self.customer_email,
            customer_phone=self.customer_phone,
            customer_name=self.customer_name,
            transaction_id=self.transaction_id,
            extra=extra,
        )


class TransactionDetail(BaseModel):
    transaction_id: str
    gateway_name: str
    status: str
    amount: float
    currency: str
    description: Optional[str]
    payment_url: Optional[str]
    metadata: Optional[dict] = None
    paid_at: Optional[str]
    created_at: Optional[str]
    updated_at: Optional[str]


def _transaction_to_detail(tx: PaymentTransaction) -> TransactionDetail:
    metadata = None
    if tx.gateway_metadata:
        try:
            metadata = json.loads(tx.gateway_metadata)
        except (json.JSONDecodeError, TypeError):
            pass

    return TransactionDetail(
        transaction_id=tx.transaction_id,
        gateway_name=tx.gateway_name,
        status=tx.status,
        amount=tx.amount,
        currency=tx.currency,
        description=tx.description,
        payment_url=tx.payment_url,
        metadata=metadata,
        paid_at=tx.paid_at.isoformat() if tx.paid_at else None,
        created_at=tx.created_at.isoformat() if tx.created_at else None,
        updated_at=tx.updated_at.isoformat() if tx.updated_at else None,
    )


@router.post("")
async def initialize_payment(
    body: InitializePaymentBody,
    session: AsyncSession = Depends(get_session),
    manager: PaymentManager = Depends(get_payment_manager),
) -> dict[str, Any]:
    """
    Initialize a payment on the preferred, default or next available gateway.

    A provider-level rejection comes back as an unsuccessful envelope with
    status 200; only exhausted gateways turn into 502.
    """
    request = body.to_request()
    try:
        response = await manager.initialize_payment(request, preferred_gateway=body.gateway)
    except PaymentError as e:
        raise HTTPException(status_code=502, detail=str(e))

    await record_initialization(session, request, response)
    return response.to_dict()


@router.get("/{transaction_id}", response_model=TransactionDetail)
async def get_payment(transaction_id: str, session: AsyncSession = Depends(get_session)):
    tx = await get_transaction(session, transaction_id)
    if not tx:
        raise HTTPException(status_code=404, detail=f"Transaction not found: {transaction_id}")
    return _transaction_to_detail(tx)


@router.post("/{transaction_id}/verify")
async def verify_payment(
    transaction_id: str,
    gateway: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    manager: PaymentManager = Depends(get_payment_manager),
) -> dict[str, Any]:
    """Verify with the named gateway, else the one on record, else every gateway."""
    if gateway is None:
        tx = await get_transaction(session, transaction_id)
        gateway = tx.gateway_name if tx else None

    if gateway is not None and manager.get_gateway(gateway) is None:
        raise HTTPException(status_code=404, detail=f"Gateway not found: {gateway}")

    try:
        response = await manager.verify_payment(transaction_id, gateway)
    except PaymentError as e:
        raise HTTPException(status_code=502, detail=str(e))

    await apply_response(session, response, "payment_verified")
    return response.to_dict()
