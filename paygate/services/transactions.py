"""
Payment ledger persistence.

Stores the envelopes produced by PaymentManager. The orchestration core
never imports this module.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from paygate.audit.logger import log_event, response_details
from paygate.gateways.base import GatewayConfig, PaymentRequest
from paygate.models.enums import PaymentStatus
from paygate.models.response import PaymentResponse
from paygate.models.transaction import GatewayHealth, PaymentTransaction

logger = logging.getLogger("paygate.ledger")


def _dumps(value) -> Optional[str]:
    return json.dumps(value, default=str) if value else None


async def get_transaction(session: AsyncSession, transaction_id: str) -> Optional[PaymentTransaction]:
    result = await session.execute(
        select(PaymentTransaction).where(PaymentTransaction.transaction_id == transaction_id)
    )
    return result.scalar_one_or_none()


async def record_initialization(
    session: AsyncSession,
    request: PaymentRequest,
    response: PaymentResponse,
) -> Optional[PaymentTransaction]:
    """
    Store the outcome of initialize_payment.

    Successful initializations create (or refresh) a ledger row; failures
    only leave an audit entry since the provider holds no payment.
    """
    if not response.successful or not response.transaction_id:
        await log_event(
            session,
            "payment_initialization_failed",
            transaction_id=request.transaction_id,
            gateway_name=response.gateway_name,
            details=response_details(response),
        )
        await session.commit()
        return None

    tx = await get_transaction(session, response.transaction_id)
    if tx is None:
        tx = PaymentTransaction(transaction_id=response.transaction_id)
        session.add(tx)

    tx.gateway_name = response.gateway_name
    tx.status = response.status
    tx.amount = float(response.amount)
    tx.currency = response.currency
    tx.description = request.description
    tx.customer_email = request.customer_email
    tx.customer_phone = request.customer_phone
    tx.customer_name = request.customer_name
    tx.return_url = request.return_url
    tx.cancel_url = request.cancel_url
    tx.notify_url = request.notify_url
    tx.payment_url = response.payment_url
    tx.gateway_metadata = _dumps(response.metadata)
    tx.raw_data = _dumps(response.raw_data)

    await log_event(
        session,
        "payment_initialized",
        transaction_id=response.transaction_id,
        gateway_name=response.gateway_name,
        details=response_details(response),
    )
    await session.commit()
    return tx


async def apply_response(
    session: AsyncSession,
    response: PaymentResponse,
    action: str,
) -> Optional[PaymentTransaction]:
    """
    Apply a verification or webhook envelope to the ledger.

    Failure envelopes are audited but never change a stored payment.
    Returns the updated row, or None when the transaction is unknown.
    """
    await log_event(
        session,
        action if response.successful else f"{action}_rejected",
        transaction_id=response.transaction_id,
        gateway_name=response.gateway_name,
        details=response_details(response),
    )

    tx = None
    if response.successful and response.transaction_id:
        tx = await get_transaction(session, response.transaction_id)
        if tx is None:
            logger.warning(
                "%s for unknown transaction %s from %s",
                action,
                response.transaction_id,
                response.gateway_name,
            )
        else:
            tx.status = response.status
            tx.raw_data = _dumps(response.raw_data)
            if response.metadata:
                merged = json.loads(tx.gateway_metadata) if tx.gateway_metadata else {}
                merged.update({k: v for k, v in response.metadata.items() if v is not None})
                tx.gateway_metadata = _dumps(merged)
            if response.status == PaymentStatus.COMPLETED.value and tx.paid_at is None:
                tx.paid_at = datetime.now(timezone.utc)

    await session.commit()
    return tx


async def record_health(
    session: AsyncSession,
    config: GatewayConfig,
    healthy: bool,
) -> GatewayHealth:
    """Upsert the last explicit health check for a gateway."""
    result = await session.execute(
        select(GatewayHealth).where(
            GatewayHealth.gateway_name == config.name,
            GatewayHealth.environment == config.environment,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = GatewayHealth(gateway_name=config.name, environment=config.environment)
        session.add(row)

    row.enabled = config.enabled
    row.priority = config.priority
    row.is_healthy = healthy
    row.last_health_check = datetime.now(timezone.utc)

    await log_event(
        session,
        "gateway_health_checked",
        gateway_name=config.name,
        details={"healthy": healthy, "environment": config.environment},
    )
    await session.commit()
    return row
