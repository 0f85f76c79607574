"""
Append-only audit trail for payment operations.

Every operation outcome gets an entry with:
  - Transaction ID (when the operation concerns one payment)
  - Gateway name (which provider answered)
  - Action (what happened)
  - Details (envelope fields, error messages, admin changes)
  - Timestamp (UTC)

Entries are never modified or deleted.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from paygate.models.response import PaymentResponse
from paygate.models.transaction import AuditLog

logger = logging.getLogger("paygate.audit")


async def log_event(
    session: AsyncSession,
    action: str,
    transaction_id: Optional[str] = None,
    gateway_name: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """
    Create an audit log entry and mirror it to the paygate.audit logger.

    Args:
        session: Database session (the caller commits).
        action: What happened (e.g. "payment_initialized", "webhook_rejected").
        transaction_id: Payment the event relates to, if any.
        gateway_name: Gateway that produced the outcome, if any.
        details: Arbitrary context (serialized to JSON).
    """
    serialized = json.dumps(details, default=str) if details else None
    entry = AuditLog(
        transaction_id=transaction_id,
        gateway_name=gateway_name,
        action=action,
        details=serialized,
        timestamp=datetime.now(timezone.utc),
    )
    session.add(entry)
    logger.info(
        "AUDIT | tx=%s gateway=%s action=%s | %s",
        transaction_id or "-",
        gateway_name or "-",
        action,
        serialized[:200] if serialized else "",
    )
    return entry


def response_details(response: PaymentResponse) -> dict[str, Any]:
    """The envelope fields worth keeping in an audit entry (no raw payload)."""
    details = {
        "successful": response.successful,
        "status": response.status,
        "amount": response.amount,
        "currency": response.currency,
    }
    if not response.successful:
        details["error_message"] = response.error_message
        details["error_code"] = response.error_code
    return details
