"""
Provider notification endpoint.

POST /webhooks/{gateway}  Verify and apply a provider notification.

Providers only look at the status code: 200 "OK" acknowledges the
notification, anything else makes them redeliver it later.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from paygate.bootstrap import get_payment_manager
from paygate.database import get_session
from paygate.engine.orchestrator import PaymentManager
from paygate.engine.retry import PaymentError
from paygate.services.transactions import apply_response

logger = logging.getLogger("paygate.webhooks")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def _read_payload(request: Request) -> dict[str, Any]:
    """Providers post either JSON or form-encoded bodies."""
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            payload = await request.json()
        except json.JSONDecodeError:
            return {}
        return payload if isinstance(payload, dict) else {}

    form = await request.form()
    return dict(form)


@router.post("/{gateway}", response_class=PlainTextResponse)
async def receive_webhook(
    gateway: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    manager: PaymentManager = Depends(get_payment_manager),
):
    payload = await _read_payload(request)
    logger.info("Webhook received from %s (%d fields)", gateway, len(payload))

    try:
        response = await manager.process_webhook(payload, gateway)
    except PaymentError as e:
        logger.error("Webhook processing failed for %s: %s", gateway, e)
        return PlainTextResponse("Error processing webhook", status_code=400)

    await apply_response(session, response, "webhook_processed")

    if not response.successful:
        logger.warning(
            "Webhook from %s rejected: %s (%s)",
            gateway,
            response.error_message,
            response.error_code,
        )
        return PlainTextResponse("Error processing webhook", status_code=400)

    return PlainTextResponse("OK", status_code=200)
