"""Tests for ledger persistence and the audit trail."""

import json

import pytest
from sqlalchemy import select

from paygate.gateways.base import GatewayConfig, PaymentRequest
from paygate.models.response import PaymentResponse
from paygate.models.transaction import AuditLog, GatewayHealth
from paygate.services.transactions import apply_response, get_transaction, record_health, record_initialization


def initialized(transaction_id="ORDER-1"):
    return PaymentResponse.success("cinetpay", {
        "transaction_id": transaction_id,
        "status": "pending",
        "amount": 5000,
        "currency": "XOF",
        "payment_url": "https://cinetpay.test/pay",
        "metadata": {"payment_token": "tok"},
        "raw_data": {"code": "201"},
    })


async def audit_actions(session):
    rows = (await session.execute(select(AuditLog).order_by(AuditLog.id))).scalars().all()
    return [row.action for row in rows]


@pytest.mark.asyncio
async def test_record_initialization_creates_row(db_session, payment_data):
    request = PaymentRequest.from_mapping(payment_data)

    tx = await record_initialization(db_session, request, initialized())

    stored = await get_transaction(db_session, "ORDER-1")
    assert stored is tx
    assert stored.gateway_name == "cinetpay"
    assert stored.status == "pending"
    assert stored.amount == 5000.0
    assert stored.description == "Order #1042"
    assert json.loads(stored.gateway_metadata) == {"payment_token": "tok"}
    assert await audit_actions(db_session) == ["payment_initialized"]


@pytest.mark.asyncio
async def test_failed_initialization_is_only_audited(db_session, payment_data):
    request = PaymentRequest.from_mapping(payment_data)
    failure = PaymentResponse.failure("cinetpay", "Invalid amount: -5", "INVALID_AMOUNT")

    assert await record_initialization(db_session, request, failure) is None

    assert await audit_actions(db_session) == ["payment_initialization_failed"]
    entry = (await db_session.execute(select(AuditLog))).scalar_one()
    assert json.loads(entry.details)["error_code"] == "INVALID_AMOUNT"


@pytest.mark.asyncio
async def test_completed_verification_sets_paid_at(db_session, payment_data):
    await record_initialization(db_session, PaymentRequest.from_mapping(payment_data), initialized())
    verified = PaymentResponse.success("cinetpay", {
        "transaction_id": "ORDER-1",
        "status": "completed",
        "metadata": {"operator": "ORANGE", "payment_method": None},
    })

    tx = await apply_response(db_session, verified, "payment_verified")

    assert tx.status == "completed"
    assert tx.paid_at is not None
    assert json.loads(tx.gateway_metadata) == {"payment_token": "tok", "operator": "ORANGE"}


@pytest.mark.asyncio
async def test_rejected_response_does_not_touch_ledger(db_session, payment_data):
    await record_initialization(db_session, PaymentRequest.from_mapping(payment_data), initialized())
    rejected = PaymentResponse.failure("cinetpay", "Invalid webhook signature", "INVALID_SIGNATURE")

    assert await apply_response(db_session, rejected, "webhook_processed") is None

    tx = await get_transaction(db_session, "ORDER-1")
    assert tx.status == "pending"
    assert await audit_actions(db_session) == ["payment_initialized", "webhook_processed_rejected"]


@pytest.mark.asyncio
async def test_response_for_unknown_transaction_is_audited(db_session):
    response = PaymentResponse.success("bizao", {"transaction_id": "ELSEWHERE", "status": "completed"})

    assert await apply_response(db_session, response, "webhook_processed") is None
    assert await audit_actions(db_session) == ["webhook_processed"]


@pytest.mark.asyncio
async def test_record_health_upserts(db_session, gateways_config):
    config = GatewayConfig.from_mapping("bizao", gateways_config["bizao"])

    await record_health(db_session, config, True)
    await record_health(db_session, config, False)

    rows = (await db_session.execute(select(GatewayHealth))).scalars().all()
    assert len(rows) == 1
    assert rows[0].gateway_name == "bizao"
    assert rows[0].environment == "sandbox"
    assert rows[0].is_healthy is False
    assert rows[0].last_health_check is not None
