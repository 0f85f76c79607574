"""SQLAlchemy models for the payment ledger."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentTransaction(Base):
    """
    A payment as last reported by its gateway.

    Written by the application after a successful initialization and
    updated from verification results and webhooks. The orchestration core
    never touches this table.
    """

    __tablename__ = "payment_transactions"
    __table_args__ = (
        Index("ix_payment_transactions_gateway_status", "gateway_name", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(100), nullable=False, unique=True)
    gateway_name = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    description = Column(Text, nullable=True)
    customer_email = Column(String(200), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_name = Column(String(200), nullable=True)
    return_url = Column(String(500), nullable=False)
    cancel_url = Column(String(500), nullable=False)
    notify_url = Column(String(500), nullable=True)
    payment_url = Column(String(500), nullable=True)
    gateway_metadata = Column("metadata", Text, nullable=True)  # JSON
    raw_data = Column(Text, nullable=True)  # JSON, last provider response
    paid_at = Column(DateTime(timezone=True), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class GatewayHealth(Base):
    """Last explicit health check result per gateway and environment."""

    __tablename__ = "payment_gateway_health"
    __table_args__ = (
        UniqueConstraint("gateway_name", "environment", name="uq_gateway_environment"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    gateway_name = Column(String(50), nullable=False)
    environment = Column(String(20), nullable=False)
    enabled = Column(Boolean, default=True)
    priority = Column(Integer, default=999)
    last_health_check = Column(DateTime(timezone=True), nullable=True)
    is_healthy = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class AuditLog(Base):
    """
    Immutable audit trail entry.

    Every payment operation outcome (initialization, verification, webhook,
    administrative change) gets an entry. Append-only.
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(100), nullable=True, index=True)
    gateway_name = Column(String(50), nullable=True)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)
