"""
Database Models - SQLAlchemy ORM models with strict typing.

All columns use Mapped[] type annotations. Audit tables (payment_event,
order_status_history) are append-only: nothing in the service updates or
deletes their rows.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Identity,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from lazla_api.models.api import DeliveryEventType, PaymentStatus, StaffRole


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def _in_list(column: str, values: list[str]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class Customer(Base):
    """
    ORM model for customer table.

    Carries the email-verification (OTP) fields. refresh_token_hash is either
    NULL or the SHA-256 digest of the single live refresh token.
    """

    __tablename__ = "customer"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)

    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    # Session
    refresh_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Email verification
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    otp_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    otp_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("email = lower(email)", name="ck_customer_email_lowercase"),
        Index("idx_customer_refresh_token_hash", "refresh_token_hash"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Customer(id={self.id}, email={self.email}, verified={self.email_verified})>"


class Staff(Base):
    """
    ORM model for staff table (admins and drivers).

    Same session shape as Customer, no email verification track.
    """

    __tablename__ = "staff"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)

    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=StaffRole.ADMIN.value)
    whatsapp_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    refresh_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(_in_list("role", [r.value for r in StaffRole]), name="ck_staff_role"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Staff(id={self.id}, username={self.username}, role={self.role})>"


class Purchase(Base):
    """
    ORM model for purchase table.

    Owned by the ordering workflow; this service only reads and settles the
    payment columns.
    """

    __tablename__ = "purchase"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    customer_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("customer.id"), nullable=True, index=True
    )

    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.UNPAID.value
    )
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False, default="cod")
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_txn_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    current_status: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Purchase(id={self.id}, payment_status={self.payment_status})>"


class PaymentEvent(Base):
    """
    ORM model for payment_event table.

    Immutable audit log of delivery and payment occurrences.
    """

    __tablename__ = "payment_event"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    purchase_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("purchase.id"), nullable=False, index=True
    )

    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    event_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    txn_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONB, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            _in_list("event_type", [t.value for t in DeliveryEventType]),
            name="ck_payment_event_type",
        ),
        Index("idx_payment_event_created_at", "created_at"),
        Index("idx_payment_event_txn_id", "txn_id", postgresql_where=(txn_id.isnot(None))),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<PaymentEvent(id={self.id}, purchase_id={self.purchase_id}, "
            f"event_type={self.event_type}, txn_id={self.txn_id})>"
        )


class OrderStatusHistory(Base):
    """
    ORM model for order_status_history table.

    Append-only trail of order status transitions.
    """

    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("purchase.id"), nullable=False, index=True
    )
    changed_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<OrderStatusHistory(order_id={self.order_id}, status={self.status})>"
