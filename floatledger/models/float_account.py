"""Float accounts and their native, append-only transaction ledger."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Numeric, Boolean, DateTime, ForeignKey, Text, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from floatledger.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class FloatAccount(Base):
    """Operational float balance held per branch and provider."""

    __tablename__ = "float_accounts"
    __table_args__ = (
        Index("ix_float_accounts_branch", "branch_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    branch_id: Mapped[str] = mapped_column(String(36), nullable=False)
    account_type: Mapped[str] = mapped_column(String(50), nullable=False)
    provider: Mapped[str | None] = mapped_column(String(100), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0.00"), nullable=False
    )
    min_threshold: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0.00"), nullable=False
    )
    max_threshold: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0.00"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    transactions = relationship(
        "FloatTransaction",
        back_populates="float_account",
        order_by="FloatTransaction.created_at",
    )


class FloatTransaction(Base):
    """Native ledger row. The latest ``balance_after`` is the account's balance."""

    __tablename__ = "float_transactions"
    __table_args__ = (
        Index("ix_float_tx_account_created", "float_account_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    float_account_id: Mapped[str] = mapped_column(
        ForeignKey("float_accounts.id"), nullable=False
    )
    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference: Mapped[str | None] = mapped_column(String(150), nullable=True)
    branch_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    float_account = relationship("FloatAccount", back_populates="transactions")
