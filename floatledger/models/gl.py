"""General Ledger models.

Double-entry bookkeeping tables used by the posting engine:
- Chart of accounts (read-only for this core)
- Module/transaction-type → debit/credit account mappings with conditions
- Journal entries (``gl_transactions``) and their lines (``gl_journal_entries``)
- Float-account ↔ GL-account associations used by float statements
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String,
    Numeric,
    Integer,
    Boolean,
    Enum,
    DateTime,
    Date,
    ForeignKey,
    Text,
    JSON,
    Index,
    CheckConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from floatledger.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# ===================================================================
# Enumerations
# ===================================================================


class GLAccountType(str, enum.Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class ServiceModule(str, enum.Enum):
    MOMO = "momo"
    AGENCY_BANKING = "agency-banking"
    E_ZWICH = "e-zwich"
    POWER = "power"
    JUMIA = "jumia"
    EXPENSES = "expenses"
    COMMISSIONS = "commissions"
    FLOAT = "float"
    CASH_TILL = "cash-till"
    MANUAL = "manual"


class JournalEntryStatus(str, enum.Enum):
    PENDING = "pending"
    POSTED = "posted"
    REVERSED = "reversed"


class ConditionOperator(str, enum.Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not-equals"
    GREATER_THAN = "greater-than"
    LESS_THAN = "less-than"
    CONTAINS = "contains"
    STARTS_WITH = "starts-with"
    ENDS_WITH = "ends-with"


class FloatMappingType(str, enum.Enum):
    MAIN_ACCOUNT = "main_account"
    FEE_ACCOUNT = "fee_account"
    COMMISSION_ACCOUNT = "commission_account"


# ===================================================================
# Chart of accounts
# ===================================================================


class GLAccount(Base):
    """Chart-of-accounts entry. Immutable once referenced by posted lines."""

    __tablename__ = "gl_accounts"
    __table_args__ = (
        Index("ix_gl_accounts_type", "type"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    code: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[GLAccountType] = mapped_column(
        Enum(GLAccountType, values_callable=lambda e: [i.value for i in e]), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    journal_lines = relationship("JournalEntryLine", back_populates="account")


# ===================================================================
# Transaction → GL mappings
# ===================================================================


class GLMapping(Base):
    """Maps a (service module, transaction type) pair to one debit/credit pair.

    ``conditions`` is a list of ``{"field", "operator", "value"}`` dicts.  Rows
    without conditions act as the default for their pair.  Resolution order
    is ``position``, then ``created_at``, then ``id``.
    """

    __tablename__ = "gl_mappings"
    __table_args__ = (
        Index("ix_gl_mappings_lookup", "service_module", "transaction_type", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    service_module: Mapped[str] = mapped_column(String(50), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(100), nullable=False)
    debit_account_id: Mapped[str] = mapped_column(
        ForeignKey("gl_accounts.id"), nullable=False
    )
    credit_account_id: Mapped[str] = mapped_column(
        ForeignKey("gl_accounts.id"), nullable=False
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    conditions: Mapped[list | None] = mapped_column(JSON, nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    debit_account = relationship("GLAccount", foreign_keys=[debit_account_id])
    credit_account = relationship("GLAccount", foreign_keys=[credit_account_id])

    @property
    def has_conditions(self) -> bool:
        return bool(self.conditions)


# ===================================================================
# Journal entries
# ===================================================================


class JournalEntry(Base):
    """Journal entry header.

    Posted entries are never edited: corrections are new mirror entries that
    point back at the original through ``reversal_of_id``.
    """

    __tablename__ = "gl_transactions"
    __table_args__ = (
        Index("ix_gl_tx_source", "transaction_source", "transaction_id"),
        Index("ix_gl_tx_date", "date"),
        Index("ix_gl_tx_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False)
    transaction_source: Mapped[str] = mapped_column(String(50), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    reference: Mapped[str | None] = mapped_column(String(150), nullable=True)
    branch_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    status: Mapped[JournalEntryStatus] = mapped_column(
        Enum(JournalEntryStatus, values_callable=lambda e: [i.value for i in e]),
        default=JournalEntryStatus.PENDING,
        nullable=False,
    )

    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    posted_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reversed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reversed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # One reversal per original, enforced by the unique constraint
    reversal_of_id: Mapped[str | None] = mapped_column(
        ForeignKey("gl_transactions.id"), unique=True, nullable=True
    )

    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

    lines = relationship(
        "JournalEntryLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.line_number",
    )
    reversal_of = relationship(
        "JournalEntry",
        foreign_keys=[reversal_of_id],
        remote_side="JournalEntry.id",
        uselist=False,
    )

    @property
    def total_debits(self) -> Decimal:
        return sum((ln.debit or Decimal("0")) for ln in self.lines)

    @property
    def total_credits(self) -> Decimal:
        return sum((ln.credit or Decimal("0")) for ln in self.lines)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class JournalEntryLine(Base):
    """A single debit or credit leg of a journal entry."""

    __tablename__ = "gl_journal_entries"
    __table_args__ = (
        CheckConstraint(
            "(debit = 0 AND credit > 0) OR (debit > 0 AND credit = 0)",
            name="ck_gl_line_debit_xor_credit",
        ),
        Index("ix_gl_line_account", "account_id"),
        Index("ix_gl_line_entry", "journal_entry_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    journal_entry_id: Mapped[str] = mapped_column(
        ForeignKey("gl_transactions.id", ondelete="CASCADE"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[str] = mapped_column(
        ForeignKey("gl_accounts.id"), nullable=False
    )
    debit: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0.00"), nullable=False
    )
    credit: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), default=Decimal("0.00"), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)

    journal_entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("GLAccount", back_populates="journal_lines")


# ===================================================================
# Float account ↔ GL account associations
# ===================================================================


class FloatGLMapping(Base):
    """Links a float account to the GL accounts that mirror its movements.

    Direct rows carry ``float_account_id``.  Rows without it are keyed by a
    ``{account_type}_float`` transaction type plus ``branch_id`` and serve as
    the fallback for float accounts that have no direct rows.
    """

    __tablename__ = "float_gl_mappings"
    __table_args__ = (
        Index("ix_float_gl_mappings_float", "float_account_id", "is_active"),
        Index("ix_float_gl_mappings_type_branch", "transaction_type", "branch_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    float_account_id: Mapped[str | None] = mapped_column(
        ForeignKey("float_accounts.id"), nullable=True
    )
    gl_account_id: Mapped[str] = mapped_column(
        ForeignKey("gl_accounts.id"), nullable=False
    )
    mapping_type: Mapped[FloatMappingType] = mapped_column(
        Enum(FloatMappingType, values_callable=lambda e: [i.value for i in e]),
        default=FloatMappingType.MAIN_ACCOUNT,
        nullable=False,
    )
    transaction_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    branch_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    gl_account = relationship("GLAccount")
