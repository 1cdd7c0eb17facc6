"""Reconciliation issue model — GL failures left for manual reconciliation."""

import enum
from datetime import datetime

from sqlalchemy import String, Text, DateTime, Enum, func
from sqlalchemy.orm import Mapped, mapped_column

from floatledger.database import Base


class IssueSeverity(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ReconciliationIssue(Base):
    """A ledger operation that failed without aborting the business action."""
    __tablename__ = "reconciliation_issues"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # What happened
    severity: Mapped[IssueSeverity] = mapped_column(
        Enum(IssueSeverity, values_callable=lambda e: [i.value for i in e]),
        default=IssueSeverity.WARNING,
        nullable=False,
    )
    operation: Mapped[str] = mapped_column(String(100), nullable=False)
    error_type: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    traceback: Mapped[str | None] = mapped_column(Text, nullable=True)

    # What it concerns
    journal_entry_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    source_transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    actor: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Resolution tracking
    resolved: Mapped[bool] = mapped_column(default=False, nullable=False)
    resolved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
