"""Reconciliation issue log — records GL failures that did not abort the business action.

Usage:
    from floatledger.services.reconciliation_log import record_issue
    try:
        ...
    except PostingError as e:
        await record_issue(e, db=db, operation="reverse_entry", journal_entry_id=entry.id)
"""

from __future__ import annotations

import logging
import traceback as tb_module
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from floatledger.models.reconciliation_issue import IssueSeverity, ReconciliationIssue

logger = logging.getLogger("floatledger.reconciliation")


def _sanitize_text(value: object, *, max_len: Optional[int] = None) -> str:
    """Normalize control characters before persisting text."""
    text = str(value)
    text = "".join(ch if (ch >= " " or ch in "\n\r\t") else " " for ch in text)
    if max_len is not None:
        return text[:max_len]
    return text


async def record_issue(
    exc: Exception,
    *,
    db: Optional[AsyncSession] = None,
    operation: str,
    severity: IssueSeverity = IssueSeverity.WARNING,
    journal_entry_id: Optional[str] = None,
    source_transaction_id: Optional[str] = None,
    actor: Optional[str] = None,
) -> Optional[ReconciliationIssue]:
    """Log a ledger failure and queue it for manual reconciliation.

    Without a session only the Python logger is written.  Returns the created
    row, or ``None`` when the write was skipped or failed.
    """
    error_type = type(exc).__name__
    message = _sanitize_text(exc, max_len=2000)
    traceback_str = _sanitize_text(
        "".join(tb_module.format_exception(type(exc), exc, exc.__traceback__)),
        max_len=10000,
    )

    logger.warning(
        "[%s] %s failed (entry=%s, source_tx=%s): %s: %s",
        severity.value.upper(), operation, journal_entry_id,
        source_transaction_id, error_type, message,
    )

    if db is None:
        return None

    try:
        issue = ReconciliationIssue(
            severity=severity,
            operation=_sanitize_text(operation, max_len=100),
            error_type=_sanitize_text(error_type, max_len=200),
            message=message,
            traceback=traceback_str,
            journal_entry_id=journal_entry_id,
            source_transaction_id=(
                _sanitize_text(source_transaction_id, max_len=100)
                if source_transaction_id else None
            ),
            actor=_sanitize_text(actor, max_len=100) if actor else None,
        )
        db.add(issue)
        await db.flush()
        return issue
    except Exception as db_err:
        # The business action already succeeded; losing the issue row is only logged
        logger.error("Failed to persist reconciliation issue: %s", db_err)
        return None


async def list_open_issues(db: AsyncSession, limit: int = 100) -> list[ReconciliationIssue]:
    result = await db.execute(
        select(ReconciliationIssue)
        .where(ReconciliationIssue.resolved == False)  # noqa: E712
        .order_by(ReconciliationIssue.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
