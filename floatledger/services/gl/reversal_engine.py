"""Reversal engine.

A posted entry is never edited or deleted.  It is cancelled by a mirror
entry with every line's debit and credit swapped, and the original moves to
REVERSED.  Original and reversal are linked through ``reversal_of_id``,
which is unique, so an entry can be reversed at most once.

Business deletes and edits that touch money run through here:

- delete  → ``reverse_entry`` / ``reverse_entry_safely``
- edit    → ``amend_entry_amount`` (reverse, then repost at the new amount)
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from floatledger.config import settings
from floatledger.models.gl import (
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    ServiceModule,
)
from floatledger.schemas import ModuleAttributes, TransactionData
from floatledger.services.gl.errors import (
    DuplicateReversalError,
    PostingError,
    ValidationError,
)
from floatledger.services.gl.journal_engine import (
    utcnow,
    post_transaction,
    validate_balance,
)
from floatledger.services.gl.mapping_engine import MappingRepository
from floatledger.services.reconciliation_log import record_issue

logger = logging.getLogger(__name__)


@dataclass
class ReversalOutcome:
    """Result of a soft-fail reversal: the entry, or a warning for the caller."""

    entry: JournalEntry | None
    warning: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.entry is not None


@dataclass
class Amendment:
    reversal: JournalEntry
    replacement: JournalEntry | None


def build_reversal_lines(original: JournalEntry) -> list[JournalEntryLine]:
    """Mirror every line of *original*: same account and amount, sides swapped."""
    return [
        JournalEntryLine(
            id=str(uuid.uuid4()),
            line_number=ln.line_number,
            account_id=ln.account_id,
            debit=ln.credit,
            credit=ln.debit,
            description=f"Reversal: {ln.description or ''}".strip(),
        )
        for ln in original.lines
    ]


async def find_reversal(db: AsyncSession, original_id: str) -> JournalEntry | None:
    result = await db.execute(
        select(JournalEntry).where(JournalEntry.reversal_of_id == original_id)
    )
    return result.scalar_one_or_none()


async def reverse_entry(
    db: AsyncSession,
    original: JournalEntry,
    *,
    reason: str,
    actor: str,
    was_paid: bool | None = None,
    transaction_id: str | None = None,
) -> JournalEntry:
    """Post the reversal of *original* and mark it REVERSED.

    *transaction_id* overrides the reversal's transaction id, for callers
    that need to tell the reversal apart from a later repost.
    """
    if original.status == JournalEntryStatus.REVERSED:
        raise DuplicateReversalError(f"Entry {original.id} has already been reversed")
    if original.status != JournalEntryStatus.POSTED:
        raise ValidationError(
            f"Cannot reverse: entry is {original.status.value}, expected posted"
        )
    if original.reversal_of_id is not None:
        raise ValidationError(f"Entry {original.id} is itself a reversal")

    existing = await find_reversal(db, original.id)
    if existing is not None:
        raise DuplicateReversalError(
            f"Entry {original.id} has already been reversed by {existing.id}"
        )

    lines = build_reversal_lines(original)
    validate_balance(lines)

    original_metadata = original.metadata_ or {}
    original_status = original_metadata.get("status", original.status.value)
    if was_paid is None:
        was_paid = original_status == "paid"

    now = utcnow()
    reversal = JournalEntry(
        id=str(uuid.uuid4()),
        transaction_id=transaction_id or original.transaction_id,
        transaction_source=original.transaction_source,
        transaction_type=f"reversal_{original.transaction_type}",
        date=now.date(),
        description=f"Reversal of {original.description}: {reason}",
        reference=f"{original.reference or original.transaction_id}{settings.reversal_suffix}",
        branch_id=original.branch_id,
        status=JournalEntryStatus.POSTED,
        created_by=actor,
        posted_by=actor,
        posted_at=now,
        reversal_of_id=original.id,
        metadata_={
            "reversalReason": reason,
            "originalStatus": original_status,
            "wasPaid": was_paid,
            "reversalOf": original.id,
        },
        lines=lines,
    )

    try:
        db.add(reversal)
        await db.flush()
        original.status = JournalEntryStatus.REVERSED
        original.reversed_by = actor
        original.reversed_at = now
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateReversalError(
            f"Entry {original.id} was reversed concurrently"
        ) from exc
    except SQLAlchemyError as exc:
        logger.error("Failed to reverse entry %s: %s", original.id, exc)
        raise PostingError(f"Could not persist reversal of entry {original.id}") from exc

    logger.info(
        "Reversed GL entry %s → %s by %s (%s)",
        original.id, reversal.id, actor, reason,
    )
    return reversal


async def reverse_entry_safely(
    db: AsyncSession,
    original: JournalEntry,
    *,
    reason: str,
    actor: str,
    was_paid: bool | None = None,
    transaction_id: str | None = None,
) -> ReversalOutcome:
    """Reverse *original* without failing the caller's business action.

    The reversal runs inside a savepoint.  A ``PostingError`` rolls back only
    the savepoint, is recorded as a reconciliation issue and comes back as a
    warning.  Validation errors, duplicates included, still propagate.
    """
    # Rolling back the savepoint expires *original*; read ids up front
    original_id = original.id
    original_transaction_id = original.transaction_id
    try:
        async with db.begin_nested():
            entry = await reverse_entry(
                db,
                original,
                reason=reason,
                actor=actor,
                was_paid=was_paid,
                transaction_id=transaction_id,
            )
    except PostingError as exc:
        await record_issue(
            exc,
            db=db,
            operation="reverse_entry",
            journal_entry_id=original_id,
            source_transaction_id=original_transaction_id,
            actor=actor,
        )
        return ReversalOutcome(
            entry=None,
            warning=(
                f"GL reversal failed for transaction {original_transaction_id}; "
                f"manual reconciliation required"
            ),
        )
    return ReversalOutcome(entry=entry)


async def amend_entry_amount(
    db: AsyncSession,
    repo: MappingRepository,
    original: JournalEntry,
    new_amount: Decimal,
    *,
    reason: str,
    actor: str,
    attributes: ModuleAttributes | None = None,
    transaction_date: date | None = None,
) -> Amendment:
    """Change the amount of a posted transaction by reversal and repost.

    The repost gets a fresh transaction id ``{id}-update-{ms}`` so it is not
    mistaken for the original by the posting idempotency check.  A new
    amount of zero leaves only the reversal.
    """
    new_amount = Decimal(str(new_amount))
    if new_amount < 0:
        raise ValidationError("Amended amount cannot be negative")

    reversal = await reverse_entry(db, original, reason=reason, actor=actor)
    if new_amount == 0:
        return Amendment(reversal=reversal, replacement=None)

    stamp = int(utcnow().timestamp() * 1000)
    transaction = TransactionData(
        id=f"{original.transaction_id}-update-{stamp}",
        type=original.transaction_type,
        amount=new_amount,
        date=transaction_date or original.date,
        source=ServiceModule(original.transaction_source),
        branch_id=original.branch_id,
        user_id=actor,
        reference=original.reference,
        attributes=attributes,
        metadata={**(original.metadata_ or {}), "amends": original.id},
    )
    replacement = await post_transaction(db, repo, transaction, actor=actor)
    logger.info(
        "Amended GL entry %s: reversed by %s, replaced by %s",
        original.id, reversal.id, replacement.id,
    )
    return Amendment(reversal=reversal, replacement=replacement)
