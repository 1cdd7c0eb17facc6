"""Core double-entry journal engine.

Every business transaction that moves money is booked here.  The fundamental
invariant is: **total debits == total credits** for every journal entry,
enforced at three layers:

1. Database CHECK constraint on line amounts (debit XOR credit)
2. ``validate_balance`` before anything is written
3. ``PostingLeg`` validation on caller-supplied legs

Posted entries are immutable.  Corrections are made exclusively via
reversing entries (see ``reversal_engine``).
"""

import logging
import uuid
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from floatledger.config import settings
from floatledger.models.gl import (
    GLMapping,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    ServiceModule,
)
from floatledger.schemas import PostingLeg, TransactionData
from floatledger.services.gl.coa_service import ensure_accounts_exist
from floatledger.services.gl.errors import NotFoundError, PostingError, ValidationError
from floatledger.services.gl.mapping_engine import MappingRepository, resolve_mapping

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")
_ZERO = Decimal("0")


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(_CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_balance(lines: Sequence[Any]) -> tuple[Decimal, Decimal]:
    """Ensure total debits == total credits.  Returns (total_dr, total_cr).

    *lines* may be ``PostingLeg`` or ``JournalEntryLine`` objects; anything
    with ``debit`` and ``credit`` attributes works.
    """
    if len(lines) < 2:
        raise ValidationError("A journal entry requires at least two lines")

    total_dr = _ZERO
    total_cr = _ZERO
    for idx, ln in enumerate(lines, start=1):
        dr = Decimal(str(ln.debit or 0))
        cr = Decimal(str(ln.credit or 0))
        if dr < 0 or cr < 0:
            raise ValidationError(f"Line {idx} has a negative amount")
        if dr > 0 and cr > 0:
            raise ValidationError(f"Line {idx} has both a debit and a credit")
        if dr == 0 and cr == 0:
            raise ValidationError(f"Line {idx} has no amount")
        total_dr += dr
        total_cr += cr

    if total_dr == 0:
        raise ValidationError("Entry has zero total")
    if abs(total_dr - total_cr) >= settings.balance_tolerance:
        raise ValidationError(
            f"Entry is not balanced: debits={total_dr}, credits={total_cr}"
        )
    return total_dr, total_cr


# ---------------------------------------------------------------------------
# Leg builders
# ---------------------------------------------------------------------------

def build_mapping_lines(transaction: TransactionData, mapping: GLMapping) -> list[PostingLeg]:
    """The two legs of a plain mapped posting: Dr debit account, Cr credit account."""
    description = f"{mapping.description} - {transaction.display_reference}"
    return [
        PostingLeg(
            account_id=mapping.debit_account_id,
            debit=transaction.amount,
            description=description,
        ),
        PostingLeg(
            account_id=mapping.credit_account_id,
            credit=transaction.amount,
            description=description,
        ),
    ]


def purchase_legs(
    inventory_account_id: str,
    settlement_account_id: str,
    amount: Decimal,
    fee: Decimal = _ZERO,
    fee_account_id: str | None = None,
    description: str | None = None,
) -> list[PostingLeg]:
    """Stock bought on account: Dr inventory (+ Dr fee expense), Cr settlement."""
    amount, fee = _money(amount), _money(fee)
    legs = [PostingLeg(account_id=inventory_account_id, debit=amount, description=description)]
    if fee > 0:
        if not fee_account_id:
            raise ValidationError("A purchase fee needs a fee account")
        legs.append(PostingLeg(account_id=fee_account_id, debit=fee, description=description))
    legs.append(
        PostingLeg(account_id=settlement_account_id, credit=amount + fee, description=description)
    )
    return legs


def payment_legs(
    cash_account_id: str,
    receivable_account_id: str,
    amount: Decimal,
    description: str | None = None,
) -> list[PostingLeg]:
    """Money received against a receivable: Dr cash, Cr receivable."""
    amount = _money(amount)
    return [
        PostingLeg(account_id=cash_account_id, debit=amount, description=description),
        PostingLeg(account_id=receivable_account_id, credit=amount, description=description),
    ]


def adjustment_legs(
    debit_account_id: str,
    credit_account_id: str,
    old_amount: Decimal,
    new_amount: Decimal,
    description: str | None = None,
) -> list[PostingLeg]:
    """Legs for a change from *old_amount* to *new_amount*.

    An increase books the difference in the mapping's orientation, a decrease
    swaps debit and credit.  No difference means no legs.
    """
    diff = _money(new_amount) - _money(old_amount)
    if diff == 0:
        return []
    if diff < 0:
        debit_account_id, credit_account_id = credit_account_id, debit_account_id
    diff = abs(diff)
    return [
        PostingLeg(account_id=debit_account_id, debit=diff, description=description),
        PostingLeg(account_id=credit_account_id, credit=diff, description=description),
    ]


def fee_legs(
    debit_account_id: str,
    credit_account_id: str,
    fee_account_id: str,
    amount: Decimal,
    fee: Decimal,
    description: str | None = None,
) -> list[PostingLeg]:
    """Principal plus a separately booked fee.

    Dr ``debit_account`` for amount + fee, Cr ``credit_account`` for the
    amount and Cr ``fee_account`` for the fee.
    """
    amount, fee = _money(amount), _money(fee)
    fee_description = f"{description} fee" if description else "Transaction fee"
    legs = [
        PostingLeg(account_id=debit_account_id, debit=amount + fee, description=description),
        PostingLeg(account_id=credit_account_id, credit=amount, description=description),
    ]
    if fee > 0:
        legs.append(
            PostingLeg(account_id=fee_account_id, credit=fee, description=fee_description)
        )
    return legs


# ---------------------------------------------------------------------------
# Entry generation
# ---------------------------------------------------------------------------

def _build_entry(
    transaction: TransactionData,
    legs: Iterable[PostingLeg],
    *,
    created_by: str,
    description: str,
) -> JournalEntry:
    lines = [
        JournalEntryLine(
            id=str(uuid.uuid4()),
            line_number=idx,
            account_id=leg.account_id,
            debit=_money(leg.debit),
            credit=_money(leg.credit),
            description=leg.description or description,
        )
        for idx, leg in enumerate(legs, start=1)
    ]
    validate_balance(lines)

    return JournalEntry(
        id=str(uuid.uuid4()),
        transaction_id=transaction.id,
        transaction_source=transaction.source.value,
        transaction_type=transaction.type,
        date=transaction.date,
        description=description,
        reference=transaction.reference,
        branch_id=transaction.branch_id,
        status=JournalEntryStatus.PENDING,
        created_by=created_by,
        metadata_=dict(transaction.metadata) or None,
        lines=lines,
    )


def generate_entry(
    transaction: TransactionData,
    mapping: GLMapping,
    *,
    created_by: str | None = None,
) -> JournalEntry:
    """Build an unsaved, validated two-line entry from a resolved mapping."""
    return _build_entry(
        transaction,
        build_mapping_lines(transaction, mapping),
        created_by=created_by or transaction.user_id or "system",
        description=f"{mapping.description} - {transaction.display_reference}",
    )


def generate_custom_entry(
    transaction: TransactionData,
    legs: Iterable[PostingLeg],
    *,
    created_by: str | None = None,
    description: str | None = None,
) -> JournalEntry:
    """Build an unsaved, validated multi-leg entry from explicit legs."""
    legs = list(legs)
    if not legs:
        raise ValidationError(f"No legs supplied for transaction {transaction.id}")
    return _build_entry(
        transaction,
        legs,
        created_by=created_by or transaction.user_id or "system",
        description=description or f"{transaction.type} - {transaction.display_reference}",
    )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

async def post_entry(
    db: AsyncSession,
    entry: JournalEntry,
    *,
    posted_by: str,
) -> JournalEntry:
    """Persist a pending entry and its lines as POSTED in a single flush.

    Nothing is written for an unbalanced entry.  The caller owns the
    transaction, so header and lines commit or roll back together.
    """
    if entry.status != JournalEntryStatus.PENDING:
        raise ValidationError(
            f"Cannot post: entry is {entry.status.value}, expected pending"
        )
    validate_balance(entry.lines)
    await ensure_accounts_exist(db, [ln.account_id for ln in entry.lines])

    entry.status = JournalEntryStatus.POSTED
    entry.posted_by = posted_by
    entry.posted_at = utcnow()

    try:
        db.add(entry)
        await db.flush()
    except SQLAlchemyError as exc:
        entry.status = JournalEntryStatus.PENDING
        entry.posted_by = None
        entry.posted_at = None
        logger.error(
            "Failed to post entry for %s/%s: %s",
            entry.transaction_source, entry.transaction_id, exc,
        )
        raise PostingError(
            f"Could not persist journal entry for transaction {entry.transaction_id}"
        ) from exc

    logger.info(
        "Posted GL entry %s for %s/%s (%s)",
        entry.id, entry.transaction_source, entry.transaction_id, entry.total_debits,
    )
    return entry


async def post_transaction(
    db: AsyncSession,
    repo: MappingRepository,
    transaction: TransactionData,
    *,
    actor: str,
    fallback: GLMapping | None = None,
) -> JournalEntry:
    """Resolve, generate and post the entry for one business transaction.

    Posting the same ``(source, transaction id)`` twice returns the entry
    that already exists.  A reversed entry no longer counts, so reposting
    after a reversal books a fresh entry.  Without a mapping the caller must
    pass an explicit *fallback*; there is no implicit default account.
    """
    existing = await find_entries_for_transaction(db, transaction.source, transaction.id)
    for entry in existing:
        if entry.reversal_of_id is None and entry.status != JournalEntryStatus.REVERSED:
            logger.info(
                "GL entry already exists for %s/%s, returning %s",
                transaction.source.value, transaction.id, entry.id,
            )
            return entry

    mapping = await resolve_mapping(repo, transaction.source, transaction.type, transaction)
    if mapping is None:
        if fallback is None:
            raise ValidationError(
                f"No GL mapping for {transaction.source.value}/{transaction.type} "
                f"and no fallback supplied"
            )
        if not fallback.debit_account_id or not fallback.credit_account_id or "0" in (
            fallback.debit_account_id, fallback.credit_account_id,
        ):
            raise ValidationError("Fallback mapping must name real debit and credit accounts")
        logger.warning(
            "Using fallback mapping for %s/%s (transaction %s)",
            transaction.source.value, transaction.type, transaction.id,
        )
        mapping = fallback

    entry = generate_entry(transaction, mapping, created_by=actor)
    return await post_entry(db, entry, posted_by=actor)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def net_effect(entries: Iterable[JournalEntry]) -> dict[str, Decimal]:
    """Per-account Σdebit − Σcredit over *entries*, zero balances dropped."""
    totals: dict[str, Decimal] = {}
    for entry in entries:
        for ln in entry.lines:
            totals[ln.account_id] = (
                totals.get(ln.account_id, _ZERO)
                + Decimal(str(ln.debit or 0))
                - Decimal(str(ln.credit or 0))
            )
    return {aid: amt for aid, amt in totals.items() if amt != 0}


async def get_journal_entry(db: AsyncSession, entry_id: str) -> JournalEntry:
    """Load a journal entry with its lines."""
    result = await db.execute(
        select(JournalEntry)
        .where(JournalEntry.id == entry_id)
        .options(selectinload(JournalEntry.lines))
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFoundError(f"Journal entry {entry_id} not found")
    return entry


async def find_entries_for_transaction(
    db: AsyncSession,
    source: ServiceModule | str,
    transaction_id: str,
) -> list[JournalEntry]:
    source_value = source.value if isinstance(source, ServiceModule) else source
    result = await db.execute(
        select(JournalEntry)
        .where(
            JournalEntry.transaction_source == source_value,
            JournalEntry.transaction_id == transaction_id,
        )
        .options(selectinload(JournalEntry.lines))
        .order_by(JournalEntry.created_at)
    )
    return list(result.scalars().all())
