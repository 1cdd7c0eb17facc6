"""Float statement reconciler.

Builds one chronological statement for a float account out of two sources:

- the native ``float_transactions`` ledger, whose ``balance_after`` is the
  operational truth, and
- GL journal lines posted to the GL accounts mapped to the float.

Each journal entry collapses to a single signed movement (its dominant
leg), the two streams are merged by date, and running balances are
recomputed forward from an opening balance.  The opening balance is the last
native ``balance_after`` before the start date, or the account's current
balance when there is none.  That is an approximation: GL-only movements
before the period are not carried in.

Read-only; nothing here writes to the database.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from floatledger.config import settings
from floatledger.models.float_account import FloatAccount, FloatTransaction
from floatledger.models.gl import GLAccount, JournalEntry, JournalEntryLine
from floatledger.schemas import (
    AuthContext,
    FloatAccountResponse,
    FloatStatement,
    StatementEntry,
    StatementFilters,
)
from floatledger.services.gl.coa_service import EFFECTIVE_STATUSES, get_float_account
from floatledger.services.gl.errors import AccessDeniedError
from floatledger.services.gl.float_mapping import resolve_float_gl_accounts
from floatledger.services.gl.statement_summary import summarize

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


@dataclass
class GLLineRow:
    """One GL line on a float-mapped account, with its entry header."""

    journal_entry_id: str
    line_number: int
    account_id: str
    account_code: str
    debit: Decimal
    credit: Decimal
    description: str
    entry_date: date
    entry_description: str
    transaction_type: str
    transaction_id: str
    transaction_source: str
    reference: str | None = None
    created_by: str | None = None
    branch_id: str | None = None


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def ensure_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_statement_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _range_bounds(filters: StatementFilters) -> tuple[datetime | None, datetime | None]:
    """Inclusive start, exclusive end (the day after ``end_date``)."""
    start = as_statement_datetime(filters.start_date) if filters.start_date else None
    end = (
        as_statement_datetime(filters.end_date + timedelta(days=1))
        if filters.end_date else None
    )
    return start, end


# ---------------------------------------------------------------------------
# Branch scope
# ---------------------------------------------------------------------------

def effective_branch_id(auth: AuthContext, filters: StatementFilters) -> str | None:
    """Branch the caller may see; ``None`` means unrestricted (admins only)."""
    if auth.is_admin:
        return filters.branch_id
    if not auth.branch_id:
        raise AccessDeniedError("User has no branch assigned")
    return auth.branch_id


def check_branch_access(
    auth: AuthContext, filters: StatementFilters, account: FloatAccount
) -> str | None:
    branch_id = effective_branch_id(auth, filters)
    if branch_id is not None and branch_id != account.branch_id:
        logger.warning(
            "Statement access denied: user %s (branch %s) → float %s (branch %s)",
            auth.user_id, branch_id, account.id, account.branch_id,
        )
        raise AccessDeniedError(
            f"Float account {account.id} does not belong to branch {branch_id}"
        )
    return branch_id


# ---------------------------------------------------------------------------
# Entry shaping (pure)
# ---------------------------------------------------------------------------

def native_entry(tx: FloatTransaction) -> StatementEntry:
    return StatementEntry(
        id=tx.id,
        transaction_date=ensure_utc(tx.created_at),
        transaction_type=tx.transaction_type,
        amount=Decimal(str(tx.amount)),
        balance_before=Decimal(str(tx.balance_before)),
        balance_after=Decimal(str(tx.balance_after)),
        description=tx.description or "",
        reference=tx.reference or "",
        processed_by=tx.processed_by or "",
        source_module=settings.native_source_label,
        source_transaction_id=tx.id,
        branch_id=tx.branch_id,
    )


def group_gl_lines(rows: Iterable[GLLineRow]) -> list[list[GLLineRow]]:
    """Group lines by journal entry, keeping first-seen order."""
    groups: dict[str, list[GLLineRow]] = {}
    for row in rows:
        groups.setdefault(row.journal_entry_id, []).append(row)
    return list(groups.values())


def _is_fee_leg(line: GLLineRow) -> bool:
    code = (line.account_code or "").lower()
    description = (line.description or "").lower()
    return any(m in code or m in description for m in settings.fee_marker_list)


def collapse_gl_group(
    lines: Sequence[GLLineRow], main_account_ids: Iterable[str] = ()
) -> StatementEntry:
    """Reduce one entry's lines to a single signed statement movement.

    The dominant leg has the largest debit + credit.  Ties go to a leg on the
    float's main GL account, then to the lowest line number.  A credit-heavy
    leg is an inflow (+credit), otherwise an outflow (−debit).
    """
    main = set(main_account_ids)
    dominant = max(
        lines,
        key=lambda ln: (ln.debit + ln.credit, ln.account_id in main, -ln.line_number),
    )
    if dominant.credit > dominant.debit:
        amount = dominant.credit
    else:
        amount = -dominant.debit

    fee = sum((ln.credit for ln in lines if _is_fee_leg(ln)), _ZERO)
    header = lines[0]
    description = header.entry_description
    if fee > 0:
        description = f"{description} (Fee: {fee:.2f})"

    return StatementEntry(
        id=header.journal_entry_id,
        transaction_date=as_statement_datetime(header.entry_date),
        transaction_type=header.transaction_type,
        amount=amount,
        description=description,
        reference=header.reference or "",
        processed_by=header.created_by or "",
        source_module=header.transaction_source,
        source_transaction_id=header.transaction_id,
        branch_id=header.branch_id,
        fee=fee,
    )


def merge_entries(
    native: Sequence[StatementEntry], derived: Sequence[StatementEntry]
) -> list[StatementEntry]:
    """Date-ordered merge; on equal timestamps native rows come first."""
    return sorted([*native, *derived], key=lambda e: e.transaction_date)


def backfill_balances(
    entries: Sequence[StatementEntry], opening_balance: Decimal
) -> list[StatementEntry]:
    """Recompute running balances so each row starts where the previous ended."""
    running = Decimal(str(opening_balance))
    filled = []
    for entry in entries:
        after = running + entry.amount
        filled.append(
            entry.model_copy(update={"balance_before": running, "balance_after": after})
        )
        running = after
    return filled


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

async def _load_native(
    db: AsyncSession,
    float_account_id: str,
    start: datetime | None,
    end: datetime | None,
    branch_id: str | None,
) -> list[FloatTransaction]:
    q = select(FloatTransaction).where(FloatTransaction.float_account_id == float_account_id)
    if start is not None:
        q = q.where(FloatTransaction.created_at >= start)
    if end is not None:
        q = q.where(FloatTransaction.created_at < end)
    if branch_id is not None:
        q = q.where(FloatTransaction.branch_id == branch_id)
    q = q.order_by(FloatTransaction.created_at, FloatTransaction.id)
    result = await db.execute(q)
    return list(result.scalars().all())


async def _load_gl_lines(
    db: AsyncSession,
    account_ids: list[str],
    start_date: date | None,
    end_date: date | None,
) -> list[GLLineRow]:
    q = (
        select(JournalEntryLine, JournalEntry, GLAccount.code)
        .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
        .join(GLAccount, JournalEntryLine.account_id == GLAccount.id)
        .where(
            JournalEntryLine.account_id.in_(account_ids),
            JournalEntry.status.in_(EFFECTIVE_STATUSES),
        )
    )
    if start_date is not None:
        q = q.where(JournalEntry.date >= start_date)
    if end_date is not None:
        q = q.where(JournalEntry.date < end_date + timedelta(days=1))
    q = q.order_by(
        JournalEntry.date, JournalEntry.created_at, JournalEntry.id, JournalEntryLine.line_number
    )
    result = await db.execute(q)

    rows = []
    for line, entry, code in result.all():
        rows.append(
            GLLineRow(
                journal_entry_id=entry.id,
                line_number=line.line_number,
                account_id=line.account_id,
                account_code=code,
                debit=Decimal(str(line.debit or 0)),
                credit=Decimal(str(line.credit or 0)),
                description=line.description or "",
                entry_date=entry.date,
                entry_description=entry.description,
                transaction_type=entry.transaction_type,
                transaction_id=entry.transaction_id,
                transaction_source=entry.transaction_source,
                reference=entry.reference,
                created_by=entry.created_by,
                branch_id=entry.branch_id,
            )
        )
    return rows


async def _opening_balance(
    db: AsyncSession, account: FloatAccount, start_date: date | None
) -> Decimal:
    if start_date is not None:
        result = await db.execute(
            select(FloatTransaction.balance_after)
            .where(
                FloatTransaction.float_account_id == account.id,
                FloatTransaction.created_at < as_statement_datetime(start_date),
            )
            .order_by(FloatTransaction.created_at.desc())
            .limit(1)
        )
        last = result.scalar_one_or_none()
        if last is not None:
            return Decimal(str(last))
    return Decimal(str(account.current_balance or 0))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def build_float_statement(
    db: AsyncSession,
    float_account_id: str,
    filters: StatementFilters | None,
    auth: AuthContext,
) -> FloatStatement:
    """Merged native + GL statement for one float account."""
    filters = filters or StatementFilters()
    account = await get_float_account(db, float_account_id)
    branch_id = check_branch_access(auth, filters, account)

    start, end = _range_bounds(filters)
    native = [
        native_entry(tx)
        for tx in await _load_native(db, account.id, start, end, branch_id)
    ]

    derived: list[StatementEntry] = []
    if filters.include_gl:
        gl_accounts = await resolve_float_gl_accounts(db, account)
        if gl_accounts.is_mapped:
            rows = await _load_gl_lines(
                db, gl_accounts.account_ids, filters.start_date, filters.end_date
            )
            derived = [
                collapse_gl_group(group, gl_accounts.main_account_ids)
                for group in group_gl_lines(rows)
            ]

    opening = await _opening_balance(db, account, filters.start_date)
    entries = backfill_balances(merge_entries(native, derived), opening)
    summary = summarize(entries, filters.start_date, filters.end_date)

    logger.info(
        "Float statement %s: %d native + %d GL entries, %s → %s",
        account.id, len(native), len(derived),
        summary.opening_balance, summary.closing_balance,
    )
    return FloatStatement(
        entries=entries,
        summary=summary,
        account=FloatAccountResponse.model_validate(account),
    )
