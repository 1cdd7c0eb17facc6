"""Account directory.

Read-only lookups over the chart of accounts and float accounts.  Accounts
are maintained by an external chart-of-accounts collaborator; this module
never creates or edits them.
"""

import logging
from decimal import Decimal

from sqlalchemy import select, func as sa_func
from sqlalchemy.ext.asyncio import AsyncSession

from floatledger.models.float_account import FloatAccount, FloatTransaction
from floatledger.models.gl import (
    GLAccount,
    GLAccountType,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
)
from floatledger.services.gl.errors import NotFoundError

logger = logging.getLogger(__name__)

# Entries whose lines still count toward balances.  A reversed entry keeps its
# lines; its effect is cancelled by the separate reversal entry.
EFFECTIVE_STATUSES = (JournalEntryStatus.POSTED, JournalEntryStatus.REVERSED)

_DEBIT_NORMAL = (GLAccountType.ASSET, GLAccountType.EXPENSE)


# ---------------------------------------------------------------------------
# GL accounts
# ---------------------------------------------------------------------------

async def get_account(db: AsyncSession, account_id: str) -> GLAccount:
    result = await db.execute(select(GLAccount).where(GLAccount.id == account_id))
    account = result.scalar_one_or_none()
    if account is None:
        raise NotFoundError(f"GL account {account_id} not found")
    return account


async def get_account_by_code(db: AsyncSession, code: str) -> GLAccount | None:
    result = await db.execute(select(GLAccount).where(GLAccount.code == code))
    return result.scalar_one_or_none()


async def get_accounts(db: AsyncSession, account_ids: list[str]) -> dict[str, GLAccount]:
    """Load several accounts keyed by id.  Missing ids are simply absent."""
    if not account_ids:
        return {}
    result = await db.execute(
        select(GLAccount).where(GLAccount.id.in_(set(account_ids)))
    )
    return {a.id: a for a in result.scalars().all()}


async def ensure_accounts_exist(db: AsyncSession, account_ids: list[str]) -> None:
    """Raise ``NotFoundError`` naming the first id with no active account."""
    accounts = await get_accounts(db, account_ids)
    for aid in account_ids:
        acct = accounts.get(aid)
        if acct is None or not acct.is_active:
            raise NotFoundError(f"GL account {aid} not found or inactive")


async def get_account_balance(db: AsyncSession, account_id: str) -> dict:
    """Sum the posted lines of one account.

    Returns ``{"debit_total", "credit_total", "balance"}`` where balance is
    debits - credits for asset/expense accounts and credits - debits otherwise.
    """
    account = await get_account(db, account_id)
    result = await db.execute(
        select(
            sa_func.coalesce(sa_func.sum(JournalEntryLine.debit), 0).label("dr"),
            sa_func.coalesce(sa_func.sum(JournalEntryLine.credit), 0).label("cr"),
        )
        .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
        .where(
            JournalEntryLine.account_id == account_id,
            JournalEntry.status.in_(EFFECTIVE_STATUSES),
        )
    )
    row = result.one()
    dr = Decimal(str(row.dr))
    cr = Decimal(str(row.cr))
    balance = dr - cr if account.type in _DEBIT_NORMAL else cr - dr
    return {"debit_total": dr, "credit_total": cr, "balance": balance}


# ---------------------------------------------------------------------------
# Float accounts
# ---------------------------------------------------------------------------

async def get_float_account(db: AsyncSession, float_account_id: str) -> FloatAccount:
    result = await db.execute(
        select(FloatAccount).where(FloatAccount.id == float_account_id)
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise NotFoundError(f"Float account {float_account_id} not found")
    return account


async def latest_balance_after(db: AsyncSession, float_account_id: str) -> Decimal | None:
    """``balance_after`` of the newest native transaction, the authoritative balance."""
    result = await db.execute(
        select(FloatTransaction.balance_after)
        .where(FloatTransaction.float_account_id == float_account_id)
        .order_by(FloatTransaction.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()
