"""Seed data for the General Ledger.

Creates (all idempotent):
- Default chart of accounts for a branch back-office
- Default unconditioned GL mappings for every service module
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from floatledger.models.gl import GLAccount, GLAccountType, GLMapping, ServiceModule

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Chart of accounts: (code, name, type)
# ---------------------------------------------------------------------------

DEFAULT_ACCOUNTS: list[tuple[str, str, GLAccountType]] = [
    ("1001", "Cash", GLAccountType.ASSET),
    ("1002", "E-Zwich Settlement Account", GLAccountType.ASSET),
    ("1003", "MoMo Float Account", GLAccountType.ASSET),
    ("1004", "Power Float Account", GLAccountType.ASSET),
    ("1005", "Agency Banking Float", GLAccountType.ASSET),
    ("1006", "Jumia Float Account", GLAccountType.ASSET),
    ("1010", "Accounts Receivable", GLAccountType.ASSET),
    ("1020", "Inventory - E-Zwich Cards", GLAccountType.ASSET),
    ("1200", "Cash in Till", GLAccountType.ASSET),
    ("2001", "Customer Deposits", GLAccountType.LIABILITY),
    ("2002", "Merchant Payables", GLAccountType.LIABILITY),
    ("2003", "Bank Partner Liabilities", GLAccountType.LIABILITY),
    ("2004", "Commission Payables", GLAccountType.LIABILITY),
    ("3001", "Owner's Equity", GLAccountType.EQUITY),
    ("4001", "MoMo Commission Revenue", GLAccountType.REVENUE),
    ("4002", "Agency Banking Revenue", GLAccountType.REVENUE),
    ("4003", "Transaction Fee Income", GLAccountType.REVENUE),
    ("4004", "Power Commission Revenue", GLAccountType.REVENUE),
    ("4005", "Jumia Commission Revenue", GLAccountType.REVENUE),
    ("4006", "E-Zwich Card Sales Revenue", GLAccountType.REVENUE),
    ("4010", "Other Income", GLAccountType.REVENUE),
    ("4100", "Commission Income", GLAccountType.REVENUE),
    ("5001", "General Expenses", GLAccountType.EXPENSE),
    ("5006", "Bank Charges", GLAccountType.EXPENSE),
]


# ---------------------------------------------------------------------------
# Default mappings: (module, transaction type, debit code, credit code, description)
# ---------------------------------------------------------------------------

DEFAULT_MAPPINGS: list[tuple[ServiceModule, str, str, str, str]] = [
    # MoMo
    (ServiceModule.MOMO, "cash-in", "1001", "2001", "MoMo Cash In Transaction"),
    (ServiceModule.MOMO, "cash-out", "2001", "1001", "MoMo Cash Out Transaction"),
    (ServiceModule.MOMO, "commission", "1001", "4001", "MoMo Commission Revenue"),
    # Agency banking
    (ServiceModule.AGENCY_BANKING, "deposit", "1001", "2001", "Agency Banking Deposit"),
    (ServiceModule.AGENCY_BANKING, "withdrawal", "2001", "1001", "Agency Banking Withdrawal"),
    (ServiceModule.AGENCY_BANKING, "commission", "1001", "4001", "Agency Banking Commission Revenue"),
    # E-Zwich
    (ServiceModule.E_ZWICH, "issue", "1001", "4002", "E-Zwich Card Issuance Fee"),
    (ServiceModule.E_ZWICH, "withdrawal", "1002", "1001", "E-Zwich Withdrawal"),
    (ServiceModule.E_ZWICH, "fee", "1002", "4003", "E-Zwich Transaction Fee"),
    # Power
    (ServiceModule.POWER, "sale", "1001", "1004", "Power Sale Transaction"),
    (ServiceModule.POWER, "purchase", "1004", "1001", "Power Purchase Transaction"),
    (ServiceModule.POWER, "commission", "1001", "4004", "Power Commission Revenue"),
    # Jumia
    (ServiceModule.JUMIA, "collection", "1001", "2002", "Jumia Collection"),
    (ServiceModule.JUMIA, "settlement", "2002", "1001", "Jumia Settlement"),
    (ServiceModule.JUMIA, "commission", "1001", "4005", "Jumia Commission Revenue"),
    # Expenses
    (ServiceModule.EXPENSES, "payment", "5001", "1001", "Expense Payment"),
    # Commissions
    (ServiceModule.COMMISSIONS, "commission", "1010", "4100", "Commission Receivable"),
    # Float
    (ServiceModule.FLOAT, "allocation", "1003", "1001", "Float Allocation to Agent/Branch"),
    (ServiceModule.FLOAT, "return", "1001", "1003", "Float Return from Agent/Branch"),
]


# ---------------------------------------------------------------------------
# Helpers: get-or-create
# ---------------------------------------------------------------------------

async def _get_or_create_account(
    db: AsyncSession, *, code: str, name: str, account_type: GLAccountType
) -> GLAccount:
    result = await db.execute(select(GLAccount).where(GLAccount.code == code))
    account = result.scalar_one_or_none()
    if account:
        return account
    account = GLAccount(code=code, name=name, type=account_type, is_active=True)
    db.add(account)
    await db.flush()
    return account


async def _seed_coa(db: AsyncSession) -> dict[str, GLAccount]:
    accounts = {}
    for code, name, account_type in DEFAULT_ACCOUNTS:
        accounts[code] = await _get_or_create_account(
            db, code=code, name=name, account_type=account_type
        )
    return accounts


async def _seed_mappings(db: AsyncSession, accounts: dict[str, GLAccount]) -> int:
    """Create default mappings for pairs that have none yet."""
    created = 0
    for position, (module, tx_type, debit_code, credit_code, description) in enumerate(
        DEFAULT_MAPPINGS
    ):
        existing = await db.execute(
            select(GLMapping.id)
            .where(
                GLMapping.service_module == module.value,
                GLMapping.transaction_type == tx_type,
            )
            .limit(1)
        )
        if existing.scalar_one_or_none() is not None:
            continue
        db.add(
            GLMapping(
                service_module=module.value,
                transaction_type=tx_type,
                debit_account_id=accounts[debit_code].id,
                credit_account_id=accounts[credit_code].id,
                description=description,
                conditions=None,
                position=position,
                is_active=True,
            )
        )
        created += 1
    await db.flush()
    return created


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

async def seed_gl_data(db: AsyncSession) -> None:
    """Seed the chart of accounts and default mappings (idempotent)."""
    accounts = await _seed_coa(db)
    created = await _seed_mappings(db, accounts)
    await db.commit()
    logger.info(
        "GL seed data applied (%d accounts, %d new mappings)", len(accounts), created
    )
