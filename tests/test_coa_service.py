"""Tests for the account directory, GL seeding and logging setup."""

import logging
from decimal import Decimal
from types import SimpleNamespace

import pytest

from floatledger.logging_config import configure_logging
from floatledger.models.gl import GLAccount, GLAccountType, GLMapping
from floatledger.seed_gl import DEFAULT_ACCOUNTS, DEFAULT_MAPPINGS, seed_gl_data
from floatledger.services.gl.coa_service import (
    ensure_accounts_exist,
    get_account,
    get_account_balance,
    get_float_account,
    latest_balance_after,
)
from floatledger.services.gl.errors import NotFoundError


def _acct(id_, type_=GLAccountType.ASSET, active=True):
    return GLAccount(id=id_, code=id_, name=id_, type=type_, is_active=active)


class TestLookups:

    @pytest.mark.asyncio
    async def test_get_account_missing(self, db):
        with pytest.raises(NotFoundError, match="acc-x"):
            await get_account(db, "acc-x")

    @pytest.mark.asyncio
    async def test_ensure_accounts_exist(self, db, make_result):
        db.execute.return_value = make_result(scalars=[_acct("a"), _acct("b")])
        await ensure_accounts_exist(db, ["a", "b"])

    @pytest.mark.asyncio
    async def test_inactive_account_rejected(self, db, make_result):
        db.execute.return_value = make_result(scalars=[_acct("a"), _acct("b", active=False)])
        with pytest.raises(NotFoundError, match="b not found or inactive"):
            await ensure_accounts_exist(db, ["a", "b"])

    @pytest.mark.asyncio
    async def test_float_account_missing(self, db):
        with pytest.raises(NotFoundError, match="Float account"):
            await get_float_account(db, "float-x")

    @pytest.mark.asyncio
    async def test_latest_balance_after(self, db, make_result):
        db.execute.return_value = make_result(scalar=Decimal("1150.00"))
        assert await latest_balance_after(db, "float-1") == Decimal("1150.00")


class TestAccountBalance:

    @pytest.mark.asyncio
    async def test_asset_is_debit_normal(self, db, make_result):
        totals = make_result()
        totals.one.return_value = SimpleNamespace(dr=Decimal("700.50"), cr=Decimal("120.50"))
        db.execute.side_effect = [make_result(scalar=_acct("1001")), totals]
        balance = await get_account_balance(db, "1001")
        assert balance == {
            "debit_total": Decimal("700.50"),
            "credit_total": Decimal("120.50"),
            "balance": Decimal("580.00"),
        }

    @pytest.mark.asyncio
    async def test_revenue_is_credit_normal(self, db, make_result):
        totals = make_result()
        totals.one.return_value = SimpleNamespace(dr=0, cr=Decimal("150"))
        db.execute.side_effect = [
            make_result(scalar=_acct("4100", GLAccountType.REVENUE)), totals,
        ]
        assert (await get_account_balance(db, "4100"))["balance"] == Decimal("150")


class TestSeed:

    @pytest.mark.asyncio
    async def test_fresh_database(self, db, make_result):
        db.execute.return_value = make_result(scalar=None)
        await seed_gl_data(db)

        added = [call.args[0] for call in db.add.call_args_list]
        assert sum(isinstance(o, GLAccount) for o in added) == len(DEFAULT_ACCOUNTS)
        assert sum(isinstance(o, GLMapping) for o in added) == len(DEFAULT_MAPPINGS)
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_idempotent(self, db, make_result):
        db.execute.return_value = make_result(scalar=_acct("existing"))
        await seed_gl_data(db)
        db.add.assert_not_called()


def test_configure_logging_sets_level():
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging("debug")
        assert root.level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    finally:
        root.setLevel(previous)
