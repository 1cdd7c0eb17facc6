"""Tests for float account ↔ GL account mapping resolution and maintenance."""

from unittest.mock import patch

import pytest

from floatledger.models.float_account import FloatAccount
from floatledger.models.gl import FloatGLMapping, FloatMappingType
from floatledger.services.gl.float_mapping import (
    create_or_update_float_mapping,
    float_transaction_type,
    remove_float_mapping,
    resolve_float_gl_accounts,
)

SVC = "floatledger.services.gl.float_mapping"


def _float(account_type="agency-banking") -> FloatAccount:
    return FloatAccount(id="float-1", branch_id="branch-a", account_type=account_type)


def _row(gl_account_id, mapping_type=FloatMappingType.MAIN_ACCOUNT, float_account_id="float-1"):
    return FloatGLMapping(
        float_account_id=float_account_id,
        gl_account_id=gl_account_id,
        mapping_type=mapping_type,
        is_active=True,
    )


def test_transaction_type_key():
    assert float_transaction_type("agency-banking") == "agency_banking_float"
    assert float_transaction_type("momo") == "momo_float"


class TestResolve:

    @pytest.mark.asyncio
    async def test_direct_mappings_win(self, db, make_result):
        db.execute.return_value = make_result(scalars=[
            _row("gl-main"),
            _row("gl-fee", FloatMappingType.FEE_ACCOUNT),
        ])
        resolved = await resolve_float_gl_accounts(db, _float())
        assert resolved.source == "direct"
        assert resolved.account_ids == ["gl-main", "gl-fee"]
        assert resolved.main_account_ids == {"gl-main"}
        assert db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_branch_fallback(self, db, make_result):
        db.execute.side_effect = [
            make_result(scalars=[]),
            make_result(scalars=[_row("gl-branch", float_account_id=None)]),
        ]
        resolved = await resolve_float_gl_accounts(db, _float())
        assert resolved.source == "branch"
        assert resolved.account_ids == ["gl-branch"]
        assert resolved.is_mapped

    @pytest.mark.asyncio
    async def test_unmapped(self, db, make_result):
        db.execute.side_effect = [make_result(scalars=[]), make_result(scalars=[])]
        resolved = await resolve_float_gl_accounts(db, _float())
        assert not resolved.is_mapped
        assert resolved.source is None


class TestMaintenance:

    @pytest.mark.asyncio
    async def test_create(self, db, make_result):
        db.execute.return_value = make_result(scalars=[])
        with patch(f"{SVC}.get_float_account", return_value=_float()), \
                patch(f"{SVC}.ensure_accounts_exist") as ensure:
            mapping = await create_or_update_float_mapping(db, "float-1", "gl-main")

        ensure.assert_awaited_once_with(db, ["gl-main"])
        db.add.assert_called_once_with(mapping)
        assert mapping.transaction_type == "agency_banking_float"
        assert mapping.branch_id == "branch-a"
        assert mapping.mapping_type == FloatMappingType.MAIN_ACCOUNT

    @pytest.mark.asyncio
    async def test_update_reactivates(self, db, make_result):
        existing = _row("gl-old")
        existing.is_active = False
        db.execute.return_value = make_result(scalars=[existing])
        with patch(f"{SVC}.get_float_account", return_value=_float()), \
                patch(f"{SVC}.ensure_accounts_exist"):
            mapping = await create_or_update_float_mapping(db, "float-1", "gl-new")

        assert mapping is existing
        assert mapping.gl_account_id == "gl-new"
        assert mapping.is_active is True
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_remove_soft_deactivates(self, db, make_result):
        rows = [_row("gl-main"), _row("gl-fee", FloatMappingType.FEE_ACCOUNT)]
        db.execute.return_value = make_result(scalars=rows)
        assert await remove_float_mapping(db, "float-1") == 2
        assert all(r.is_active is False for r in rows)
        db.flush.assert_awaited()
