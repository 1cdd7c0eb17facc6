"""Schema and configuration validation tests."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from floatledger.config import Settings
from floatledger.models.gl import ServiceModule
from floatledger.schemas import (
    AuthContext,
    MomoAttributes,
    PostingLeg,
    PowerAttributes,
    StatementFilters,
    TransactionData,
    condition_fields,
)


def _tx(**overrides):
    data = dict(id="t1", type="cash-in", amount=Decimal("10"), date=date(2026, 3, 1), source="momo")
    data.update(overrides)
    return TransactionData(**data)


class TestTransactionData:

    def test_amount_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            _tx(amount=Decimal("0"))

    def test_attributes_must_match_source(self):
        with pytest.raises(PydanticValidationError, match="attributes are for 'power'"):
            _tx(attributes=PowerAttributes(provider="ECG"))

    def test_attributes_from_dict_use_discriminator(self):
        tx = _tx(attributes={"service_module": "momo", "provider": "MTN"})
        assert isinstance(tx.attributes, MomoAttributes)

    def test_unknown_attribute_rejected(self):
        with pytest.raises(PydanticValidationError):
            MomoAttributes(provider="MTN", meter_number="x")

    def test_condition_context(self):
        tx = _tx(reference="R1", attributes=MomoAttributes(provider="MTN"))
        ctx = tx.condition_context()
        assert ctx["provider"] == "MTN"
        assert ctx["reference"] == "R1"
        assert ctx["amount"] == Decimal("10")
        assert "customer_name" not in ctx
        assert "service_module" not in ctx

    def test_display_reference(self):
        assert _tx().display_reference == "t1"
        assert _tx(reference="R1").display_reference == "R1"


class TestPostingLeg:

    def test_both_sides_rejected(self):
        with pytest.raises(PydanticValidationError, match="either a debit or a credit"):
            PostingLeg(account_id="1001", debit=Decimal("1"), credit=Decimal("1"))

    def test_negative_rejected(self):
        with pytest.raises(PydanticValidationError):
            PostingLeg(account_id="1001", debit=Decimal("-1"))


def test_condition_fields_include_common_and_module():
    fields = condition_fields(ServiceModule.POWER)
    assert {"amount", "fee", "reference", "branch_id", "meter_number", "provider"} <= fields
    assert "service_module" not in fields


def test_statement_filter_range_ordered():
    with pytest.raises(PydanticValidationError, match="start_date"):
        StatementFilters(start_date=date(2026, 4, 1), end_date=date(2026, 3, 1))


def test_admin_detection():
    assert AuthContext(role=" ADMIN ").is_admin
    assert not AuthContext(role="manager").is_admin


class TestSettings:

    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.balance_tolerance == Decimal("0.001")
        assert s.reversal_suffix == "-REVERSAL"
        assert s.fee_marker_list == ["fee"]

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("FLOATLEDGER_FEE_MARKERS", "fee, charge")
        monkeypatch.setenv("FLOATLEDGER_BALANCE_TOLERANCE", "0.005")
        s = Settings(_env_file=None)
        assert s.fee_marker_list == ["fee", "charge"]
        assert s.balance_tolerance == Decimal("0.005")

    def test_tolerance_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, balance_tolerance=Decimal("0"))
