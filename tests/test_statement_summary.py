"""Tests for statement summary totals."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from floatledger.schemas import StatementEntry
from floatledger.services.gl.statement_service import backfill_balances
from floatledger.services.gl.statement_summary import summarize


def _entries(amounts, sources=None):
    base = datetime(2026, 3, 1, tzinfo=timezone.utc)
    sources = sources or ["float_transactions"] * len(amounts)
    return [
        StatementEntry(
            id=f"e{i}",
            transaction_date=base + timedelta(hours=i),
            transaction_type="t",
            amount=Decimal(a),
            source_module=src,
        )
        for i, (a, src) in enumerate(zip(amounts, sources))
    ]


def test_empty_is_all_zero():
    s = summarize([], date(2026, 3, 1), date(2026, 3, 31))
    assert s.opening_balance == s.closing_balance == Decimal("0")
    assert s.total_credits == s.total_debits == s.net_change == Decimal("0")
    assert s.transaction_count == s.gl_transaction_count == s.native_transaction_count == 0
    assert s.period.end_date == date(2026, 3, 31)


def test_totals_and_counts():
    entries = backfill_balances(
        _entries(["200", "-50", "30"], ["float_transactions", "power", "momo"]),
        Decimal("1000"),
    )
    s = summarize(entries)
    assert s.opening_balance == Decimal("1000")
    assert s.closing_balance == Decimal("1180")
    assert s.total_credits == Decimal("230")
    assert s.total_debits == Decimal("50")
    assert s.net_change == Decimal("180")
    assert s.transaction_count == 3
    assert s.gl_transaction_count == 2
    assert s.native_transaction_count == 1


def test_closing_equals_opening_plus_net_change():
    amounts = ["15.10", "-3.05", "-400", "250", "0.95", "-12"]
    entries = backfill_balances(_entries(amounts), Decimal("512.40"))
    s = summarize(entries)
    assert s.closing_balance == s.opening_balance + s.net_change
