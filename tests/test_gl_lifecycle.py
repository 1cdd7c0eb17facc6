"""GL lifecycle tests — post, reverse and reconcile against an in-memory ledger.

Covers:
- Power sale posting through the default seed mappings
- Trial balance (Σdebits == Σcredits) after every step
- Reversal returns every account to its prior balance
- Float statement built from the posted GL lines of a mapped float account
"""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from floatledger.models.gl import GLMapping, JournalEntryStatus
from floatledger.schemas import PowerAttributes, TransactionData
from floatledger.seed_gl import DEFAULT_ACCOUNTS, DEFAULT_MAPPINGS
from floatledger.services.gl.journal_engine import net_effect, post_transaction
from floatledger.services.gl.mapping_engine import InMemoryMappingRepository
from floatledger.services.gl.reversal_engine import reverse_entry
from floatledger.services.gl.statement_service import (
    GLLineRow,
    backfill_balances,
    collapse_gl_group,
    merge_entries,
)
from floatledger.services.gl.statement_summary import summarize

# Account ids equal seed codes in this simulation
CODES = {code for code, _, _ in DEFAULT_ACCOUNTS}


def _seed_repo() -> InMemoryMappingRepository:
    return InMemoryMappingRepository(
        GLMapping(
            id=f"map-{i}",
            service_module=module.value,
            transaction_type=tx_type,
            debit_account_id=debit,
            credit_account_id=credit,
            description=description,
            conditions=None,
            is_active=True,
            position=i,
        )
        for i, (module, tx_type, debit, credit, description) in enumerate(DEFAULT_MAPPINGS)
    )


def _sale(tx_id, amount, day=14):
    return TransactionData(
        id=tx_id,
        type="sale",
        amount=Decimal(amount),
        date=date(2026, 3, day),
        source="power",
        branch_id="branch-a",
        user_id="teller-1",
        reference=f"ECG-{tx_id}",
        attributes=PowerAttributes(provider="ECG"),
    )


def _trial_balance(entries):
    dr = sum((ln.debit for e in entries for ln in e.lines), Decimal("0"))
    cr = sum((ln.credit for e in entries for ln in e.lines), Decimal("0"))
    return dr, cr


def _gl_rows(entries, account_ids):
    for entry in entries:
        for ln in entry.lines:
            if ln.account_id in account_ids:
                yield GLLineRow(
                    journal_entry_id=entry.id,
                    line_number=ln.line_number,
                    account_id=ln.account_id,
                    account_code=ln.account_id,
                    debit=ln.debit,
                    credit=ln.credit,
                    description=ln.description,
                    entry_date=entry.date,
                    entry_description=entry.description,
                    transaction_type=entry.transaction_type,
                    transaction_id=entry.transaction_id,
                    transaction_source=entry.transaction_source,
                    reference=entry.reference,
                    created_by=entry.created_by,
                    branch_id=entry.branch_id,
                )


def test_seed_mappings_reference_seed_accounts():
    for _, _, debit, credit, _ in DEFAULT_MAPPINGS:
        assert debit in CODES and credit in CODES
        assert debit != credit


@pytest.mark.asyncio
async def test_power_sales_post_reverse_and_reconcile(db):
    repo = _seed_repo()
    ledger = []

    with patch("floatledger.services.gl.journal_engine.ensure_accounts_exist"):
        for tx_id, amount, day in [("s1", "500", 14), ("s2", "120.50", 15), ("s3", "80", 16)]:
            entry = await post_transaction(db, repo, _sale(tx_id, amount, day), actor="teller-1")
            ledger.append(entry)
            dr, cr = _trial_balance(ledger)
            assert dr == cr

    first = ledger[0]
    assert [(ln.account_id, ln.debit, ln.credit) for ln in first.lines] == [
        ("1001", Decimal("500.00"), Decimal("0.00")),
        ("1004", Decimal("0.00"), Decimal("500.00")),
    ]
    assert net_effect(ledger) == {"1001": Decimal("700.50"), "1004": Decimal("-700.50")}

    before = net_effect(ledger)
    reversal = await reverse_entry(db, ledger[1], reason="Meter number wrong", actor="manager-1")
    ledger.append(reversal)
    assert ledger[1].status == JournalEntryStatus.REVERSED
    assert net_effect(ledger) == {
        aid: amt - (Decimal("120.50") if aid == "1001" else Decimal("-120.50"))
        for aid, amt in before.items()
    }
    dr, cr = _trial_balance(ledger)
    assert dr == cr

    # Power float statement: credits on 1004 are inflows, debits outflows
    groups = {}
    for row in _gl_rows(ledger, {"1004"}):
        groups.setdefault(row.journal_entry_id, []).append(row)
    derived = [collapse_gl_group(rows, {"1004"}) for rows in groups.values()]
    entries = backfill_balances(merge_entries([], derived), Decimal("2000"))
    summary = summarize(entries)

    assert [e.amount for e in entries][:3] == [
        Decimal("500.00"), Decimal("120.50"), Decimal("80.00"),
    ]
    assert summary.gl_transaction_count == 4
    assert summary.total_debits == Decimal("120.50")
    assert summary.closing_balance == Decimal("2580.00")
    assert summary.closing_balance == summary.opening_balance + summary.net_change
