"""Aggregate totals for a float statement."""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from floatledger.config import settings
from floatledger.schemas import StatementEntry, StatementPeriod, StatementSummary


def summarize(
    entries: Sequence[StatementEntry],
    start_date: date | None = None,
    end_date: date | None = None,
) -> StatementSummary:
    """Totals over back-filled statement entries.

    Opening and closing balances are read from the first and last entry, so
    ``closing_balance == opening_balance + net_change`` whenever the entries
    are continuous.
    """
    period = StatementPeriod(start_date=start_date, end_date=end_date)
    if not entries:
        return StatementSummary(period=period)

    total_credits = sum((e.amount for e in entries if e.amount > 0), Decimal("0"))
    total_debits = sum((-e.amount for e in entries if e.amount < 0), Decimal("0"))
    gl_count = sum(1 for e in entries if e.source_module != settings.native_source_label)

    return StatementSummary(
        opening_balance=entries[0].balance_before,
        closing_balance=entries[-1].balance_after,
        total_credits=total_credits,
        total_debits=total_debits,
        net_change=total_credits - total_debits,
        transaction_count=len(entries),
        gl_transaction_count=gl_count,
        native_transaction_count=len(entries) - gl_count,
        period=period,
    )
