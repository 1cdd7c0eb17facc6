"""SQLAlchemy models for the floatledger GL engine."""

from floatledger.models.gl import (
    GLAccount,
    GLAccountType,
    GLMapping,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    FloatGLMapping,
    FloatMappingType,
    ConditionOperator,
    ServiceModule,
)
from floatledger.models.float_account import FloatAccount, FloatTransaction
from floatledger.models.reconciliation_issue import ReconciliationIssue, IssueSeverity

__all__ = [
    "GLAccount",
    "GLAccountType",
    "GLMapping",
    "JournalEntry",
    "JournalEntryLine",
    "JournalEntryStatus",
    "FloatGLMapping",
    "FloatMappingType",
    "ConditionOperator",
    "ServiceModule",
    "FloatAccount",
    "FloatTransaction",
    "ReconciliationIssue",
    "IssueSeverity",
]
