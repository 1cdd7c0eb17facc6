"""Pydantic shapes exchanged between the service modules and the GL core."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from floatledger.config import settings
from floatledger.models.gl import ServiceModule


# ===================================================================
# Per-module transaction attributes (condition context)
# ===================================================================


class _ModuleAttributes(BaseModel):
    """Fields a GL mapping condition may refer to for one service module."""

    model_config = ConfigDict(extra="forbid")

    def condition_context(self) -> dict[str, Any]:
        return self.model_dump(exclude={"service_module"}, exclude_none=True)


class MomoAttributes(_ModuleAttributes):
    service_module: Literal["momo"] = "momo"
    provider: Optional[str] = None
    phone_number: Optional[str] = None
    customer_name: Optional[str] = None


class AgencyBankingAttributes(_ModuleAttributes):
    service_module: Literal["agency-banking"] = "agency-banking"
    partner_bank: Optional[str] = None
    account_number: Optional[str] = None
    customer_name: Optional[str] = None


class EZwichAttributes(_ModuleAttributes):
    service_module: Literal["e-zwich"] = "e-zwich"
    card_number: Optional[str] = None
    settlement_account: Optional[str] = None
    customer_name: Optional[str] = None


class PowerAttributes(_ModuleAttributes):
    service_module: Literal["power"] = "power"
    provider: Optional[str] = None
    meter_number: Optional[str] = None
    customer_name: Optional[str] = None


class JumiaAttributes(_ModuleAttributes):
    service_module: Literal["jumia"] = "jumia"
    tracking_id: Optional[str] = None
    customer_name: Optional[str] = None
    settlement_status: Optional[str] = None


class ExpenseAttributes(_ModuleAttributes):
    service_module: Literal["expenses"] = "expenses"
    expense_head: Optional[str] = None
    payment_source: Optional[str] = None


class CommissionAttributes(_ModuleAttributes):
    service_module: Literal["commissions"] = "commissions"
    source: Optional[str] = None
    source_name: Optional[str] = None
    month: Optional[str] = None
    status: Optional[str] = None


class FloatAttributes(_ModuleAttributes):
    service_module: Literal["float"] = "float"
    account_type: Optional[str] = None
    provider: Optional[str] = None


class CashTillAttributes(_ModuleAttributes):
    service_module: Literal["cash-till"] = "cash-till"
    denomination: Optional[str] = None


class ManualAttributes(_ModuleAttributes):
    service_module: Literal["manual"] = "manual"
    narrative: Optional[str] = None


ModuleAttributes = Annotated[
    Union[
        MomoAttributes,
        AgencyBankingAttributes,
        EZwichAttributes,
        PowerAttributes,
        JumiaAttributes,
        ExpenseAttributes,
        CommissionAttributes,
        FloatAttributes,
        CashTillAttributes,
        ManualAttributes,
    ],
    Field(discriminator="service_module"),
]

ATTRIBUTE_SCHEMAS: dict[ServiceModule, type[_ModuleAttributes]] = {
    ServiceModule.MOMO: MomoAttributes,
    ServiceModule.AGENCY_BANKING: AgencyBankingAttributes,
    ServiceModule.E_ZWICH: EZwichAttributes,
    ServiceModule.POWER: PowerAttributes,
    ServiceModule.JUMIA: JumiaAttributes,
    ServiceModule.EXPENSES: ExpenseAttributes,
    ServiceModule.COMMISSIONS: CommissionAttributes,
    ServiceModule.FLOAT: FloatAttributes,
    ServiceModule.CASH_TILL: CashTillAttributes,
    ServiceModule.MANUAL: ManualAttributes,
}

# Transaction-level fields every module exposes to mapping conditions
COMMON_CONDITION_FIELDS = frozenset({"amount", "fee", "reference", "branch_id"})


def condition_fields(module: ServiceModule) -> frozenset[str]:
    """All field names a mapping condition for *module* may reference."""
    schema = ATTRIBUTE_SCHEMAS[module]
    own = {name for name in schema.model_fields if name != "service_module"}
    return COMMON_CONDITION_FIELDS | own


# ===================================================================
# Posting input
# ===================================================================


class TransactionData(BaseModel):
    """A business transaction handed to the GL core by a service module."""

    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    date: date
    source: ServiceModule
    branch_id: Optional[str] = None
    user_id: Optional[str] = None
    reference: Optional[str] = None
    fee: Decimal = Field(default=Decimal("0"), ge=0)
    attributes: Optional[ModuleAttributes] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _attributes_match_source(self) -> "TransactionData":
        if self.attributes is not None and self.attributes.service_module != self.source.value:
            raise ValueError(
                f"attributes are for '{self.attributes.service_module}' "
                f"but transaction source is '{self.source.value}'"
            )
        return self

    @property
    def display_reference(self) -> str:
        return self.reference or self.id

    def condition_context(self) -> dict[str, Any]:
        """Values mapping conditions are evaluated against."""
        ctx: dict[str, Any] = {"amount": self.amount, "fee": self.fee}
        if self.reference is not None:
            ctx["reference"] = self.reference
        if self.branch_id is not None:
            ctx["branch_id"] = self.branch_id
        if self.attributes is not None:
            ctx.update(self.attributes.condition_context())
        return ctx


class PostingLeg(BaseModel):
    """One debit or credit leg supplied to the custom entry generator."""

    account_id: str = Field(min_length=1)
    debit: Decimal = Field(default=Decimal("0"), ge=0)
    credit: Decimal = Field(default=Decimal("0"), ge=0)
    description: Optional[str] = None

    @model_validator(mode="after")
    def _debit_xor_credit(self) -> "PostingLeg":
        if self.debit > 0 and self.credit > 0:
            raise ValueError("a leg is either a debit or a credit, not both")
        return self

    @property
    def amount(self) -> Decimal:
        return self.debit + self.credit


class MappingConditionIn(BaseModel):
    field: str = Field(min_length=1)
    operator: str
    value: Union[str, int, float, bool, Decimal]


# ===================================================================
# Statement shapes
# ===================================================================


class AuthContext(BaseModel):
    """Caller identity used only for the statement branch-scope check."""

    user_id: Optional[str] = None
    role: str
    branch_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role.strip().lower() == settings.admin_role.lower()


class StatementFilters(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    branch_id: Optional[str] = None
    include_gl: bool = True

    @model_validator(mode="after")
    def _ordered_range(self) -> "StatementFilters":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class StatementEntry(BaseModel):
    """A native float transaction or a GL-derived movement, in one shape."""

    id: str
    transaction_date: datetime
    transaction_type: str
    amount: Decimal
    balance_before: Decimal = Decimal("0")
    balance_after: Decimal = Decimal("0")
    description: str = ""
    reference: str = ""
    processed_by: str = ""
    source_module: str
    source_transaction_id: Optional[str] = None
    branch_id: Optional[str] = None
    fee: Decimal = Decimal("0")


class StatementPeriod(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class StatementSummary(BaseModel):
    opening_balance: Decimal = Decimal("0")
    closing_balance: Decimal = Decimal("0")
    total_credits: Decimal = Decimal("0")
    total_debits: Decimal = Decimal("0")
    net_change: Decimal = Decimal("0")
    transaction_count: int = 0
    gl_transaction_count: int = 0
    native_transaction_count: int = 0
    period: StatementPeriod = Field(default_factory=StatementPeriod)


class FloatAccountResponse(BaseModel):
    id: str
    branch_id: str
    account_type: str
    provider: Optional[str] = None
    account_number: Optional[str] = None
    current_balance: Decimal
    min_threshold: Decimal
    max_threshold: Decimal
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class FloatStatement(BaseModel):
    entries: list[StatementEntry]
    summary: StatementSummary
    account: FloatAccountResponse
