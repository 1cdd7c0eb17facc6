"""GL Mapping Engine.

Resolves a business transaction ``(service module, transaction type,
attributes)`` to the single GL mapping that names its debit and credit
accounts.

Mappings live in an injected ``MappingRepository`` rather than a module-level
table, so they can be versioned in the database and swapped for an in-memory
set in tests.  Several mappings may share a module/type pair; conditional
ones carry ``[{"field", "operator", "value"}, ...]`` and are checked against
the transaction's typed attributes.

Selection order (must not change, it decides where money is booked):

1. no candidates → ``None``
2. no context, or no candidate has conditions → first candidate
3. first conditioned candidate whose conditions **all** pass
4. otherwise the first unconditioned candidate
5. otherwise ``None``
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from floatledger.models.gl import ConditionOperator, GLMapping, ServiceModule
from floatledger.schemas import MappingConditionIn, condition_fields
from floatledger.services.gl.coa_service import ensure_accounts_exist
from floatledger.services.gl.errors import ValidationError

logger = logging.getLogger(__name__)


def _module_value(module: ServiceModule | str) -> str:
    return module.value if isinstance(module, ServiceModule) else str(module)


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

class MappingRepository(Protocol):
    async def candidates(
        self, module: ServiceModule | str, transaction_type: str
    ) -> list[GLMapping]:
        """Active mappings for the pair, in resolution order."""
        ...


class SQLMappingRepository:
    """Mappings stored in the ``gl_mappings`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def candidates(
        self, module: ServiceModule | str, transaction_type: str
    ) -> list[GLMapping]:
        result = await self.db.execute(
            select(GLMapping)
            .where(
                GLMapping.service_module == _module_value(module),
                GLMapping.transaction_type == transaction_type,
                GLMapping.is_active == True,  # noqa: E712
            )
            .order_by(GLMapping.position, GLMapping.created_at, GLMapping.id)
        )
        return list(result.scalars().all())


class InMemoryMappingRepository:
    """Mappings held in a list; list order is resolution order."""

    def __init__(self, mappings: Iterable[GLMapping] = ()):
        self._mappings = list(mappings)

    def add(self, mapping: GLMapping) -> None:
        self._mappings.append(mapping)

    async def candidates(
        self, module: ServiceModule | str, transaction_type: str
    ) -> list[GLMapping]:
        module_value = _module_value(module)
        return [
            m for m in self._mappings
            if m.is_active
            and m.service_module == module_value
            and m.transaction_type == transaction_type
        ]


# ---------------------------------------------------------------------------
# Condition evaluation
# ---------------------------------------------------------------------------

def _as_number(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None
    return None


def _evaluate_condition(condition: Mapping[str, Any], context: Mapping[str, Any]) -> bool:
    """Check one ``{"field", "operator", "value"}`` condition.

    A missing or ``None`` field fails.  Numbers compare by value regardless of
    int/float/Decimal; everything else compares strictly.
    """
    field = condition.get("field")
    operator = condition.get("operator")
    expected = condition.get("value")

    actual = context.get(field) if field is not None else None
    if actual is None:
        return False

    actual_num, expected_num = _as_number(actual), _as_number(expected)
    both_numeric = actual_num is not None and expected_num is not None

    if operator == ConditionOperator.EQUALS.value:
        return actual_num == expected_num if both_numeric else actual == expected
    if operator == ConditionOperator.NOT_EQUALS.value:
        return actual_num != expected_num if both_numeric else actual != expected
    if operator in (ConditionOperator.GREATER_THAN.value, ConditionOperator.LESS_THAN.value):
        if both_numeric:
            left, right = actual_num, expected_num
        elif isinstance(actual, str) and isinstance(expected, str):
            left, right = actual, expected
        else:
            return False
        if operator == ConditionOperator.GREATER_THAN.value:
            return left > right
        return left < right
    if operator == ConditionOperator.CONTAINS.value:
        return str(expected) in str(actual)
    if operator == ConditionOperator.STARTS_WITH.value:
        return str(actual).startswith(str(expected))
    if operator == ConditionOperator.ENDS_WITH.value:
        return str(actual).endswith(str(expected))
    return False


def _conditions_match(conditions: list[Mapping[str, Any]], context: Mapping[str, Any]) -> bool:
    return all(_evaluate_condition(c, context) for c in conditions)


def _condition_context(attributes: Any) -> dict[str, Any]:
    if attributes is None:
        return {}
    if hasattr(attributes, "condition_context"):
        return attributes.condition_context()
    return dict(attributes)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def select_mapping(
    candidates: list[GLMapping], context: Mapping[str, Any] | None
) -> GLMapping | None:
    """Apply the ordered-fallback policy to already-filtered candidates."""
    if not candidates:
        return None

    if not any(m.has_conditions for m in candidates):
        return candidates[0]

    # A missing context fails every condition
    context = context or {}
    for mapping in candidates:
        if mapping.has_conditions and _conditions_match(mapping.conditions, context):
            return mapping

    for mapping in candidates:
        if not mapping.has_conditions:
            return mapping

    logger.warning(
        "No condition matched and no default mapping for %s/%s",
        candidates[0].service_module, candidates[0].transaction_type,
    )
    return None


async def resolve_mapping(
    repo: MappingRepository,
    module: ServiceModule | str,
    transaction_type: str,
    attributes: Any = None,
) -> GLMapping | None:
    """Find the mapping for a transaction; ``None`` means not found.

    *attributes* is a typed attribute model, a ``TransactionData`` or a plain
    mapping of condition values.
    """
    candidates = await repo.candidates(module, transaction_type)
    mapping = select_mapping(candidates, _condition_context(attributes))
    if mapping is None:
        logger.info(
            "No GL mapping for module=%s type=%s", _module_value(module), transaction_type
        )
    return mapping


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

def validate_conditions(
    module: ServiceModule | str,
    conditions: Iterable[MappingConditionIn | Mapping[str, Any]] | None,
) -> list[dict[str, Any]] | None:
    """Normalise conditions and reject fields the module does not expose."""
    if not conditions:
        return None

    try:
        service_module = ServiceModule(_module_value(module))
    except ValueError as exc:
        raise ValidationError(f"Unknown service module '{module}'") from exc

    allowed = condition_fields(service_module)
    operators = {op.value for op in ConditionOperator}

    normalised = []
    for raw in conditions:
        cond = raw if isinstance(raw, MappingConditionIn) else MappingConditionIn(**raw)
        if cond.operator not in operators:
            raise ValidationError(f"Unsupported condition operator '{cond.operator}'")
        if cond.field not in allowed:
            raise ValidationError(
                f"Field '{cond.field}' is not an attribute of {service_module.value} transactions"
            )
        value = cond.value
        if isinstance(value, Decimal):
            value = str(value)
        normalised.append({"field": cond.field, "operator": cond.operator, "value": value})
    return normalised


async def create_mapping(
    db: AsyncSession,
    *,
    service_module: ServiceModule | str,
    transaction_type: str,
    debit_account_id: str,
    credit_account_id: str,
    description: str,
    conditions: Iterable[MappingConditionIn | Mapping[str, Any]] | None = None,
    position: int = 0,
) -> GLMapping:
    """Persist a new mapping after validating its accounts and conditions."""
    if debit_account_id == credit_account_id:
        raise ValidationError("Debit and credit accounts must differ")

    normalised = validate_conditions(service_module, conditions)
    await ensure_accounts_exist(db, [debit_account_id, credit_account_id])

    mapping = GLMapping(
        service_module=_module_value(service_module),
        transaction_type=transaction_type,
        debit_account_id=debit_account_id,
        credit_account_id=credit_account_id,
        description=description,
        conditions=normalised,
        position=position,
        is_active=True,
    )
    db.add(mapping)
    await db.flush()
    logger.info(
        "Created GL mapping %s for %s/%s",
        mapping.id, mapping.service_module, transaction_type,
    )
    return mapping


async def list_mappings(
    db: AsyncSession,
    service_module: ServiceModule | str | None = None,
) -> list[GLMapping]:
    q = select(GLMapping)
    if service_module:
        q = q.where(GLMapping.service_module == _module_value(service_module))
    q = q.order_by(
        GLMapping.service_module, GLMapping.transaction_type, GLMapping.position
    )
    result = await db.execute(q)
    return list(result.scalars().all())
