"""Float account ↔ GL account associations.

The statement reconciler asks which GL accounts mirror a float account.
Direct rows (``float_account_id`` set) win.  Without any, the branch-level
rows keyed by ``{account_type}_float`` are used, e.g. ``agency_banking_float``
for an ``agency-banking`` float.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from floatledger.models.float_account import FloatAccount
from floatledger.models.gl import FloatGLMapping, FloatMappingType
from floatledger.services.gl.coa_service import ensure_accounts_exist, get_float_account

logger = logging.getLogger(__name__)


@dataclass
class FloatGLAccounts:
    """GL accounts resolved for one float account."""

    account_ids: list[str] = field(default_factory=list)
    main_account_ids: set[str] = field(default_factory=set)
    source: str | None = None  # "direct", "branch" or None

    @property
    def is_mapped(self) -> bool:
        return bool(self.account_ids)


def float_transaction_type(account_type: str) -> str:
    return f"{account_type.replace('-', '_')}_float"


def _collect(rows: list[FloatGLMapping], source: str) -> FloatGLAccounts:
    resolved = FloatGLAccounts(source=source)
    for row in rows:
        if row.gl_account_id not in resolved.account_ids:
            resolved.account_ids.append(row.gl_account_id)
        if row.mapping_type == FloatMappingType.MAIN_ACCOUNT:
            resolved.main_account_ids.add(row.gl_account_id)
    return resolved


async def resolve_float_gl_accounts(
    db: AsyncSession, float_account: FloatAccount
) -> FloatGLAccounts:
    """Direct mappings, else branch fallback, else an empty result."""
    result = await db.execute(
        select(FloatGLMapping)
        .where(
            FloatGLMapping.float_account_id == float_account.id,
            FloatGLMapping.is_active == True,  # noqa: E712
        )
        .order_by(FloatGLMapping.created_at)
    )
    direct = list(result.scalars().all())
    if direct:
        return _collect(direct, "direct")

    tx_type = float_transaction_type(float_account.account_type)
    result = await db.execute(
        select(FloatGLMapping)
        .where(
            FloatGLMapping.float_account_id.is_(None),
            FloatGLMapping.transaction_type == tx_type,
            FloatGLMapping.branch_id == float_account.branch_id,
            FloatGLMapping.is_active == True,  # noqa: E712
        )
        .order_by(FloatGLMapping.created_at)
    )
    fallback = list(result.scalars().all())
    if fallback:
        return _collect(fallback, "branch")

    logger.info(
        "No GL mapping for float account %s (%s); statement will be native only",
        float_account.id, tx_type,
    )
    return FloatGLAccounts()


async def create_or_update_float_mapping(
    db: AsyncSession,
    float_account_id: str,
    gl_account_id: str,
    mapping_type: FloatMappingType = FloatMappingType.MAIN_ACCOUNT,
) -> FloatGLMapping:
    """Point a float account's mapping of *mapping_type* at *gl_account_id*."""
    float_account = await get_float_account(db, float_account_id)
    await ensure_accounts_exist(db, [gl_account_id])

    result = await db.execute(
        select(FloatGLMapping).where(
            FloatGLMapping.float_account_id == float_account_id,
            FloatGLMapping.mapping_type == mapping_type,
        )
    )
    mapping = result.scalars().first()
    if mapping is None:
        mapping = FloatGLMapping(
            float_account_id=float_account_id,
            gl_account_id=gl_account_id,
            mapping_type=mapping_type,
            transaction_type=float_transaction_type(float_account.account_type),
            branch_id=float_account.branch_id,
            is_active=True,
        )
        db.add(mapping)
        action = "Created"
    else:
        mapping.gl_account_id = gl_account_id
        mapping.is_active = True
        action = "Updated"

    await db.flush()
    logger.info(
        "%s float GL mapping %s: float %s → GL %s (%s)",
        action, mapping.id, float_account_id, gl_account_id, mapping_type.value,
    )
    return mapping


async def remove_float_mapping(
    db: AsyncSession,
    float_account_id: str,
    mapping_type: FloatMappingType | None = None,
) -> int:
    """Deactivate a float account's mappings.  Returns how many were active."""
    q = select(FloatGLMapping).where(
        FloatGLMapping.float_account_id == float_account_id,
        FloatGLMapping.is_active == True,  # noqa: E712
    )
    if mapping_type is not None:
        q = q.where(FloatGLMapping.mapping_type == mapping_type)
    result = await db.execute(q)
    rows = list(result.scalars().all())
    for row in rows:
        row.is_active = False
    await db.flush()
    logger.info("Deactivated %d float GL mapping(s) for %s", len(rows), float_account_id)
    return len(rows)
