"""Persistence over gift cards and their append-only ledger.

Mutations run inside ``ledger_unit``: the keyed lock is taken first, the body
reads and writes through the session, and the unit commits on success or
rolls back on any exception. Ledger entries are only ever appended from inside
a unit, together with the balance change they record.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.logging import get_logger
from services.giftcard_service.errors import LockContendedError
from services.giftcard_service.models import (
    AuditAction,
    GiftCard,
    GiftCardAuditLog,
    GiftCardTransaction,
    GiftCardTransactionType,
)
from services.giftcard_service.money import Money
from services.giftcard_service.services.code_generator import normalize_code
from services.giftcard_service.services.locks import get_lock_manager
from sqlalchemy import func, select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# PostgreSQL lock_not_available
_LOCK_NOT_AVAILABLE = "55P03"

# Tie-break for entries written in the same unit (same timestamp)
_ENTRY_ORDER = {
    GiftCardTransactionType.PURCHASE: 0,
    GiftCardTransactionType.AWARD: 1,
    GiftCardTransactionType.ADMIN_EDIT: 2,
    GiftCardTransactionType.REDEEM: 3,
}


def _is_postgres(db: AsyncSession) -> bool:
    return db.get_bind().dialect.name == "postgresql"


def _is_lock_timeout(exc: DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate == _LOCK_NOT_AVAILABLE


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------


@asynccontextmanager
async def ledger_unit(
    db: AsyncSession, key: str, *, advisory: bool = False
) -> AsyncIterator[AsyncSession]:
    """Run the body atomically while holding the exclusive lock for ``key``.

    On PostgreSQL the transaction also bounds row-lock waits with
    ``lock_timeout``; ``advisory=True`` additionally takes a transaction-scoped
    advisory lock on ``key`` for cross-process exclusion of keys that have no
    single row to lock (agent-month issuance).
    """
    manager = get_lock_manager()
    async with manager.hold(key):
        try:
            if _is_postgres(db):
                timeout_ms = int(manager.timeout * 1000)
                await db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
                if advisory:
                    await db.execute(
                        text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                        {"key": key},
                    )
            yield db
            await db.commit()
        except DBAPIError as exc:
            await db.rollback()
            if _is_lock_timeout(exc):
                logger.warning("Database lock timeout for %s", key)
                raise LockContendedError(
                    "Resource is busy, retry the request", lock_key=key
                ) from exc
            raise
        except BaseException:
            await db.rollback()
            raise


# ---------------------------------------------------------------------------
# Card reads
# ---------------------------------------------------------------------------


async def get_card(
    db: AsyncSession, card_id: uuid.UUID, *, for_update: bool = False
) -> Optional[GiftCard]:
    query = select(GiftCard).where(GiftCard.id == card_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_card_by_code(
    db: AsyncSession, code: str, *, for_update: bool = False
) -> Optional[GiftCard]:
    query = select(GiftCard).where(GiftCard.code == normalize_code(code))
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def resolve_card_id(db: AsyncSession, code: str) -> Optional[uuid.UUID]:
    """Look up a card id by code without locking (to derive the lock key)."""
    result = await db.execute(
        select(GiftCard.id).where(GiftCard.code == normalize_code(code))
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


def append_entry(
    db: AsyncSession,
    card: GiftCard,
    *,
    transaction_type: GiftCardTransactionType,
    amount: Money,
    actor_id: str,
    balance_before: Money,
    balance_after: Money,
    description: Optional[str] = None,
    service_type: Optional[str] = None,
    service_reference: Optional[str] = None,
    idempotency_key: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> GiftCardTransaction:
    entry = GiftCardTransaction(
        id=uuid.uuid4(),
        gift_card_id=card.id,
        transaction_type=transaction_type,
        amount_cents=amount.to_minor_units(),
        currency=card.currency,
        balance_before_cents=balance_before.to_minor_units(),
        balance_after_cents=balance_after.to_minor_units(),
        actor_id=actor_id,
        description=description,
        service_type=service_type,
        service_reference=service_reference,
        idempotency_key=idempotency_key,
        entry_metadata=metadata,
        created_at=utc_now(),
    )
    db.add(entry)
    return entry


async def find_entry_by_idempotency_key(
    db: AsyncSession, idempotency_key: str
) -> Optional[GiftCardTransaction]:
    result = await db.execute(
        select(GiftCardTransaction).where(
            GiftCardTransaction.idempotency_key == idempotency_key
        )
    )
    return result.scalar_one_or_none()


def sort_entries(entries: list[GiftCardTransaction]) -> list[GiftCardTransaction]:
    return sorted(
        entries,
        key=lambda e: (ensure_utc(e.created_at), _ENTRY_ORDER[e.transaction_type]),
    )


async def list_entries(
    db: AsyncSession, card_ids: list[uuid.UUID]
) -> list[GiftCardTransaction]:
    """Entries for ``card_ids`` in ledger order."""
    if not card_ids:
        return []
    result = await db.execute(
        select(GiftCardTransaction).where(GiftCardTransaction.gift_card_id.in_(card_ids))
    )
    return sort_entries(list(result.scalars().all()))


async def total_redeemed(db: AsyncSession, card: GiftCard) -> Money:
    """Sum of every ``redeem`` entry on ``card``, independent of its cached balance."""
    result = await db.execute(
        select(func.coalesce(func.sum(GiftCardTransaction.amount_cents), 0)).where(
            GiftCardTransaction.gift_card_id == card.id,
            GiftCardTransaction.transaction_type == GiftCardTransactionType.REDEEM,
        )
    )
    return Money.from_minor_units(int(result.scalar_one()), card.currency)


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


def record_audit(
    db: AsyncSession,
    *,
    action: AuditAction,
    performed_by: str,
    gift_card_id: Optional[uuid.UUID] = None,
    old_value: Optional[dict] = None,
    new_value: Optional[dict] = None,
    reason: Optional[str] = None,
) -> GiftCardAuditLog:
    audit = GiftCardAuditLog(
        gift_card_id=gift_card_id,
        action=action,
        performed_by=performed_by,
        old_value=old_value,
        new_value=new_value,
        reason=reason,
    )
    db.add(audit)
    return audit
