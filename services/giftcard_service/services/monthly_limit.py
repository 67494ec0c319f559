"""Monthly promotional-issuance limits for booking agents.

An agent's monthly issuance is the face value of the cards they issued in the
current calendar month (``GIFT_CARD_LIMIT_TIMEZONE``), ignoring cancelled and
suspended cards. Admin agents, and agents whose limit row is 0, are unlimited.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import calendar_month_bounds, utc_now
from libs.common.logging import get_logger
from services.giftcard_service.errors import GiftCardValidationError
from services.giftcard_service.models import (
    AuditAction,
    GiftCard,
    GiftCardIssuanceLimit,
    GiftCardStatus,
)
from services.giftcard_service.money import Money
from services.giftcard_service.services import ledger_store
from services.giftcard_service.services.locks import issuance_lock_key
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

EXCLUDED_FROM_LIMIT = (GiftCardStatus.CANCELLED, GiftCardStatus.SUSPENDED)


@dataclass
class MonthlyLimitStatus:
    agent_id: str
    within_limit: bool
    current_month_total: Money
    limit_amount: Optional[Money]
    remaining_amount: Optional[Money]
    is_admin_agent: bool

    @property
    def percent_used(self) -> Optional[Decimal]:
        if self.limit_amount is None or self.limit_amount.is_zero:
            return None
        pct = self.current_month_total.amount * 100 / self.limit_amount.amount
        return pct.quantize(Decimal("0.01"))


async def get_agent_limit_row(
    db: AsyncSession, agent_id: str, currency: str
) -> Optional[GiftCardIssuanceLimit]:
    result = await db.execute(
        select(GiftCardIssuanceLimit).where(
            GiftCardIssuanceLimit.agent_id == agent_id,
            GiftCardIssuanceLimit.currency == currency,
        )
    )
    return result.scalar_one_or_none()


async def current_month_total(
    db: AsyncSession,
    agent_id: str,
    *,
    currency: str,
    now: Optional[datetime] = None,
) -> Money:
    settings = get_settings()
    start, end = calendar_month_bounds(now or utc_now(), settings.GIFT_CARD_LIMIT_TIMEZONE)
    result = await db.execute(
        select(func.coalesce(func.sum(GiftCard.face_amount_cents), 0)).where(
            GiftCard.issuer_id == agent_id,
            GiftCard.currency == currency,
            GiftCard.issued_at >= start,
            GiftCard.issued_at < end,
            GiftCard.status.not_in(EXCLUDED_FROM_LIMIT),
        )
    )
    return Money.from_minor_units(int(result.scalar_one()), currency)


async def check_monthly_limit(
    db: AsyncSession,
    *,
    agent_id: str,
    proposed_amount: Money,
    is_admin_agent: bool = False,
    now: Optional[datetime] = None,
) -> MonthlyLimitStatus:
    """Evaluate whether issuing ``proposed_amount`` keeps the agent within the cap.

    Read-only. Issuance re-runs this inside its unit of work while holding the
    agent-month lock, so the answer there cannot go stale before the insert.
    """
    if proposed_amount.amount < 0:
        raise GiftCardValidationError(
            "Proposed amount cannot be negative", proposed_amount=str(proposed_amount.quantized())
        )

    currency = proposed_amount.currency
    total = await current_month_total(db, agent_id, currency=currency, now=now)

    limit_row = await get_agent_limit_row(db, agent_id, currency)
    if limit_row is not None:
        limit_cents = limit_row.monthly_limit_cents
    else:
        limit_cents = Money(get_settings().GIFT_CARD_MONTHLY_LIMIT, currency).to_minor_units()

    if is_admin_agent or limit_cents == 0:
        return MonthlyLimitStatus(
            agent_id=agent_id,
            within_limit=True,
            current_month_total=total,
            limit_amount=None,
            remaining_amount=None,
            is_admin_agent=is_admin_agent,
        )

    limit = Money.from_minor_units(limit_cents, currency)
    return MonthlyLimitStatus(
        agent_id=agent_id,
        within_limit=(total + proposed_amount) <= limit,
        current_month_total=total,
        limit_amount=limit,
        remaining_amount=(limit - total).floor_zero(),
        is_admin_agent=False,
    )


async def set_agent_monthly_limit(
    db: AsyncSession,
    *,
    agent_id: str,
    monthly_limit: Money,
    performed_by: str,
    reason: Optional[str] = None,
) -> GiftCardIssuanceLimit:
    """Create or update an agent's monthly cap in ``monthly_limit.currency``.

    0 makes the agent unlimited in that currency; other currencies keep their
    own row or the default cap.
    """
    if monthly_limit.amount < 0:
        raise GiftCardValidationError(
            "Monthly limit cannot be negative", monthly_limit=str(monthly_limit.quantized())
        )

    async with ledger_store.ledger_unit(
        db, issuance_lock_key(agent_id, utc_now()), advisory=True
    ):
        row = await get_agent_limit_row(db, agent_id, monthly_limit.currency)
        old_value = None
        if row is None:
            row = GiftCardIssuanceLimit(
                agent_id=agent_id,
                monthly_limit_cents=monthly_limit.to_minor_units(),
                currency=monthly_limit.currency,
                updated_by=performed_by,
            )
            db.add(row)
        else:
            old_value = {
                "monthly_limit": str(Money.from_minor_units(row.monthly_limit_cents, row.currency).quantized()),
                "currency": row.currency,
            }
            row.monthly_limit_cents = monthly_limit.to_minor_units()
            row.updated_by = performed_by
            row.updated_at = utc_now()

        ledger_store.record_audit(
            db,
            action=AuditAction.SET_MONTHLY_LIMIT,
            performed_by=performed_by,
            old_value=old_value,
            new_value={
                "agent_id": agent_id,
                "monthly_limit": str(monthly_limit.quantized()),
                "currency": monthly_limit.currency,
            },
            reason=reason,
        )

    logger.info(
        "Monthly limit for agent %s set to %s by %s",
        agent_id,
        monthly_limit,
        performed_by,
    )
    return row
