"""Admin gift card management endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from libs.auth.dependencies import require_admin_agent
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.giftcard_service.models import GiftCardStatus, IssuerType
from services.giftcard_service.money import Money
from services.giftcard_service.schemas import (
    AdminCreateGiftCardRequest,
    AdminGiftCardResponse,
    AgentCardsResponse,
    AgentStatsListResponse,
    AgentStatsResponse,
    EditGiftCardRequest,
    MonthlyLimitResponse,
    MonthlyLimitSettingResponse,
    MonthlySummaryListResponse,
    MonthlySummaryResponse,
    ReconciliationResponse,
    SetMonthlyLimitRequest,
    SuspendGiftCardRequest,
    UnsuspendGiftCardRequest,
    UpdateNotesRequest,
)
from services.giftcard_service.services import lifecycle, notifications, reporting
from services.giftcard_service.services.monthly_limit import (
    check_monthly_limit,
    set_agent_monthly_limit,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/admin/gift-cards", tags=["admin-gift-cards"])


@router.post(
    "/create", response_model=AdminGiftCardResponse, status_code=status.HTTP_201_CREATED
)
async def admin_create_gift_card(
    body: AdminCreateGiftCardRequest,
    background_tasks: BackgroundTasks,
    admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a card without payment. Not subject to monthly limits."""
    card = await lifecycle.issue_gift_card(
        db,
        face_amount=Money(body.amount, body.currency),
        issuer_id=admin.user_id,
        issuer_type=IssuerType.ADMIN_AGENT,
        expiry_days=body.expiry_days,
        message=body.message,
        recipient_id=body.recipient_id,
        recipient_type=body.recipient_type,
        recipient_email=body.recipient_email,
    )
    logger.info("Admin %s created gift card %s", admin.user_id, card.code)
    notifications.notify_gift_card_issued(background_tasks, card, None)
    return AdminGiftCardResponse.from_card(card)


@router.post("/suspend/{card_id}", response_model=AdminGiftCardResponse)
async def admin_suspend_gift_card(
    card_id: uuid.UUID,
    body: SuspendGiftCardRequest,
    admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    card = await lifecycle.suspend_gift_card(
        db, card_id=card_id, performed_by=admin.user_id, reason=body.reason
    )
    return AdminGiftCardResponse.from_card(card)


@router.post("/unsuspend/{card_id}", response_model=AdminGiftCardResponse)
async def admin_unsuspend_gift_card(
    card_id: uuid.UUID,
    body: Optional[UnsuspendGiftCardRequest] = None,
    admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    card = await lifecycle.unsuspend_gift_card(
        db,
        card_id=card_id,
        performed_by=admin.user_id,
        reason=body.reason if body else None,
    )
    return AdminGiftCardResponse.from_card(card)


@router.delete("/{card_id}", response_model=AdminGiftCardResponse)
async def admin_cancel_gift_card(
    card_id: uuid.UUID,
    reason: Optional[str] = Query(None),
    admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel a card. The record and its ledger are kept."""
    card = await lifecycle.cancel_gift_card(
        db, card_id=card_id, performed_by=admin.user_id, reason=reason
    )
    return AdminGiftCardResponse.from_card(card)


@router.put("/{card_id}/notes", response_model=AdminGiftCardResponse)
async def admin_update_notes(
    card_id: uuid.UUID,
    body: UpdateNotesRequest,
    admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    card = await lifecycle.update_admin_notes(
        db, card_id=card_id, notes=body.notes, performed_by=admin.user_id
    )
    return AdminGiftCardResponse.from_card(card)


@router.put("/{card_id}/edit", response_model=AdminGiftCardResponse)
async def admin_edit_gift_card(
    card_id: uuid.UUID,
    body: EditGiftCardRequest,
    background_tasks: BackgroundTasks,
    admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    """Edit amount, recipient or message. Spent value is preserved.

    An explicit ``recipient_id`` of null or "" unassigns the recipient.
    """
    unassign = "recipient_id" in body.model_fields_set and not body.recipient_id
    card = await lifecycle.edit_gift_card_allocation(
        db,
        card_id=card_id,
        performed_by=admin.user_id,
        new_face_amount=body.amount,
        new_recipient_id=body.recipient_id,
        new_recipient_type=body.recipient_type,
        new_recipient_email=body.recipient_email,
        new_message=body.message,
        unassign_recipient=unassign,
        reason=body.reason,
    )
    if body.recipient_id:
        notifications.notify_gift_card_awarded(background_tasks, card)
    return AdminGiftCardResponse.from_card(card)


@router.get("/search", response_model=list[AdminGiftCardResponse])
async def admin_search_gift_cards(
    query: Optional[str] = Query(None),
    status_filter: Optional[GiftCardStatus] = Query(None, alias="status"),
    agent_id: Optional[str] = Query(None, alias="agentId"),
    _admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    cards = await reporting.search_gift_cards(
        db, query=query, status=status_filter, agent_id=agent_id
    )
    return [AdminGiftCardResponse.from_card(card) for card in cards]


@router.get("/stats-by-agent", response_model=AgentStatsListResponse)
async def admin_stats_by_agent(
    _admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    stats = await reporting.get_agent_stats(db)
    return AgentStatsListResponse(
        agents=[AgentStatsResponse.from_stats(s) for s in stats],
        total_agents=len({s.agent_id for s in stats}),
        total_cards=sum(s.total_cards for s in stats),
    )


@router.get("/monthly-summary", response_model=MonthlySummaryListResponse)
async def admin_monthly_summary(
    _admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    """Booking-agent issuance per calendar month for the last 12 months."""
    summaries = await reporting.get_monthly_summary(db)
    return MonthlySummaryListResponse(
        monthly_summary=[MonthlySummaryResponse.from_summary(s) for s in summaries]
    )


@router.get("/by-agent/{agent_id}", response_model=AgentCardsResponse)
async def admin_cards_by_agent(
    agent_id: str,
    currency: str = Query("USD"),
    _admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    ledger = await reporting.get_agent_ledger(db, agent_id)
    limit = await check_monthly_limit(
        db, agent_id=agent_id, proposed_amount=Money.zero(currency)
    )
    monthly = await reporting.get_monthly_summary(db, agent_id=agent_id)
    return AgentCardsResponse(
        agent_id=agent_id,
        gift_cards=[AdminGiftCardResponse.from_card(h.card) for h in ledger.cards],
        monthly_limit=MonthlyLimitResponse.from_status(limit),
        monthly_stats=[MonthlySummaryResponse.from_summary(m) for m in monthly],
    )


@router.put("/limits/{agent_id}", response_model=MonthlyLimitSettingResponse)
async def admin_set_monthly_limit(
    agent_id: str,
    body: SetMonthlyLimitRequest,
    admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    """Set an agent's monthly cap. 0 removes the cap."""
    row = await set_agent_monthly_limit(
        db,
        agent_id=agent_id,
        monthly_limit=Money(body.monthly_limit, body.currency),
        performed_by=admin.user_id,
        reason=body.reason,
    )
    limit = Money.from_minor_units(row.monthly_limit_cents, row.currency)
    return MonthlyLimitSettingResponse(
        agent_id=row.agent_id,
        monthly_limit=limit.quantized(),
        currency=row.currency,
        is_unlimited=limit.is_zero,
    )


@router.get("/{card_id}/reconcile", response_model=ReconciliationResponse)
async def admin_reconcile_gift_card(
    card_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin_agent),
    db: AsyncSession = Depends(get_async_db),
):
    report = await reporting.reconcile_gift_card(db, card_id)
    if not report.balanced:
        logger.warning("Gift card %s failed reconciliation: %s", report.code, report.issues)
    return ReconciliationResponse.from_report(report)
