"""Member-facing gift card endpoints (purchasers, agents and recipients)."""

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, status
from libs.auth.dependencies import get_current_user, require_booking_agent
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.giftcard_service.models import IssuerType
from services.giftcard_service.money import Money
from services.giftcard_service.schemas import (
    ActivityItemResponse,
    ActivityResponse,
    AwardGiftCardRequest,
    BalanceResponse,
    CardHistoryResponse,
    CurrencyBalanceResponse,
    GiftCardResponse,
    HistoryResponse,
    HistorySummaryResponse,
    LedgerResponse,
    LedgerSummaryResponse,
    MonthlyLimitResponse,
    MyGiftCardsResponse,
    PurchaseGiftCardRequest,
    RedeemGiftCardRequest,
    RedemptionResponse,
    TransactionListResponse,
    TransactionResponse,
)
from services.giftcard_service.services import lifecycle, notifications, reporting
from services.giftcard_service.services.monthly_limit import check_monthly_limit
from services.giftcard_service.services.redemption import redeem_gift_card
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/gift-cards", tags=["gift-cards"])


def _issuer_type(user: AuthUser) -> IssuerType:
    if user.user_type == "admin_agent":
        return IssuerType.ADMIN_AGENT
    return IssuerType.BOOKING_AGENT


@router.post(
    "/purchase", response_model=GiftCardResponse, status_code=status.HTTP_201_CREATED
)
async def purchase_gift_card(
    body: PurchaseGiftCardRequest,
    background_tasks: BackgroundTasks,
    current_user: AuthUser = Depends(require_booking_agent),
    db: AsyncSession = Depends(get_async_db),
):
    """Issue a card paid for through a payment provider."""
    face_amount = Money(body.amount, body.currency)
    payment = lifecycle.PaymentConfirmation(
        amount=Money(body.paid_amount or body.amount, body.currency),
        reference=body.payment_reference,
        method=body.payment_method,
    )
    card = await lifecycle.issue_gift_card(
        db,
        face_amount=face_amount,
        issuer_id=current_user.user_id,
        issuer_type=_issuer_type(current_user),
        expiry_days=body.expiry_days,
        message=body.message,
        recipient_id=body.recipient_id,
        recipient_type=body.recipient_type,
        recipient_email=body.recipient_email,
        payment=payment,
        is_admin_agent=current_user.is_admin_agent,
    )
    notifications.notify_gift_card_issued(background_tasks, card, current_user.email)
    return GiftCardResponse.from_card(card)


@router.post("/award", response_model=GiftCardResponse)
async def award_gift_card(
    body: AwardGiftCardRequest,
    background_tasks: BackgroundTasks,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Assign one of the caller's unawarded cards to a recipient."""
    card = await lifecycle.award_gift_card(
        db,
        card_id=body.gift_card_id,
        recipient_id=body.recipient_id,
        recipient_type=body.recipient_type,
        recipient_email=body.recipient_email,
        awarded_by=current_user.user_id,
        is_operator=current_user.is_operator,
    )
    notifications.notify_gift_card_awarded(background_tasks, card)
    return GiftCardResponse.from_card(card)


@router.post("/redeem", response_model=RedemptionResponse)
async def redeem(
    body: RedeemGiftCardRequest,
    background_tasks: BackgroundTasks,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    result = await redeem_gift_card(
        db,
        code=body.code,
        amount=Money(body.amount, body.currency),
        actor_id=current_user.user_id,
        service_type=body.service_type,
        service_reference=body.service_reference,
        description=body.description,
    )
    notifications.notify_gift_card_redeemed(background_tasks, result, current_user.email)
    return RedemptionResponse.from_result(result)


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    balances = await reporting.get_gift_card_balance(db, current_user.user_id)
    return BalanceResponse(
        user_id=current_user.user_id,
        balances=[
            CurrencyBalanceResponse(
                currency=b.currency, balance=b.balance.quantized(), card_count=b.card_count
            )
            for b in balances
        ],
    )


@router.get("/my-cards", response_model=MyGiftCardsResponse)
async def list_my_cards(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    purchased, received = await reporting.list_user_gift_cards(db, current_user.user_id)
    return MyGiftCardsResponse(
        purchased=[GiftCardResponse.from_card(c) for c in purchased],
        received=[GiftCardResponse.from_card(c) for c in received],
    )


@router.get("/details/{code}", response_model=GiftCardResponse)
async def get_details(
    code: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    card = await reporting.get_gift_card_details(
        db, code, current_user.user_id, is_operator=current_user.is_operator
    )
    return GiftCardResponse.from_card(card)


@router.get("/transactions/{card_id}", response_model=TransactionListResponse)
async def list_transactions(
    card_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    entries = await reporting.list_gift_card_transactions(
        db, card_id, current_user.user_id, is_operator=current_user.is_operator
    )
    return TransactionListResponse(
        transactions=[TransactionResponse.from_entry(e) for e in entries],
        total=len(entries),
    )


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    currency: Optional[str] = None,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    history = await reporting.get_gift_card_history(
        db, current_user.user_id, currency=currency
    )
    summary = history.summary
    return HistoryResponse(
        history=[CardHistoryResponse.from_history(h) for h in history.cards],
        summary=HistorySummaryResponse(
            currency=summary.currency,
            total_purchased=summary.total_purchased,
            total_received=summary.total_received,
            total_redeemed=summary.total_redeemed,
            total_awarded=summary.total_awarded,
            current_balance=summary.current_balance,
            gift_cards_count=summary.gift_cards_count,
        ),
        user_type=current_user.user_type,
    )


@router.get("/ledger", response_model=LedgerResponse)
async def get_ledger(
    current_user: AuthUser = Depends(require_booking_agent),
    db: AsyncSession = Depends(get_async_db),
):
    """Every card the calling agent has issued, with its transactions."""
    ledger = await reporting.get_agent_ledger(db, current_user.user_id)
    s = ledger.summary
    return LedgerResponse(
        agent_id=ledger.agent_id,
        ledger=[CardHistoryResponse.from_history(h) for h in ledger.cards],
        summary=LedgerSummaryResponse(
            total_cards=s.total_cards,
            active_cards=s.active_cards,
            redeemed_cards=s.redeemed_cards,
            expired_cards=s.expired_cards,
            suspended_cards=s.suspended_cards,
            cancelled_cards=s.cancelled_cards,
            total_amount_purchased=s.total_amount_purchased,
            total_amount_redeemed=s.total_amount_redeemed,
            total_amount_awarded=s.total_amount_awarded,
            total_amount_remaining=s.total_amount_remaining,
        ),
    )


@router.get("/monthly-limit", response_model=MonthlyLimitResponse)
async def get_monthly_limit(
    currency: str = "USD",
    current_user: AuthUser = Depends(require_booking_agent),
    db: AsyncSession = Depends(get_async_db),
):
    limit = await check_monthly_limit(
        db,
        agent_id=current_user.user_id,
        proposed_amount=Money.zero(currency),
        is_admin_agent=current_user.is_admin_agent
        or current_user.user_type == "admin_agent",
    )
    return MonthlyLimitResponse.from_status(limit)


@router.get("/activity", response_model=ActivityResponse)
async def get_activity(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    items = await reporting.get_user_activity(db, current_user.user_id)
    return ActivityResponse(
        transactions=[
            ActivityItemResponse(
                **TransactionResponse.from_entry(item.entry).model_dump(),
                gift_card_code=item.gift_card_code,
            )
            for item in items
        ],
        user_type=current_user.user_type,
    )
