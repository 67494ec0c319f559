"""Balance, history, ledger and limit schemas."""

import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel
from services.giftcard_service.schemas.gift_card import (
    AdminGiftCardResponse,
    GiftCardResponse,
)
from services.giftcard_service.schemas.transaction import TransactionResponse
from services.giftcard_service.services.monthly_limit import MonthlyLimitStatus
from services.giftcard_service.services.reporting import (
    AgentStats,
    CardHistory,
    MonthlySummary,
    ReconciliationReport,
)


class CurrencyBalanceResponse(BaseModel):
    currency: str
    balance: Decimal
    card_count: int


class BalanceResponse(BaseModel):
    user_id: str
    balances: list[CurrencyBalanceResponse]


class CardHistoryResponse(BaseModel):
    gift_card: GiftCardResponse
    transactions: list[TransactionResponse]

    @classmethod
    def from_history(cls, history: CardHistory) -> "CardHistoryResponse":
        return cls(
            gift_card=GiftCardResponse.from_card(history.card),
            transactions=[TransactionResponse.from_entry(e) for e in history.entries],
        )


class HistorySummaryResponse(BaseModel):
    currency: str
    total_purchased: Decimal
    total_received: Decimal
    total_redeemed: Decimal
    total_awarded: Decimal
    current_balance: Decimal
    gift_cards_count: int


class HistoryResponse(BaseModel):
    history: list[CardHistoryResponse]
    summary: HistorySummaryResponse
    user_type: Optional[str] = None


class LedgerSummaryResponse(BaseModel):
    total_cards: int
    active_cards: int
    redeemed_cards: int
    expired_cards: int
    suspended_cards: int
    cancelled_cards: int
    total_amount_purchased: Decimal
    total_amount_redeemed: Decimal
    total_amount_awarded: Decimal
    total_amount_remaining: Decimal


class LedgerResponse(BaseModel):
    agent_id: str
    ledger: list[CardHistoryResponse]
    summary: LedgerSummaryResponse


class MonthlyLimitResponse(BaseModel):
    agent_id: str
    is_admin: bool
    current_month_total: Decimal
    limit_amount: Optional[Decimal] = None
    remaining_amount: Optional[Decimal] = None
    within_limit: bool
    percent_used: Decimal
    currency: str

    @classmethod
    def from_status(cls, status: MonthlyLimitStatus) -> "MonthlyLimitResponse":
        return cls(
            agent_id=status.agent_id,
            is_admin=status.is_admin_agent,
            current_month_total=status.current_month_total.quantized(),
            limit_amount=status.limit_amount.quantized() if status.limit_amount is not None else None,
            remaining_amount=(
                status.remaining_amount.quantized()
                if status.remaining_amount is not None
                else None
            ),
            within_limit=status.within_limit,
            percent_used=status.percent_used or Decimal("0.00"),
            currency=status.current_month_total.currency,
        )


class AgentStatsResponse(BaseModel):
    agent_id: str
    currency: str
    is_unlimited: bool
    total_cards: int
    total_amount: Decimal
    current_month_total: Decimal
    current_month_cards: int
    active_cards: int
    active_balance: Decimal
    redeemed_cards: int
    suspended_cards: int
    expired_cards: int
    cancelled_cards: int
    monthly_limit: Optional[Decimal] = None
    remaining_this_month: Optional[Decimal] = None

    @classmethod
    def from_stats(cls, stats: AgentStats) -> "AgentStatsResponse":
        return cls(
            agent_id=stats.agent_id,
            currency=stats.currency,
            is_unlimited=stats.is_unlimited,
            total_cards=stats.total_cards,
            total_amount=stats.total_amount.quantized(),
            current_month_total=stats.current_month_total.quantized(),
            current_month_cards=stats.current_month_cards,
            active_cards=stats.active_cards,
            active_balance=stats.active_balance.quantized(),
            redeemed_cards=stats.redeemed_cards,
            suspended_cards=stats.suspended_cards,
            expired_cards=stats.expired_cards,
            cancelled_cards=stats.cancelled_cards,
            monthly_limit=stats.monthly_limit.quantized() if stats.monthly_limit is not None else None,
            remaining_this_month=(
                stats.remaining_this_month.quantized()
                if stats.remaining_this_month is not None
                else None
            ),
        )


class AgentStatsListResponse(BaseModel):
    agents: list[AgentStatsResponse]
    total_agents: int
    total_cards: int


class MonthlySummaryResponse(BaseModel):
    month: str
    currency: str
    active_agents: int
    total_cards: int
    total_amount: Decimal
    active_cards: int
    active_balance: Decimal
    redeemed_cards: int
    suspended_cards: int
    expired_cards: int
    cancelled_cards: int

    @classmethod
    def from_summary(cls, summary: MonthlySummary) -> "MonthlySummaryResponse":
        return cls(
            month=summary.month,
            currency=summary.currency,
            active_agents=summary.active_agents,
            total_cards=summary.total_cards,
            total_amount=summary.total_amount.quantized(),
            active_cards=summary.active_cards,
            active_balance=summary.active_balance.quantized(),
            redeemed_cards=summary.redeemed_cards,
            suspended_cards=summary.suspended_cards,
            expired_cards=summary.expired_cards,
            cancelled_cards=summary.cancelled_cards,
        )


class MonthlySummaryListResponse(BaseModel):
    monthly_summary: list[MonthlySummaryResponse]


class AgentCardsResponse(BaseModel):
    agent_id: str
    gift_cards: list[AdminGiftCardResponse]
    monthly_limit: MonthlyLimitResponse
    monthly_stats: list[MonthlySummaryResponse]


class ReconciliationResponse(BaseModel):
    gift_card_id: uuid.UUID
    code: str
    balanced: bool
    face_amount: Decimal
    remaining_balance: Decimal
    total_redeemed: Decimal
    expected_remaining: Decimal
    entry_count: int
    issues: list[str]

    @classmethod
    def from_report(cls, report: ReconciliationReport) -> "ReconciliationResponse":
        return cls(
            gift_card_id=report.gift_card_id,
            code=report.code,
            balanced=report.balanced,
            face_amount=report.face_amount.quantized(),
            remaining_balance=report.remaining_balance.quantized(),
            total_redeemed=report.total_redeemed.quantized(),
            expected_remaining=report.expected_remaining.quantized(),
            entry_count=report.entry_count,
            issues=report.issues,
        )
