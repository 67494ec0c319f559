"""Read-only views over gift cards and their ledger.

Balances are derived from the cards themselves (active, unexpired, held by
the user) rather than from a separately maintained aggregate, so they can
never drift from the ledger-backed card balances.
"""

import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import (
    calendar_month_bounds,
    ensure_utc,
    month_key,
    utc_now,
)
from services.giftcard_service.errors import (
    GiftCardNotFoundError,
    UnauthorizedRedemptionError,
)
from services.giftcard_service.models import (
    GiftCard,
    GiftCardIssuanceLimit,
    GiftCardStatus,
    GiftCardTransaction,
    GiftCardTransactionType,
    IssuerType,
)
from services.giftcard_service.money import Money
from services.giftcard_service.services import ledger_store
from services.giftcard_service.services.monthly_limit import EXCLUDED_FROM_LIMIT
from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

SEARCH_LIMIT = 100
SUMMARY_MONTHS = 12


@dataclass
class CurrencyBalance:
    currency: str
    balance: Money
    card_count: int


@dataclass
class CardHistory:
    card: GiftCard
    entries: list[GiftCardTransaction]


@dataclass
class HistorySummary:
    currency: str
    total_purchased: Decimal = Decimal("0.00")
    total_received: Decimal = Decimal("0.00")
    total_redeemed: Decimal = Decimal("0.00")
    total_awarded: Decimal = Decimal("0.00")
    current_balance: Decimal = Decimal("0.00")
    gift_cards_count: int = 0


@dataclass
class GiftCardHistory:
    cards: list[CardHistory]
    summary: HistorySummary


@dataclass
class LedgerSummary:
    total_cards: int = 0
    active_cards: int = 0
    redeemed_cards: int = 0
    expired_cards: int = 0
    suspended_cards: int = 0
    cancelled_cards: int = 0
    total_amount_purchased: Decimal = Decimal("0.00")
    total_amount_redeemed: Decimal = Decimal("0.00")
    total_amount_awarded: Decimal = Decimal("0.00")
    total_amount_remaining: Decimal = Decimal("0.00")


@dataclass
class AgentLedger:
    agent_id: str
    cards: list[CardHistory]
    summary: LedgerSummary


@dataclass
class ActivityItem:
    entry: GiftCardTransaction
    gift_card_code: str


@dataclass
class AgentStats:
    agent_id: str
    currency: str
    total_cards: int
    total_amount: Money
    current_month_total: Money
    current_month_cards: int
    active_cards: int
    active_balance: Money
    redeemed_cards: int
    suspended_cards: int
    expired_cards: int
    cancelled_cards: int
    monthly_limit: Optional[Money]
    remaining_this_month: Optional[Money]

    @property
    def is_unlimited(self) -> bool:
        return self.monthly_limit is None


@dataclass
class MonthlySummary:
    """Booking-agent issuance for one calendar month in one currency."""

    month: str
    currency: str
    active_agents: int
    total_cards: int
    total_amount: Money
    active_cards: int
    active_balance: Money
    redeemed_cards: int
    suspended_cards: int
    expired_cards: int
    cancelled_cards: int


@dataclass
class ReconciliationReport:
    gift_card_id: uuid.UUID
    code: str
    face_amount: Money
    remaining_balance: Money
    total_redeemed: Money
    expected_remaining: Money
    entry_count: int
    issues: list[str] = field(default_factory=list)

    @property
    def balanced(self) -> bool:
        return not self.issues


def _is_spendable(card: GiftCard, now: datetime) -> bool:
    return card.status == GiftCardStatus.ACTIVE and ensure_utc(card.expires_at) > now


# ---------------------------------------------------------------------------
# Member views
# ---------------------------------------------------------------------------


async def get_gift_card_balance(
    db: AsyncSession, user_id: str, *, now: Optional[datetime] = None
) -> list[CurrencyBalance]:
    """Spendable total per currency across active, unexpired cards held by ``user_id``."""
    now = now or utc_now()
    result = await db.execute(
        select(GiftCard).where(
            GiftCard.recipient_id == user_id,
            GiftCard.status == GiftCardStatus.ACTIVE,
        )
    )
    totals: dict[str, list] = {}
    for card in result.scalars().all():
        if not _is_spendable(card, now):
            continue
        bucket = totals.setdefault(card.currency, [Money.zero(card.currency), 0])
        bucket[0] = bucket[0] + card.remaining_balance
        bucket[1] += 1
    return [
        CurrencyBalance(currency=currency, balance=balance, card_count=count)
        for currency, (balance, count) in sorted(totals.items())
    ]


async def get_gift_card_details(
    db: AsyncSession, code: str, user_id: str, *, is_operator: bool = False
) -> GiftCard:
    card = await ledger_store.get_card_by_code(db, code)
    if card is None or not (
        is_operator or user_id in (card.issuer_id, card.recipient_id)
    ):
        raise GiftCardNotFoundError("Gift card not found or access denied", code=code)
    return card


async def list_gift_card_transactions(
    db: AsyncSession, card_id: uuid.UUID, user_id: str, *, is_operator: bool = False
) -> list[GiftCardTransaction]:
    """Ledger of one card, newest first."""
    card = await ledger_store.get_card(db, card_id)
    if card is None:
        raise GiftCardNotFoundError("Gift card not found", gift_card_id=str(card_id))
    if not (is_operator or user_id in (card.issuer_id, card.recipient_id)):
        raise UnauthorizedRedemptionError(
            "Access denied to this gift card", gift_card_id=str(card_id)
        )
    entries = await ledger_store.list_entries(db, [card_id])
    return list(reversed(entries))


async def list_user_gift_cards(
    db: AsyncSession, user_id: str
) -> tuple[list[GiftCard], list[GiftCard]]:
    """Return ``(purchased, received)`` cards for ``user_id``."""
    purchased = await db.execute(
        select(GiftCard)
        .where(GiftCard.issuer_id == user_id)
        .order_by(GiftCard.created_at.desc())
    )
    received = await db.execute(
        select(GiftCard)
        .where(GiftCard.recipient_id == user_id)
        .order_by(GiftCard.awarded_at.desc())
    )
    return list(purchased.scalars().all()), list(received.scalars().all())


async def _involved_entries(
    db: AsyncSession, user_id: str
) -> list[tuple[GiftCardTransaction, GiftCard]]:
    result = await db.execute(
        select(GiftCardTransaction, GiftCard)
        .join(GiftCard, GiftCard.id == GiftCardTransaction.gift_card_id)
        .where(
            or_(
                GiftCard.issuer_id == user_id,
                GiftCard.recipient_id == user_id,
                GiftCardTransaction.actor_id == user_id,
            )
        )
    )
    rows = [(entry, card) for entry, card in result.all()]
    ordered = ledger_store.sort_entries([entry for entry, _ in rows])
    cards = {entry.id: card for entry, card in rows}
    return [(entry, cards[entry.id]) for entry in ordered]


async def get_gift_card_history(
    db: AsyncSession, user_id: str, *, currency: Optional[str] = None
) -> GiftCardHistory:
    """Entries grouped by card (newest card activity first) plus totals.

    Totals cover cards in ``currency`` (the platform default when omitted).
    """
    currency = (currency or get_settings().GIFT_CARD_DEFAULT_CURRENCY).upper()
    rows = await _involved_entries(db, user_id)

    groups: dict[uuid.UUID, CardHistory] = {}
    summary = HistorySummary(currency=currency)
    for entry, card in rows:
        group = groups.setdefault(card.id, CardHistory(card=card, entries=[]))
        group.entries.append(entry)
        if entry.currency != currency:
            continue
        amount = entry.amount.quantized()
        kind = entry.transaction_type
        if kind == GiftCardTransactionType.PURCHASE and card.issuer_id == user_id:
            summary.total_purchased += amount
        elif kind == GiftCardTransactionType.AWARD and card.recipient_id == user_id:
            summary.total_received += amount
        elif kind == GiftCardTransactionType.REDEEM and entry.actor_id == user_id:
            summary.total_redeemed += amount
        elif kind == GiftCardTransactionType.AWARD and entry.actor_id == user_id:
            summary.total_awarded += amount

    for group in groups.values():
        group.entries.reverse()
    cards = sorted(
        groups.values(),
        key=lambda g: ensure_utc(g.entries[0].created_at),
        reverse=True,
    )

    summary.gift_cards_count = len(groups)
    for balance in await get_gift_card_balance(db, user_id):
        if balance.currency == currency:
            summary.current_balance = balance.balance.quantized()
    return GiftCardHistory(cards=cards, summary=summary)


async def get_user_activity(
    db: AsyncSession, user_id: str, *, limit: int = 100
) -> list[ActivityItem]:
    """Flat list of ledger entries touching ``user_id``, newest first."""
    rows = await _involved_entries(db, user_id)
    rows.reverse()
    return [ActivityItem(entry=entry, gift_card_code=card.code) for entry, card in rows[:limit]]


# ---------------------------------------------------------------------------
# Agent / operator views
# ---------------------------------------------------------------------------


async def get_agent_ledger(db: AsyncSession, agent_id: str) -> AgentLedger:
    """Every card ``agent_id`` issued, newest first, with nested entries."""
    result = await db.execute(
        select(GiftCard)
        .where(GiftCard.issuer_id == agent_id)
        .order_by(GiftCard.created_at.desc())
    )
    cards = list(result.scalars().all())
    entries = await ledger_store.list_entries(db, [card.id for card in cards])

    by_card: dict[uuid.UUID, list[GiftCardTransaction]] = defaultdict(list)
    for entry in entries:
        by_card[entry.gift_card_id].append(entry)

    summary = LedgerSummary(total_cards=len(cards))
    status_counters = {
        GiftCardStatus.ACTIVE: "active_cards",
        GiftCardStatus.REDEEMED: "redeemed_cards",
        GiftCardStatus.EXPIRED: "expired_cards",
        GiftCardStatus.SUSPENDED: "suspended_cards",
        GiftCardStatus.CANCELLED: "cancelled_cards",
    }
    histories = []
    for card in cards:
        counter = status_counters[card.status]
        setattr(summary, counter, getattr(summary, counter) + 1)
        summary.total_amount_purchased += card.face_amount.quantized()
        summary.total_amount_remaining += card.remaining_balance.quantized()
        card_entries = list(reversed(by_card.get(card.id, [])))
        for entry in card_entries:
            if entry.transaction_type == GiftCardTransactionType.REDEEM:
                summary.total_amount_redeemed += entry.amount.quantized()
            elif entry.transaction_type == GiftCardTransactionType.AWARD:
                summary.total_amount_awarded += entry.amount.quantized()
        histories.append(CardHistory(card=card, entries=card_entries))

    return AgentLedger(agent_id=agent_id, cards=histories, summary=summary)


async def search_gift_cards(
    db: AsyncSession,
    *,
    query: Optional[str] = None,
    status: Optional[GiftCardStatus] = None,
    agent_id: Optional[str] = None,
    limit: int = SEARCH_LIMIT,
) -> list[GiftCard]:
    stmt = select(GiftCard)
    if query:
        pattern = f"%{query.strip()}%"
        stmt = stmt.where(
            or_(
                GiftCard.code.ilike(pattern),
                GiftCard.recipient_email.ilike(pattern),
                GiftCard.recipient_id.ilike(pattern),
                GiftCard.issuer_id.ilike(pattern),
            )
        )
    if status is not None:
        stmt = stmt.where(GiftCard.status == status)
    if agent_id:
        stmt = stmt.where(GiftCard.issuer_id == agent_id)
    result = await db.execute(stmt.order_by(GiftCard.created_at.desc()).limit(limit))
    return list(result.scalars().all())


def _count(status: GiftCardStatus):
    return func.sum(case((GiftCard.status == status, 1), else_=0))


async def get_agent_stats(
    db: AsyncSession, *, now: Optional[datetime] = None
) -> list[AgentStats]:
    """Per booking agent (and currency) totals, current month usage and allowance."""
    settings = get_settings()
    start, end = calendar_month_bounds(now or utc_now(), settings.GIFT_CARD_LIMIT_TIMEZONE)
    in_month = (
        (GiftCard.issued_at >= start)
        & (GiftCard.issued_at < end)
        & GiftCard.status.not_in(EXCLUDED_FROM_LIMIT)
    )

    result = await db.execute(
        select(
            GiftCard.issuer_id,
            GiftCard.currency,
            func.count(GiftCard.id),
            func.coalesce(func.sum(GiftCard.face_amount_cents), 0),
            func.coalesce(
                func.sum(case((in_month, GiftCard.face_amount_cents), else_=0)), 0
            ),
            func.coalesce(func.sum(case((in_month, 1), else_=0)), 0),
            func.coalesce(_count(GiftCardStatus.ACTIVE), 0),
            func.coalesce(
                func.sum(
                    case(
                        (
                            GiftCard.status == GiftCardStatus.ACTIVE,
                            GiftCard.remaining_balance_cents,
                        ),
                        else_=0,
                    )
                ),
                0,
            ),
            func.coalesce(_count(GiftCardStatus.REDEEMED), 0),
            func.coalesce(_count(GiftCardStatus.SUSPENDED), 0),
            func.coalesce(_count(GiftCardStatus.EXPIRED), 0),
            func.coalesce(_count(GiftCardStatus.CANCELLED), 0),
        )
        .where(GiftCard.issuer_type == IssuerType.BOOKING_AGENT)
        .group_by(GiftCard.issuer_id, GiftCard.currency)
        .order_by(GiftCard.issuer_id, GiftCard.currency)
    )
    rows = result.all()

    limit_rows = await db.execute(select(GiftCardIssuanceLimit))
    limits = {
        (row.agent_id, row.currency): row.monthly_limit_cents
        for row in limit_rows.scalars().all()
    }

    stats = []
    for (
        agent_id,
        currency,
        total_cards,
        total_cents,
        month_cents,
        month_cards,
        active_cards,
        active_cents,
        redeemed_cards,
        suspended_cards,
        expired_cards,
        cancelled_cards,
    ) in rows:
        month_total = Money.from_minor_units(int(month_cents), currency)
        limit_cents = limits.get(
            (agent_id, currency),
            Money(settings.GIFT_CARD_MONTHLY_LIMIT, currency).to_minor_units(),
        )
        monthly_limit = None
        remaining = None
        if limit_cents:
            monthly_limit = Money.from_minor_units(limit_cents, currency)
            remaining = (monthly_limit - month_total).floor_zero()
        stats.append(
            AgentStats(
                agent_id=agent_id,
                currency=currency,
                total_cards=int(total_cards),
                total_amount=Money.from_minor_units(int(total_cents), currency),
                current_month_total=month_total,
                current_month_cards=int(month_cards),
                active_cards=int(active_cards),
                active_balance=Money.from_minor_units(int(active_cents), currency),
                redeemed_cards=int(redeemed_cards),
                suspended_cards=int(suspended_cards),
                expired_cards=int(expired_cards),
                cancelled_cards=int(cancelled_cards),
                monthly_limit=monthly_limit,
                remaining_this_month=remaining,
            )
        )
    return stats


def _first_month_start(moment: datetime, tz_name: str, months: int) -> datetime:
    """UTC start of the calendar month ``months - 1`` months before ``moment``'s."""
    start, _ = calendar_month_bounds(moment, tz_name)
    for _ in range(months - 1):
        start, _ = calendar_month_bounds(start - timedelta(seconds=1), tz_name)
    return start


async def get_monthly_summary(
    db: AsyncSession,
    *,
    agent_id: Optional[str] = None,
    months: int = SUMMARY_MONTHS,
    now: Optional[datetime] = None,
) -> list[MonthlySummary]:
    """Booking-agent issuance grouped by calendar month and currency, newest first.

    Months are calendar months in ``GIFT_CARD_LIMIT_TIMEZONE``, the same
    boundaries the monthly limit uses. Only the last ``months`` months (the
    current one included) are covered and months without cards are omitted.
    With ``agent_id`` only that agent's cards are counted.
    """
    tz_name = get_settings().GIFT_CARD_LIMIT_TIMEZONE
    since = _first_month_start(now or utc_now(), tz_name, months)

    stmt = select(
        GiftCard.issuer_id,
        GiftCard.currency,
        GiftCard.issued_at,
        GiftCard.status,
        GiftCard.face_amount_cents,
        GiftCard.remaining_balance_cents,
    ).where(
        GiftCard.issuer_type == IssuerType.BOOKING_AGENT,
        GiftCard.issued_at >= since,
    )
    if agent_id:
        stmt = stmt.where(GiftCard.issuer_id == agent_id)
    result = await db.execute(stmt)

    counts: dict[tuple[str, str], dict[str, int]] = defaultdict(lambda: defaultdict(int))
    agents: dict[tuple[str, str], set[str]] = defaultdict(set)
    for issuer_id, currency, issued_at, status, face_cents, remaining_cents in result.all():
        key = (month_key(issued_at, tz_name), currency)
        bucket = counts[key]
        agents[key].add(issuer_id)
        bucket["cards"] += 1
        bucket["amount"] += face_cents
        if status == GiftCardStatus.ACTIVE:
            bucket["active"] += 1
            bucket["active_balance"] += remaining_cents
        elif status == GiftCardStatus.REDEEMED:
            bucket["redeemed"] += 1
        elif status == GiftCardStatus.SUSPENDED:
            bucket["suspended"] += 1
        elif status == GiftCardStatus.EXPIRED:
            bucket["expired"] += 1
        elif status == GiftCardStatus.CANCELLED:
            bucket["cancelled"] += 1

    summaries = [
        MonthlySummary(
            month=month,
            currency=currency,
            active_agents=len(agents[(month, currency)]),
            total_cards=bucket["cards"],
            total_amount=Money.from_minor_units(bucket["amount"], currency),
            active_cards=bucket["active"],
            active_balance=Money.from_minor_units(bucket["active_balance"], currency),
            redeemed_cards=bucket["redeemed"],
            suspended_cards=bucket["suspended"],
            expired_cards=bucket["expired"],
            cancelled_cards=bucket["cancelled"],
        )
        for (month, currency), bucket in counts.items()
    ]
    summaries.sort(key=lambda s: s.currency)
    summaries.sort(key=lambda s: s.month, reverse=True)
    return summaries


async def reconcile_gift_card(
    db: AsyncSession, card_id: uuid.UUID
) -> ReconciliationReport:
    """Check a card's cached balance against its ledger.

    ``remaining == max(0, face - sum(redeem))`` must hold, redemptions may not
    exceed the highest face amount the card ever carried, and the
    ``balance_before``/``balance_after`` snapshots must chain from the
    purchase entry to the current balance.
    """
    card = await ledger_store.get_card(db, card_id)
    if card is None:
        raise GiftCardNotFoundError("Gift card not found", gift_card_id=str(card_id))
    entries = await ledger_store.list_entries(db, [card_id])

    redeemed = Money.zero(card.currency)
    peak_face = card.face_amount
    for entry in entries:
        if entry.transaction_type == GiftCardTransactionType.REDEEM:
            redeemed = redeemed + entry.amount
        elif entry.transaction_type == GiftCardTransactionType.PURCHASE:
            peak_face = max(peak_face, entry.amount)
        elif entry.transaction_type == GiftCardTransactionType.ADMIN_EDIT:
            edited_face = ((entry.entry_metadata or {}).get("new") or {}).get("face_amount")
            if edited_face is not None:
                peak_face = max(peak_face, Money(edited_face, card.currency))
    expected = (card.face_amount - redeemed).floor_zero()

    report = ReconciliationReport(
        gift_card_id=card.id,
        code=card.code,
        face_amount=card.face_amount,
        remaining_balance=card.remaining_balance,
        total_redeemed=redeemed,
        expected_remaining=expected,
        entry_count=len(entries),
    )
    if card.remaining_balance != expected:
        report.issues.append(
            f"remaining balance {card.remaining_balance.quantized()} != expected {expected.quantized()}"
        )
    if redeemed > peak_face:
        report.issues.append(
            f"total redeemed {redeemed.quantized()} exceeds highest face amount {peak_face.quantized()}"
        )

    if not entries or entries[0].transaction_type != GiftCardTransactionType.PURCHASE:
        report.issues.append("ledger does not start with a purchase entry")
        return report
    if entries[0].balance_before_cents != 0:
        report.issues.append("purchase entry does not start from a zero balance")

    previous = None
    for entry in entries:
        if previous is not None and entry.balance_before_cents != previous.balance_after_cents:
            report.issues.append(f"entry {entry.id} does not chain from {previous.id}")
        if entry.transaction_type == GiftCardTransactionType.REDEEM and (
            entry.balance_before_cents - entry.amount_cents != entry.balance_after_cents
        ):
            report.issues.append(f"redeem entry {entry.id} snapshot mismatch")
        previous = entry
    if previous.balance_after_cents != card.remaining_balance_cents:
        report.issues.append("last ledger snapshot differs from the card balance")
    return report
