"""Redemption: atomic debit + ledger append + status update.

Checks run in a fixed order so callers can rely on the error they get:

1. card exists; suspended/cancelled -> NotActive; expired status -> Expired
2. actor is the recipient (or the issuer while unawarded)
3. not past ``expires_at`` (an active card is marked expired and committed)
4. enough balance (a redeemed card has none left)
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.logging import get_logger
from services.giftcard_service.errors import (
    GiftCardExpiredError,
    GiftCardNotActiveError,
    GiftCardNotFoundError,
    GiftCardValidationError,
    InsufficientFundsError,
    UnauthorizedRedemptionError,
)
from services.giftcard_service.models import (
    GiftCard,
    GiftCardStatus,
    GiftCardTransaction,
    GiftCardTransactionType,
)
from services.giftcard_service.money import Money
from services.giftcard_service.services import ledger_store
from services.giftcard_service.services.locks import card_lock_key
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class RedemptionResult:
    gift_card_id: uuid.UUID
    code: str
    amount: Money
    remaining_balance: Money
    status: GiftCardStatus
    service_type: Optional[str]
    service_reference: Optional[str]
    transaction_id: uuid.UUID
    redeemed_at: datetime
    replayed: bool = False


def payment_idempotency_key(
    card_id: uuid.UUID, service_type: str, service_reference: str
) -> str:
    return f"redeem:{card_id}:{service_type}:{service_reference}"


def _result(
    card: GiftCard, entry: GiftCardTransaction, *, replayed: bool = False
) -> RedemptionResult:
    return RedemptionResult(
        gift_card_id=card.id,
        code=card.code,
        amount=entry.amount,
        remaining_balance=entry.balance_after,
        status=card.status,
        service_type=entry.service_type,
        service_reference=entry.service_reference,
        transaction_id=entry.id,
        redeemed_at=ensure_utc(entry.created_at),
        replayed=replayed,
    )


def _check_redeemable(card: GiftCard, actor_id: str) -> None:
    if card.status in (GiftCardStatus.SUSPENDED, GiftCardStatus.CANCELLED):
        raise GiftCardNotActiveError(
            f"Gift card is {card.status.value}", code=card.code, status=card.status.value
        )
    if card.status == GiftCardStatus.EXPIRED:
        raise GiftCardExpiredError(
            "Gift card has expired",
            code=card.code,
            expires_at=ensure_utc(card.expires_at).isoformat(),
        )
    owner = card.recipient_id or card.issuer_id
    if actor_id != owner:
        raise UnauthorizedRedemptionError(
            "Not authorized to redeem this gift card", code=card.code
        )


async def _redeem(
    db: AsyncSession,
    *,
    code: str,
    amount: Money,
    actor_id: str,
    service_type: Optional[str],
    service_reference: Optional[str],
    description: Optional[str],
    idempotency_key: Optional[str],
) -> RedemptionResult:
    amount = Money(amount.quantized(), amount.currency)
    if not amount.is_positive:
        raise GiftCardValidationError(
            "Redemption amount must be positive", amount=str(amount.quantized())
        )

    card_id = await ledger_store.resolve_card_id(db, code)
    if card_id is None:
        raise GiftCardNotFoundError("Gift card not found", code=code)

    expired_card: Optional[GiftCard] = None
    async with ledger_store.ledger_unit(db, card_lock_key(card_id)):
        card = await ledger_store.get_card(db, card_id, for_update=True)
        if card is None:
            raise GiftCardNotFoundError("Gift card not found", code=code)

        if idempotency_key:
            prior = await ledger_store.find_entry_by_idempotency_key(db, idempotency_key)
            if prior is not None:
                logger.info(
                    "Idempotent replay for key=%s -> txn=%s", idempotency_key, prior.id
                )
                return _result(card, prior, replayed=True)

        _check_redeemable(card, actor_id)

        now = utc_now()
        if now > ensure_utc(card.expires_at):
            if card.status == GiftCardStatus.ACTIVE:
                card.status = GiftCardStatus.EXPIRED
                card.updated_at = now
            # Commit the expiry before reporting it
            expired_card = card
        else:
            if amount.currency != card.currency:
                raise GiftCardValidationError(
                    "Currency mismatch",
                    expected_currency=card.currency,
                    currency=amount.currency,
                )
            balance_before = card.remaining_balance
            try:
                balance_after = balance_before.debit(amount)
            except InsufficientFundsError as exc:
                exc.context["code"] = card.code
                raise

            card.remaining_balance_cents = balance_after.to_minor_units()
            card.redeemed_at = now
            card.redeemed_by = actor_id
            card.updated_at = now
            if balance_after.is_zero:
                card.status = GiftCardStatus.REDEEMED

            entry = ledger_store.append_entry(
                db,
                card,
                transaction_type=GiftCardTransactionType.REDEEM,
                amount=amount,
                actor_id=actor_id,
                balance_before=balance_before,
                balance_after=balance_after,
                description=description
                or (f"Redeemed for {service_type}" if service_type else "Gift card redemption"),
                service_type=service_type,
                service_reference=service_reference,
                idempotency_key=idempotency_key,
            )

    if expired_card is not None:
        logger.info("Gift card %s expired at redemption time", expired_card.code)
        raise GiftCardExpiredError(
            "Gift card has expired",
            code=expired_card.code,
            expires_at=ensure_utc(expired_card.expires_at).isoformat(),
        )

    logger.info(
        "Redeemed %s from gift card %s by %s (remaining=%s, status=%s)",
        amount,
        card.code,
        actor_id,
        card.remaining_balance,
        card.status.value,
    )
    return _result(card, entry)


async def redeem_gift_card(
    db: AsyncSession,
    *,
    code: str,
    amount: Money,
    actor_id: str,
    service_type: Optional[str] = None,
    service_reference: Optional[str] = None,
    description: Optional[str] = None,
) -> RedemptionResult:
    """Debit ``amount`` from the card identified by ``code``."""
    return await _redeem(
        db,
        code=code,
        amount=amount,
        actor_id=actor_id,
        service_type=service_type,
        service_reference=service_reference,
        description=description,
        idempotency_key=None,
    )


async def pay_with_gift_card(
    db: AsyncSession,
    *,
    code: str,
    amount: Money,
    payer_id: str,
    service_type: str,
    service_reference: str,
    description: Optional[str] = None,
) -> RedemptionResult:
    """Pay for an internal purchase (e.g. a subscription) with a gift card.

    Retries with the same ``(card, service_type, service_reference)`` return
    the originally committed result instead of debiting again. The debit is
    committed before this returns, so callers provision only on success.
    """
    if not service_type or not service_reference:
        raise GiftCardValidationError(
            "service_type and service_reference are required for payments"
        )
    card_id = await ledger_store.resolve_card_id(db, code)
    if card_id is None:
        raise GiftCardNotFoundError("Gift card not found", code=code)
    return await _redeem(
        db,
        code=code,
        amount=amount,
        actor_id=payer_id,
        service_type=service_type,
        service_reference=service_reference,
        description=description,
        idempotency_key=payment_idempotency_key(card_id, service_type, service_reference),
    )
