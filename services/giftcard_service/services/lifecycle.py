"""Gift card lifecycle: issuance, awarding and operator status changes.

State machine::

    active    -> active | redeemed | suspended | cancelled | expired
    suspended -> active | expired | cancelled
    redeemed, cancelled, expired: terminal

Balance-affecting changes append ledger entries; pure status changes made by
operators (suspend, unsuspend, cancel, notes) write audit rows instead.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union

from libs.common.config import get_settings
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.logging import get_logger
from services.giftcard_service.errors import (
    AlreadyAwardedError,
    GiftCardNotActiveError,
    GiftCardNotFoundError,
    GiftCardValidationError,
    ImmutableStateError,
    MonthlyLimitExceededError,
)
from services.giftcard_service.models import (
    TERMINAL_STATUSES,
    AuditAction,
    GiftCard,
    GiftCardStatus,
    GiftCardTransactionType,
    IssuerType,
    RecipientType,
)
from services.giftcard_service.money import AmountLike, Money
from services.giftcard_service.services import ledger_store
from services.giftcard_service.services.code_generator import generate_unique_code
from services.giftcard_service.services.locks import card_lock_key, issuance_lock_key
from services.giftcard_service.services.monthly_limit import check_monthly_limit
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ADMIN_CREATED_PAYMENT_METHOD = "admin_created"

_ALLOWED_TRANSITIONS: dict[GiftCardStatus, set[GiftCardStatus]] = {
    GiftCardStatus.ACTIVE: {
        GiftCardStatus.REDEEMED,
        GiftCardStatus.SUSPENDED,
        GiftCardStatus.CANCELLED,
        GiftCardStatus.EXPIRED,
    },
    GiftCardStatus.SUSPENDED: {
        GiftCardStatus.ACTIVE,
        GiftCardStatus.EXPIRED,
        GiftCardStatus.CANCELLED,
    },
    GiftCardStatus.REDEEMED: set(),
    GiftCardStatus.CANCELLED: set(),
    GiftCardStatus.EXPIRED: set(),
}


@dataclass
class PaymentConfirmation:
    """A payment provider's report that ``amount`` was paid under ``reference``."""

    amount: Money
    reference: str
    method: str


def ensure_transition(card: GiftCard, target: GiftCardStatus) -> None:
    if target in _ALLOWED_TRANSITIONS[card.status]:
        return
    if card.status in TERMINAL_STATUSES:
        raise ImmutableStateError(
            f"Gift card is {card.status.value} and cannot change",
            status=card.status.value,
            requested_status=target.value,
        )
    raise GiftCardNotActiveError(
        f"Cannot move gift card from {card.status.value} to {target.value}",
        status=card.status.value,
        requested_status=target.value,
    )


def _validate_expiry_days(expiry_days: Optional[int]) -> int:
    settings = get_settings()
    days = settings.GIFT_CARD_DEFAULT_EXPIRY_DAYS if expiry_days is None else expiry_days
    if days <= 0 or days > settings.GIFT_CARD_MAX_EXPIRY_DAYS:
        raise GiftCardValidationError(
            f"expiry_days must be between 1 and {settings.GIFT_CARD_MAX_EXPIRY_DAYS}",
            expiry_days=days,
        )
    return days


async def _load_for_update(db: AsyncSession, card_id: uuid.UUID) -> GiftCard:
    card = await ledger_store.get_card(db, card_id, for_update=True)
    if card is None:
        raise GiftCardNotFoundError("Gift card not found", gift_card_id=str(card_id))
    return card


def _apply_award(
    db: AsyncSession,
    card: GiftCard,
    *,
    recipient_id: str,
    recipient_type: RecipientType,
    recipient_email: Optional[str],
    awarded_by: str,
    now: datetime,
    description: str = "Gift card awarded",
) -> None:
    card.recipient_id = recipient_id
    card.recipient_type = recipient_type
    if recipient_email:
        card.recipient_email = recipient_email
    card.awarded_at = now
    card.awarded_by = awarded_by
    card.updated_at = now

    balance = card.remaining_balance
    ledger_store.append_entry(
        db,
        card,
        transaction_type=GiftCardTransactionType.AWARD,
        amount=card.face_amount,
        actor_id=awarded_by,
        balance_before=balance,
        balance_after=balance,
        description=description,
        metadata={
            "recipient_id": recipient_id,
            "recipient_type": recipient_type.value,
        },
    )


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


async def issue_gift_card(
    db: AsyncSession,
    *,
    face_amount: Money,
    issuer_id: str,
    issuer_type: IssuerType,
    expiry_days: Optional[int] = None,
    message: Optional[str] = None,
    recipient_id: Optional[str] = None,
    recipient_type: Optional[RecipientType] = None,
    recipient_email: Optional[str] = None,
    payment: Optional[PaymentConfirmation] = None,
    is_admin_agent: bool = False,
) -> GiftCard:
    """Create an active card and its ``purchase`` entry in one unit.

    Booking-agent issuance is checked against the monthly limit while holding
    the agent-month lock. A supplied recipient is awarded in the same unit.
    """
    if not face_amount.is_positive:
        raise GiftCardValidationError(
            "Gift card amount must be positive", amount=str(face_amount.quantized())
        )
    days = _validate_expiry_days(expiry_days)
    if recipient_id and recipient_type is None:
        recipient_type = RecipientType.USER
    if payment is not None and payment.amount != face_amount:
        raise GiftCardValidationError(
            "Payment amount does not match gift card amount",
            amount=str(face_amount.quantized()),
            paid_amount=str(payment.amount.quantized()),
            payment_reference=payment.reference,
        )

    now = utc_now()
    async with ledger_store.ledger_unit(
        db, issuance_lock_key(issuer_id, now), advisory=True
    ):
        if issuer_type == IssuerType.BOOKING_AGENT:
            limit = await check_monthly_limit(
                db,
                agent_id=issuer_id,
                proposed_amount=face_amount,
                is_admin_agent=is_admin_agent,
                now=now,
            )
            if not limit.within_limit:
                raise MonthlyLimitExceededError(
                    "Monthly gift card limit exceeded",
                    current_month_total=str(limit.current_month_total.quantized()),
                    limit=str(limit.limit_amount.quantized()),
                    remaining=str(limit.remaining_amount.quantized()),
                    requested=str(face_amount.quantized()),
                    currency=face_amount.currency,
                )

        code = await generate_unique_code(db)
        card = GiftCard(
            id=uuid.uuid4(),
            code=code,
            face_amount_cents=face_amount.to_minor_units(),
            remaining_balance_cents=face_amount.to_minor_units(),
            currency=face_amount.currency,
            status=GiftCardStatus.ACTIVE,
            issuer_id=issuer_id,
            issuer_type=issuer_type,
            purchase_payment_method=payment.method if payment else ADMIN_CREATED_PAYMENT_METHOD,
            purchase_reference=payment.reference if payment else None,
            recipient_email=recipient_email,
            message=message,
            issued_at=now,
            expires_at=now + timedelta(days=days),
            created_at=now,
            updated_at=now,
        )
        db.add(card)
        await db.flush()

        ledger_store.append_entry(
            db,
            card,
            transaction_type=GiftCardTransactionType.PURCHASE,
            amount=face_amount,
            actor_id=issuer_id,
            balance_before=Money.zero(face_amount.currency),
            balance_after=face_amount,
            description="Gift card purchased",
            metadata={
                "issuer_type": issuer_type.value,
                "payment_method": card.purchase_payment_method,
                "payment_reference": card.purchase_reference,
            },
        )

        if recipient_id:
            _apply_award(
                db,
                card,
                recipient_id=recipient_id,
                recipient_type=recipient_type,
                recipient_email=recipient_email,
                awarded_by=issuer_id,
                now=now,
            )

    logger.info(
        "Issued gift card %s (%s) by %s %s amount=%s",
        card.code,
        card.id,
        issuer_type.value,
        issuer_id,
        face_amount,
    )
    return card


async def award_gift_card(
    db: AsyncSession,
    *,
    card_id: uuid.UUID,
    recipient_id: str,
    recipient_type: RecipientType,
    awarded_by: str,
    recipient_email: Optional[str] = None,
    is_operator: bool = False,
) -> GiftCard:
    """Assign spending rights on an unawarded active card.

    Only the issuer (or an operator) may award; other callers see NotFound.
    """
    async with ledger_store.ledger_unit(db, card_lock_key(card_id)):
        card = await ledger_store.get_card(db, card_id, for_update=True)
        if card is None or (not is_operator and card.issuer_id != awarded_by):
            raise GiftCardNotFoundError("Gift card not found", gift_card_id=str(card_id))
        if card.status != GiftCardStatus.ACTIVE:
            raise GiftCardNotActiveError(
                "Gift card is not active", status=card.status.value
            )
        if card.recipient_id:
            raise AlreadyAwardedError(
                "Gift card has already been awarded", recipient_id=card.recipient_id
            )
        _apply_award(
            db,
            card,
            recipient_id=recipient_id,
            recipient_type=recipient_type,
            recipient_email=recipient_email,
            awarded_by=awarded_by,
            now=utc_now(),
        )

    logger.info(
        "Awarded gift card %s to %s %s by %s",
        card.code,
        recipient_type.value,
        recipient_id,
        awarded_by,
    )
    return card


# ---------------------------------------------------------------------------
# Operator status changes
# ---------------------------------------------------------------------------


async def suspend_gift_card(
    db: AsyncSession,
    *,
    card_id: uuid.UUID,
    performed_by: str,
    reason: Optional[str] = None,
) -> GiftCard:
    async with ledger_store.ledger_unit(db, card_lock_key(card_id)):
        card = await _load_for_update(db, card_id)
        ensure_transition(card, GiftCardStatus.SUSPENDED)

        now = utc_now()
        old_status = card.status
        card.status = GiftCardStatus.SUSPENDED
        card.suspended_at = now
        card.suspended_by = performed_by
        card.suspension_reason = reason
        card.updated_at = now

        ledger_store.record_audit(
            db,
            action=AuditAction.SUSPEND,
            performed_by=performed_by,
            gift_card_id=card.id,
            old_value={"status": old_status.value},
            new_value={"status": card.status.value},
            reason=reason,
        )

    logger.info("Gift card %s suspended by %s", card.code, performed_by)
    return card


async def unsuspend_gift_card(
    db: AsyncSession,
    *,
    card_id: uuid.UUID,
    performed_by: str,
    reason: Optional[str] = None,
) -> GiftCard:
    """Lift a suspension. Cards already past ``expires_at`` become expired."""
    async with ledger_store.ledger_unit(db, card_lock_key(card_id)):
        card = await _load_for_update(db, card_id)
        if card.status != GiftCardStatus.SUSPENDED:
            if card.status in TERMINAL_STATUSES:
                raise ImmutableStateError(
                    f"Gift card is {card.status.value} and cannot change",
                    status=card.status.value,
                )
            raise GiftCardNotActiveError(
                "Gift card is not suspended", status=card.status.value
            )

        now = utc_now()
        target = (
            GiftCardStatus.EXPIRED
            if now > ensure_utc(card.expires_at)
            else GiftCardStatus.ACTIVE
        )
        card.status = target
        card.suspended_at = None
        card.suspended_by = None
        card.suspension_reason = None
        card.updated_at = now

        ledger_store.record_audit(
            db,
            action=AuditAction.UNSUSPEND,
            performed_by=performed_by,
            gift_card_id=card.id,
            old_value={"status": GiftCardStatus.SUSPENDED.value},
            new_value={"status": target.value},
            reason=reason,
        )

    logger.info(
        "Gift card %s unsuspended by %s (now %s)", card.code, performed_by, target.value
    )
    return card


async def cancel_gift_card(
    db: AsyncSession,
    *,
    card_id: uuid.UUID,
    performed_by: str,
    reason: Optional[str] = None,
) -> GiftCard:
    """Cancel a card. Cards are never deleted; cancellation is terminal."""
    async with ledger_store.ledger_unit(db, card_lock_key(card_id)):
        card = await _load_for_update(db, card_id)
        ensure_transition(card, GiftCardStatus.CANCELLED)

        old_status = card.status
        card.status = GiftCardStatus.CANCELLED
        card.updated_at = utc_now()

        ledger_store.record_audit(
            db,
            action=AuditAction.CANCEL,
            performed_by=performed_by,
            gift_card_id=card.id,
            old_value={"status": old_status.value},
            new_value={
                "status": card.status.value,
                "remaining_balance": str(card.remaining_balance.quantized()),
            },
            reason=reason,
        )

    logger.info("Gift card %s cancelled by %s", card.code, performed_by)
    return card


async def edit_gift_card_allocation(
    db: AsyncSession,
    *,
    card_id: uuid.UUID,
    performed_by: str,
    new_face_amount: Optional[Union[Money, AmountLike]] = None,
    new_recipient_id: Optional[str] = None,
    new_recipient_type: Optional[RecipientType] = None,
    new_recipient_email: Optional[str] = None,
    new_message: Optional[str] = None,
    unassign_recipient: bool = False,
    reason: Optional[str] = None,
) -> GiftCard:
    """Operator edit of amount, recipient or message.

    ``new_face_amount`` given as a bare amount is taken in the card's currency.
    The amount already spent is preserved: ``remaining = max(0, new_face - used)``
    where ``used`` is the sum of the card's ``redeem`` entries, so a balance
    floored at zero by an earlier edit never re-credits spent value.
    ``unassign_recipient`` clears the recipient and award fields. Status is left
    as it is.
    """
    if unassign_recipient and new_recipient_id:
        raise GiftCardValidationError(
            "Cannot assign and unassign a recipient in the same edit",
            recipient_id=new_recipient_id,
        )
    async with ledger_store.ledger_unit(db, card_lock_key(card_id)):
        card = await _load_for_update(db, card_id)
        if card.status in (GiftCardStatus.REDEEMED, GiftCardStatus.CANCELLED):
            raise ImmutableStateError(
                f"Cannot edit a {card.status.value} gift card",
                status=card.status.value,
            )

        now = utc_now()
        old_face = card.face_amount
        old_remaining = card.remaining_balance
        old_value = {
            "face_amount": str(old_face.quantized()),
            "remaining_balance": str(old_remaining.quantized()),
            "recipient_id": card.recipient_id,
            "message": card.message,
        }
        changes: list[str] = []

        if new_recipient_id and new_recipient_id != card.recipient_id:
            _apply_award(
                db,
                card,
                recipient_id=new_recipient_id,
                recipient_type=new_recipient_type or card.recipient_type or RecipientType.USER,
                recipient_email=new_recipient_email,
                awarded_by=performed_by,
                now=now,
                description="Gift card reassigned by admin",
            )
            changes.append(f"recipient -> {new_recipient_id}")
        elif unassign_recipient and card.recipient_id:
            changes.append(f"recipient {card.recipient_id} removed")
            card.recipient_id = None
            card.recipient_type = None
            card.recipient_email = None
            card.awarded_at = None
            card.awarded_by = None

        if new_face_amount is not None:
            if not isinstance(new_face_amount, Money):
                new_face_amount = Money(new_face_amount, card.currency)
            if not new_face_amount.is_positive:
                raise GiftCardValidationError(
                    "Gift card amount must be positive",
                    amount=str(new_face_amount.quantized()),
                )
            used = await ledger_store.total_redeemed(db, card)
            new_remaining = (new_face_amount - used).floor_zero()
            card.face_amount_cents = new_face_amount.to_minor_units()
            card.remaining_balance_cents = new_remaining.to_minor_units()
            changes.append(f"amount {old_face.quantized()} -> {new_face_amount.quantized()}")

        if new_message is not None and new_message != card.message:
            card.message = new_message
            changes.append("message updated")

        card.updated_at = now
        new_value = {
            "face_amount": str(card.face_amount.quantized()),
            "remaining_balance": str(card.remaining_balance.quantized()),
            "recipient_id": card.recipient_id,
            "message": card.message,
        }

        ledger_store.append_entry(
            db,
            card,
            transaction_type=GiftCardTransactionType.ADMIN_EDIT,
            amount=Money.zero(card.currency),
            actor_id=performed_by,
            balance_before=old_remaining,
            balance_after=card.remaining_balance,
            description="Admin edit: " + ("; ".join(changes) or "no changes"),
            metadata={"old": old_value, "new": new_value},
        )
        ledger_store.record_audit(
            db,
            action=AuditAction.EDIT_ALLOCATION,
            performed_by=performed_by,
            gift_card_id=card.id,
            old_value=old_value,
            new_value=new_value,
            reason=reason,
        )

    logger.info(
        "Gift card %s edited by %s: %s", card.code, performed_by, "; ".join(changes)
    )
    return card


async def update_admin_notes(
    db: AsyncSession,
    *,
    card_id: uuid.UUID,
    notes: Optional[str],
    performed_by: str,
) -> GiftCard:
    async with ledger_store.ledger_unit(db, card_lock_key(card_id)):
        card = await _load_for_update(db, card_id)
        old_notes = card.admin_notes
        card.admin_notes = notes
        card.updated_at = utc_now()
        ledger_store.record_audit(
            db,
            action=AuditAction.UPDATE_NOTES,
            performed_by=performed_by,
            gift_card_id=card.id,
            old_value={"admin_notes": old_notes},
            new_value={"admin_notes": notes},
        )

    logger.info("Admin notes updated on gift card %s by %s", card.code, performed_by)
    return card
