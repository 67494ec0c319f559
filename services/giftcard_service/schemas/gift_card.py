"""Gift card request/response schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import ensure_utc
from pydantic import BaseModel, EmailStr, Field
from services.giftcard_service.models import GiftCard, GiftCardStatus, IssuerType, RecipientType

CURRENCY_PATTERN = r"^[A-Za-z]{3}$"


class PurchaseGiftCardRequest(BaseModel):
    """Booking agent purchase, backed by a confirmed provider payment."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str = Field("USD", pattern=CURRENCY_PATTERN)
    expiry_days: Optional[int] = Field(None, gt=0)
    message: Optional[str] = Field(None, max_length=1000)
    recipient_id: Optional[str] = None
    recipient_type: Optional[RecipientType] = None
    recipient_email: Optional[EmailStr] = None
    payment_method: str = Field(..., min_length=1)
    payment_reference: str = Field(..., min_length=1)
    paid_amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)


class AdminCreateGiftCardRequest(BaseModel):
    """Operator-created card. Not subject to monthly limits."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str = Field("USD", pattern=CURRENCY_PATTERN)
    expiry_days: Optional[int] = Field(None, gt=0)
    message: Optional[str] = Field(None, max_length=1000)
    recipient_id: Optional[str] = None
    recipient_type: Optional[RecipientType] = None
    recipient_email: Optional[EmailStr] = None


class AwardGiftCardRequest(BaseModel):
    gift_card_id: uuid.UUID
    recipient_id: str = Field(..., min_length=1)
    recipient_type: RecipientType = RecipientType.USER
    recipient_email: Optional[EmailStr] = None


class GiftCardResponse(BaseModel):
    id: uuid.UUID
    code: str
    amount: Decimal
    remaining_balance: Decimal
    currency: str
    status: GiftCardStatus
    issuer_id: str
    issuer_type: IssuerType
    recipient_id: Optional[str] = None
    recipient_type: Optional[RecipientType] = None
    recipient_email: Optional[str] = None
    message: Optional[str] = None
    issued_at: datetime
    expires_at: datetime
    awarded_at: Optional[datetime] = None
    redeemed_at: Optional[datetime] = None

    @classmethod
    def from_card(cls, card: GiftCard) -> "GiftCardResponse":
        return cls(**_card_fields(card))


class AdminGiftCardResponse(GiftCardResponse):
    purchase_payment_method: Optional[str] = None
    purchase_reference: Optional[str] = None
    awarded_by: Optional[str] = None
    redeemed_by: Optional[str] = None
    admin_notes: Optional[str] = None
    suspended_at: Optional[datetime] = None
    suspended_by: Optional[str] = None
    suspension_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_card(cls, card: GiftCard) -> "AdminGiftCardResponse":
        return cls(
            **_card_fields(card),
            purchase_payment_method=card.purchase_payment_method,
            purchase_reference=card.purchase_reference,
            awarded_by=card.awarded_by,
            redeemed_by=card.redeemed_by,
            admin_notes=card.admin_notes,
            suspended_at=_utc(card.suspended_at),
            suspended_by=card.suspended_by,
            suspension_reason=card.suspension_reason,
            created_at=ensure_utc(card.created_at),
            updated_at=ensure_utc(card.updated_at),
        )


class MyGiftCardsResponse(BaseModel):
    purchased: list[GiftCardResponse]
    received: list[GiftCardResponse]


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value is not None else None


def _card_fields(card: GiftCard) -> dict:
    return {
        "id": card.id,
        "code": card.code,
        "amount": card.face_amount.quantized(),
        "remaining_balance": card.remaining_balance.quantized(),
        "currency": card.currency,
        "status": card.status,
        "issuer_id": card.issuer_id,
        "issuer_type": card.issuer_type,
        "recipient_id": card.recipient_id,
        "recipient_type": card.recipient_type,
        "recipient_email": card.recipient_email,
        "message": card.message,
        "issued_at": ensure_utc(card.issued_at),
        "expires_at": ensure_utc(card.expires_at),
        "awarded_at": _utc(card.awarded_at),
        "redeemed_at": _utc(card.redeemed_at),
    }
