"""Redemption and payment schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field
from services.giftcard_service.models import GiftCardStatus
from services.giftcard_service.schemas.gift_card import CURRENCY_PATTERN
from services.giftcard_service.services.redemption import RedemptionResult


class RedeemGiftCardRequest(BaseModel):
    code: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str = Field("USD", pattern=CURRENCY_PATTERN)
    service_type: Optional[str] = None
    service_reference: Optional[str] = None
    description: Optional[str] = None


class PayWithGiftCardRequest(BaseModel):
    """Request from another service to pay for a purchase with a gift card."""

    code: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str = Field("USD", pattern=CURRENCY_PATTERN)
    payer_id: str = Field(..., min_length=1)
    service_type: str = Field(..., min_length=1)
    service_reference: str = Field(..., min_length=1)
    description: Optional[str] = None
    notify_email: Optional[str] = None


class RedemptionResponse(BaseModel):
    gift_card_id: uuid.UUID
    code: str
    amount: Decimal
    remaining_balance: Decimal
    currency: str
    status: GiftCardStatus
    service_type: Optional[str] = None
    service_reference: Optional[str] = None
    transaction_id: uuid.UUID
    redeemed_at: datetime
    replayed: bool = False

    @classmethod
    def from_result(cls, result: RedemptionResult) -> "RedemptionResponse":
        return cls(
            gift_card_id=result.gift_card_id,
            code=result.code,
            amount=result.amount.quantized(),
            remaining_balance=result.remaining_balance.quantized(),
            currency=result.amount.currency,
            status=result.status,
            service_type=result.service_type,
            service_reference=result.service_reference,
            transaction_id=result.transaction_id,
            redeemed_at=result.redeemed_at,
            replayed=result.replayed,
        )
