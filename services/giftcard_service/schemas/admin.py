"""Admin gift card request schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field
from services.giftcard_service.models import RecipientType
from services.giftcard_service.schemas.gift_card import CURRENCY_PATTERN


class SuspendGiftCardRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class UnsuspendGiftCardRequest(BaseModel):
    reason: Optional[str] = None


class UpdateNotesRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=5000)


class EditGiftCardRequest(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    recipient_id: Optional[str] = None
    recipient_type: Optional[RecipientType] = None
    recipient_email: Optional[EmailStr] = None
    message: Optional[str] = Field(None, max_length=1000)
    reason: Optional[str] = None


class SetMonthlyLimitRequest(BaseModel):
    """``monthly_limit`` of 0 makes the agent unlimited."""

    monthly_limit: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    currency: str = Field("USD", pattern=CURRENCY_PATTERN)
    reason: Optional[str] = None


class MonthlyLimitSettingResponse(BaseModel):
    agent_id: str
    monthly_limit: Decimal
    currency: str
    is_unlimited: bool
