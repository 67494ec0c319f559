"""Ledger entry schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import ensure_utc
from pydantic import BaseModel
from services.giftcard_service.models import GiftCardTransaction, GiftCardTransactionType


class TransactionResponse(BaseModel):
    id: uuid.UUID
    gift_card_id: uuid.UUID
    transaction_type: GiftCardTransactionType
    amount: Decimal
    currency: str
    balance_before: Decimal
    balance_after: Decimal
    actor_id: str
    service_type: Optional[str] = None
    service_reference: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: GiftCardTransaction) -> "TransactionResponse":
        return cls(
            id=entry.id,
            gift_card_id=entry.gift_card_id,
            transaction_type=entry.transaction_type,
            amount=entry.amount.quantized(),
            currency=entry.currency,
            balance_before=entry.balance_before.quantized(),
            balance_after=entry.balance_after.quantized(),
            actor_id=entry.actor_id,
            service_type=entry.service_type,
            service_reference=entry.service_reference,
            description=entry.description,
            created_at=ensure_utc(entry.created_at),
        )


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int


class ActivityItemResponse(TransactionResponse):
    gift_card_code: str


class ActivityResponse(BaseModel):
    transactions: list[ActivityItemResponse]
    user_type: Optional[str] = None
