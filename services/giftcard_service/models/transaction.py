"""GiftCardTransaction model — append-only ledger."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.types import JSONDocument
from services.giftcard_service.models.enums import GiftCardTransactionType, enum_values
from services.giftcard_service.money import Money
from sqlalchemy import BigInteger, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class GiftCardTransaction(Base):
    """Immutable record of one value-moving event against a card."""

    __tablename__ = "gift_card_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    gift_card_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("gift_cards.id"), nullable=False, index=True
    )
    transaction_type: Mapped[GiftCardTransactionType] = mapped_column(
        SAEnum(
            GiftCardTransactionType,
            name="gift_card_transaction_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    balance_before_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    actor_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    service_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    service_reference: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    idempotency_key: Mapped[Optional[str]] = mapped_column(
        String, unique=True, index=True, nullable=True
    )
    entry_metadata: Mapped[Optional[dict]] = mapped_column(
        "entry_metadata", JSONDocument, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_gift_card_txn_amount_non_negative"),
        Index("ix_gift_card_transactions_card_created", "gift_card_id", "created_at"),
    )

    @property
    def amount(self) -> Money:
        return Money.from_minor_units(self.amount_cents, self.currency)

    @property
    def balance_before(self) -> Money:
        return Money.from_minor_units(self.balance_before_cents, self.currency)

    @property
    def balance_after(self) -> Money:
        return Money.from_minor_units(self.balance_after_cents, self.currency)

    def __repr__(self) -> str:
        return f"<GiftCardTransaction {self.id} {self.transaction_type.value} {self.amount_cents}>"
