"""GiftCard model."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.giftcard_service.models.enums import (
    GiftCardStatus,
    IssuerType,
    RecipientType,
    enum_values,
)
from services.giftcard_service.money import Money
from sqlalchemy import BigInteger, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class GiftCard(Base):
    """A stored-value card. ``remaining_balance_cents`` is a cache of the ledger."""

    __tablename__ = "gift_cards"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(16), unique=True, index=True, nullable=False)

    # Amounts in cents
    face_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    remaining_balance_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    status: Mapped[GiftCardStatus] = mapped_column(
        SAEnum(
            GiftCardStatus,
            name="gift_card_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=GiftCardStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    # Issuer
    issuer_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    issuer_type: Mapped[IssuerType] = mapped_column(
        SAEnum(
            IssuerType,
            name="gift_card_issuer_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    purchase_payment_method: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    purchase_reference: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Recipient (null until awarded)
    recipient_id: Mapped[Optional[str]] = mapped_column(String, index=True, nullable=True)
    recipient_type: Mapped[Optional[RecipientType]] = mapped_column(
        SAEnum(
            RecipientType,
            name="gift_card_recipient_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=True,
    )
    recipient_email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    awarded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    awarded_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Last debit
    redeemed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    redeemed_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    suspended_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    suspended_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    suspension_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("face_amount_cents > 0", name="ck_gift_card_face_positive"),
        CheckConstraint(
            "remaining_balance_cents >= 0", name="ck_gift_card_remaining_non_negative"
        ),
        CheckConstraint(
            "remaining_balance_cents <= face_amount_cents",
            name="ck_gift_card_remaining_lte_face",
        ),
        Index("ix_gift_cards_issuer_issued", "issuer_id", "issued_at"),
    )

    @property
    def face_amount(self) -> Money:
        return Money.from_minor_units(self.face_amount_cents, self.currency)

    @property
    def remaining_balance(self) -> Money:
        return Money.from_minor_units(self.remaining_balance_cents, self.currency)

    @property
    def used_amount(self) -> Money:
        return Money.from_minor_units(
            self.face_amount_cents - self.remaining_balance_cents, self.currency
        )

    def __repr__(self) -> str:
        return f"<GiftCard {self.code} {self.status.value} {self.remaining_balance_cents}/{self.face_amount_cents}>"
