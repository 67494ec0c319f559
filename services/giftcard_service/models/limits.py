"""Per-agent issuance limits and operator audit trail."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.types import JSONDocument
from services.giftcard_service.models.enums import AuditAction, enum_values
from sqlalchemy import BigInteger, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class GiftCardIssuanceLimit(Base):
    """Override of the default monthly cap for one booking agent in one currency.

    0 = unlimited. Currencies without a row fall back to the default cap.
    """

    __tablename__ = "gift_card_issuance_limits"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    monthly_limit_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    updated_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("monthly_limit_cents >= 0", name="ck_issuance_limit_non_negative"),
        UniqueConstraint("agent_id", "currency", name="uq_issuance_limit_agent_currency"),
    )

    def __repr__(self) -> str:
        return f"<GiftCardIssuanceLimit {self.agent_id} {self.monthly_limit_cents} {self.currency}>"


class GiftCardAuditLog(Base):
    """Tracks operator actions on cards and agent limits."""

    __tablename__ = "gift_card_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    gift_card_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, nullable=True, index=True
    )
    action: Mapped[AuditAction] = mapped_column(
        SAEnum(
            AuditAction,
            name="gift_card_audit_action_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    performed_by: Mapped[str] = mapped_column(String, nullable=False)
    old_value: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)
    new_value: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<GiftCardAuditLog {self.id} {self.action.value}>"
