"""Enums for the Gift Card Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class GiftCardStatus(str, enum.Enum):
    ACTIVE = "active"
    REDEEMED = "redeemed"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset(
    {GiftCardStatus.REDEEMED, GiftCardStatus.CANCELLED, GiftCardStatus.EXPIRED}
)


class IssuerType(str, enum.Enum):
    BOOKING_AGENT = "booking_agent"
    ADMIN_AGENT = "admin_agent"
    PLATFORM = "platform"


class RecipientType(str, enum.Enum):
    USER = "user"
    VENUE = "venue"
    STUDIO = "studio"
    BAND = "band"


class GiftCardTransactionType(str, enum.Enum):
    PURCHASE = "purchase"
    AWARD = "award"
    REDEEM = "redeem"
    ADMIN_EDIT = "admin_edit"


class AuditAction(str, enum.Enum):
    SUSPEND = "suspend"
    UNSUSPEND = "unsuspend"
    CANCEL = "cancel"
    EDIT_ALLOCATION = "edit_allocation"
    UPDATE_NOTES = "update_notes"
    SET_MONTHLY_LIMIT = "set_monthly_limit"
