"""Gift Card Service models package.

Re-exports all models and enums so that Alembic's env.py and SQLAlchemy's
mapper registry see every model class on import.

When adding a new model, add both its import and its __all__ entry.
"""

from services.giftcard_service.models.enums import (  # noqa: F401
    TERMINAL_STATUSES,
    AuditAction,
    GiftCardStatus,
    GiftCardTransactionType,
    IssuerType,
    RecipientType,
)
from services.giftcard_service.models.gift_card import GiftCard  # noqa: F401
from services.giftcard_service.models.limits import (  # noqa: F401
    GiftCardAuditLog,
    GiftCardIssuanceLimit,
)
from services.giftcard_service.models.transaction import (  # noqa: F401
    GiftCardTransaction,
)

__all__ = [
    # Enums
    "AuditAction",
    "GiftCardStatus",
    "GiftCardTransactionType",
    "IssuerType",
    "RecipientType",
    "TERMINAL_STATUSES",
    # Models
    "GiftCard",
    "GiftCardTransaction",
    "GiftCardIssuanceLimit",
    "GiftCardAuditLog",
]
