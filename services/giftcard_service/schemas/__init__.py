"""Gift Card Service schemas package.

Re-exports all schemas so routers import from one place.
When adding a new schema, add its import and __all__ entry.
"""

from services.giftcard_service.schemas.admin import (  # noqa: F401
    EditGiftCardRequest,
    MonthlyLimitSettingResponse,
    SetMonthlyLimitRequest,
    SuspendGiftCardRequest,
    UnsuspendGiftCardRequest,
    UpdateNotesRequest,
)
from services.giftcard_service.schemas.gift_card import (  # noqa: F401
    AdminCreateGiftCardRequest,
    AdminGiftCardResponse,
    AwardGiftCardRequest,
    GiftCardResponse,
    MyGiftCardsResponse,
    PurchaseGiftCardRequest,
)
from services.giftcard_service.schemas.redemption import (  # noqa: F401
    PayWithGiftCardRequest,
    RedeemGiftCardRequest,
    RedemptionResponse,
)
from services.giftcard_service.schemas.reporting import (  # noqa: F401
    AgentCardsResponse,
    AgentStatsListResponse,
    AgentStatsResponse,
    BalanceResponse,
    CardHistoryResponse,
    CurrencyBalanceResponse,
    HistoryResponse,
    HistorySummaryResponse,
    LedgerResponse,
    LedgerSummaryResponse,
    MonthlyLimitResponse,
    MonthlySummaryListResponse,
    MonthlySummaryResponse,
    ReconciliationResponse,
)
from services.giftcard_service.schemas.transaction import (  # noqa: F401
    ActivityItemResponse,
    ActivityResponse,
    TransactionListResponse,
    TransactionResponse,
)

__all__ = [
    # Admin
    "EditGiftCardRequest",
    "MonthlyLimitSettingResponse",
    "SetMonthlyLimitRequest",
    "SuspendGiftCardRequest",
    "UnsuspendGiftCardRequest",
    "UpdateNotesRequest",
    # Gift cards
    "AdminCreateGiftCardRequest",
    "AdminGiftCardResponse",
    "AwardGiftCardRequest",
    "GiftCardResponse",
    "MyGiftCardsResponse",
    "PurchaseGiftCardRequest",
    # Redemption
    "PayWithGiftCardRequest",
    "RedeemGiftCardRequest",
    "RedemptionResponse",
    # Reporting
    "AgentCardsResponse",
    "AgentStatsListResponse",
    "AgentStatsResponse",
    "BalanceResponse",
    "CardHistoryResponse",
    "CurrencyBalanceResponse",
    "HistoryResponse",
    "HistorySummaryResponse",
    "LedgerResponse",
    "LedgerSummaryResponse",
    "MonthlyLimitResponse",
    "MonthlySummaryListResponse",
    "MonthlySummaryResponse",
    "ReconciliationResponse",
    # Transactions
    "ActivityItemResponse",
    "ActivityResponse",
    "TransactionListResponse",
    "TransactionResponse",
]
