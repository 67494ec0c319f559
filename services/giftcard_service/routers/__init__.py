"""Gift card service routers."""

from services.giftcard_service.routers.admin import router as admin_router
from services.giftcard_service.routers.internal import router as internal_router
from services.giftcard_service.routers.member import router as gift_cards_router

__all__ = [
    "admin_router",
    "gift_cards_router",
    "internal_router",
]
