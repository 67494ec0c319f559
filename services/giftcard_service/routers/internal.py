"""Internal service-to-service gift card endpoints.

Called by other services (e.g. subscriptions) via service-role JWT, not by
frontend clients directly.
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from libs.auth.dependencies import require_service_role
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.giftcard_service.money import Money
from services.giftcard_service.schemas import PayWithGiftCardRequest, RedemptionResponse
from services.giftcard_service.services import notifications
from services.giftcard_service.services.redemption import pay_with_gift_card
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/internal/gift-cards", tags=["internal-gift-cards"])


@router.post("/pay", response_model=RedemptionResponse)
async def internal_pay_with_gift_card(
    body: PayWithGiftCardRequest,
    background_tasks: BackgroundTasks,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Debit a gift card for a purchase. Safe to retry with the same reference."""
    result = await pay_with_gift_card(
        db,
        code=body.code,
        amount=Money(body.amount, body.currency),
        payer_id=body.payer_id,
        service_type=body.service_type,
        service_reference=body.service_reference,
        description=body.description,
    )
    notifications.notify_gift_card_redeemed(background_tasks, result, body.notify_email)
    return RedemptionResponse.from_result(result)
