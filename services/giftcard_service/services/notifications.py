"""Post-commit email notifications for gift card events.

Routers schedule these on FastAPI ``BackgroundTasks`` after the ledger
mutation has committed. Delivery failures are logged and never propagate, so
they cannot undo or fail the request that triggered them.
"""

from typing import Any, Optional

from fastapi import BackgroundTasks
from libs.common.config import get_settings
from libs.common.emails.client import get_email_client
from libs.common.logging import get_logger
from services.giftcard_service.models import GiftCard
from services.giftcard_service.services.redemption import RedemptionResult

logger = get_logger(__name__)


async def send_gift_card_email(
    template_type: str, to_email: str, template_data: dict[str, Any]
) -> bool:
    if not get_settings().GIFT_CARD_NOTIFICATIONS_ENABLED:
        return False
    try:
        sent = await get_email_client().send_template(
            template_type=template_type,
            to_email=to_email,
            template_data=template_data,
        )
    except Exception as e:
        logger.error("Gift card email %s to %s failed: %s", template_type, to_email, e)
        return False
    if not sent:
        logger.warning("Gift card email %s to %s was not sent", template_type, to_email)
    return sent


def _card_data(card: GiftCard) -> dict[str, Any]:
    return {
        "code": card.code,
        "amount": str(card.face_amount.quantized()),
        "remaining_balance": str(card.remaining_balance.quantized()),
        "currency": card.currency,
        "expires_at": card.expires_at.isoformat(),
        "message": card.message,
    }


def notify_gift_card_issued(
    background_tasks: BackgroundTasks, card: GiftCard, issuer_email: Optional[str]
) -> None:
    if issuer_email:
        background_tasks.add_task(
            send_gift_card_email, "gift_card_issued", issuer_email, _card_data(card)
        )
    if card.recipient_id and card.recipient_email:
        notify_gift_card_awarded(background_tasks, card)


def notify_gift_card_awarded(background_tasks: BackgroundTasks, card: GiftCard) -> None:
    if not card.recipient_email:
        return
    background_tasks.add_task(
        send_gift_card_email, "gift_card_awarded", card.recipient_email, _card_data(card)
    )


def notify_gift_card_redeemed(
    background_tasks: BackgroundTasks,
    result: RedemptionResult,
    to_email: Optional[str],
) -> None:
    if not to_email or result.replayed:
        return
    background_tasks.add_task(
        send_gift_card_email,
        "gift_card_redeemed",
        to_email,
        {
            "code": result.code,
            "amount": str(result.amount.quantized()),
            "remaining_balance": str(result.remaining_balance.quantized()),
            "currency": result.amount.currency,
            "status": result.status.value,
            "service_type": result.service_type,
        },
    )
