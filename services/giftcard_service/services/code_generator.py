"""Human-presentable gift card codes: ``GC-XXXXXX-XXXXXX`` over ``A-Z0-9``."""

import re
import secrets
import string
from typing import Callable, Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.giftcard_service.errors import CodeGenerationExhaustedError
from services.giftcard_service.models import GiftCard
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_PREFIX = "GC"
CODE_GROUP_LENGTH = 6
CODE_PATTERN = re.compile(r"^GC-[A-Z0-9]{6}-[A-Z0-9]{6}$")


def generate_code() -> str:
    groups = [
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_GROUP_LENGTH))
        for _ in range(2)
    ]
    return "-".join([CODE_PREFIX, *groups])


def normalize_code(code: str) -> str:
    """Codes are matched case-insensitively and stored upper-case."""
    return (code or "").strip().upper()


async def generate_unique_code(
    db: AsyncSession,
    *,
    attempts: Optional[int] = None,
    generator: Callable[[], str] = generate_code,
) -> str:
    """Return a code not yet used by any card.

    Raises ``CodeGenerationExhaustedError`` after ``attempts`` collisions.
    """
    max_attempts = attempts or get_settings().GIFT_CARD_CODE_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        code = generator()
        result = await db.execute(select(GiftCard.id).where(GiftCard.code == code))
        if result.scalar_one_or_none() is None:
            return code
        logger.warning("Gift card code collision on attempt %d", attempt)
    raise CodeGenerationExhaustedError(
        "Could not generate a unique gift card code", attempts=max_attempts
    )
