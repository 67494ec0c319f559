"""
Test data helpers for the gift card service.

Cards are created through the real issuance path so every card starts with a
valid purchase entry; use ``backdate`` to move a card in time afterwards.

Usage:
    card = await issue_card(db_session, amount="50.00", recipient_id="user-1")
    headers = agent_headers("agent-1")
"""

import time
import uuid
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def unique_id(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def unique_email() -> str:
    return f"test-{uuid.uuid4().hex[:8]}@example.com"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def make_token(
    user_id: str,
    *,
    user_type: Optional[str] = "user",
    role: str = "authenticated",
    email: Optional[str] = None,
    is_admin_agent: bool = False,
) -> str:
    """Mint a Supabase-style HS256 token the service will accept."""
    now = int(time.time())
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": now + 3600,
        "aud": "authenticated",
        "app_metadata": {"user_type": user_type, "is_admin_agent": is_admin_agent},
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, get_settings().SUPABASE_JWT_SECRET, algorithm="HS256")


def auth_headers(user_id: str, **claims) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, **claims)}"}


def agent_headers(agent_id: str = "agent-1", **claims) -> dict:
    claims.setdefault("email", f"{agent_id}@example.com")
    return auth_headers(agent_id, user_type="booking_agent", **claims)


def admin_headers(admin_id: str = "admin-1") -> dict:
    return auth_headers(admin_id, user_type="admin_agent")


def service_headers(service: str = "subscriptions_service") -> dict:
    return auth_headers(f"service:{service}", user_type=None, role="service_role")


# ---------------------------------------------------------------------------
# Gift cards
# ---------------------------------------------------------------------------


async def issue_card(
    db,
    *,
    amount: str = "50.00",
    currency: str = "USD",
    issuer_id: str = "agent-1",
    issuer_type=None,
    recipient_id: Optional[str] = None,
    recipient_email: Optional[str] = None,
    expiry_days: Optional[int] = None,
    message: Optional[str] = None,
):
    """Issue an active card through ``issue_gift_card`` and return it."""
    from services.giftcard_service.models import IssuerType
    from services.giftcard_service.money import Money
    from services.giftcard_service.services.lifecycle import issue_gift_card

    return await issue_gift_card(
        db,
        face_amount=Money(amount, currency),
        issuer_id=issuer_id,
        issuer_type=issuer_type or IssuerType.BOOKING_AGENT,
        expiry_days=expiry_days,
        message=message,
        recipient_id=recipient_id,
        recipient_email=recipient_email,
    )


async def backdate(
    db,
    card,
    *,
    issued_at: Optional[datetime] = None,
    expires_at: Optional[datetime] = None,
):
    """Move a card's issue or expiry timestamp, committing the change."""
    if issued_at is not None:
        card.issued_at = issued_at
    if expires_at is not None:
        card.expires_at = expires_at
    await db.commit()
    await db.refresh(card)
    return card


def seconds_from_now(seconds: float) -> datetime:
    return utc_now() + timedelta(seconds=seconds)
