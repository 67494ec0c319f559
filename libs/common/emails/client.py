"""
Email client for service-to-service notification delivery.

Gift card notifications are rendered and sent by the Communications Service.
This client forwards the template type and data to its API, authenticating
with a short-lived service-role JWT.

Usage:
    from libs.common.emails.client import get_email_client

    email_client = get_email_client()

    await email_client.send_template(
        template_type="gift_card_awarded",
        to_email="user@example.com",
        template_data={"code": "GC-ABC123-DEF456", "amount": "25.00"},
    )
"""

from typing import Any, Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


class EmailClient:
    """
    HTTP client for sending templated emails through the Communications Service.

    Callers treat every failure as non-fatal: ``send_template`` returns False
    instead of raising when the API rejects the request or is unreachable.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: float = 10.0):
        settings = get_settings()
        self.base_url = (base_url or settings.COMMUNICATIONS_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    def _get_auth_headers(self) -> dict[str, str]:
        from libs.auth.dependencies import _service_role_jwt

        token = _service_role_jwt("giftcard_service")
        return {"Authorization": f"Bearer {token}"}

    async def send_template(
        self,
        template_type: str,
        to_email: str,
        template_data: dict[str, Any],
    ) -> bool:
        """
        Send a templated email.

        Template types used by the gift card service:
        - gift_card_issued: receipt for the issuer
        - gift_card_awarded: a card was assigned to the recipient
        - gift_card_redeemed: balance was spent

        Returns:
            True if the Communications Service accepted the email, False otherwise
        """
        payload = {
            "template_type": template_type,
            "to_email": to_email,
            "template_data": template_data,
        }

        try:
            headers = self._get_auth_headers()
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/email/template",
                    json=payload,
                    headers=headers,
                )
                if response.status_code == 200:
                    result = response.json()
                    return bool(result.get("success", False))
                logger.error(
                    "Template email API returned %s: %s",
                    response.status_code,
                    response.text,
                )
                return False
        except httpx.RequestError as e:
            logger.error("Failed to connect to Communications Service: %s", e)
            return False


# Singleton instance for convenience
_email_client: Optional[EmailClient] = None


def get_email_client() -> EmailClient:
    """Get or create the singleton EmailClient instance."""
    global _email_client
    if _email_client is None:
        _email_client = EmailClient()
    return _email_client
