"""
Email package.

Services send notifications through the Communications Service using
``EmailClient`` (client.py); templates live in that service.
"""

from libs.common.emails.client import EmailClient, get_email_client

__all__ = ["EmailClient", "get_email_client"]
