"""Email notifier using the Resend API."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from riskaudit.config import EmailConfig

logger = logging.getLogger(__name__)


class Notifier(ABC):
    @abstractmethod
    async def send(
        self, recipient: str, subject: str, body: str, attachments: dict[str, bytes] | None = None,
    ) -> bool:
        ...


class EmailNotifier(Notifier):
    """Sends HTML email with optional attachments. Never raises on delivery failure."""

    def __init__(self, config: EmailConfig):
        self.config = config

    def _send_sync(self, recipient: str, subject: str, body: str, attachments: dict[str, bytes]) -> bool:
        if not self.config.resend_api_key:
            logger.warning("RESEND_API_KEY not set, email to %s not sent: %s", recipient, subject)
            return False

        import resend
        resend.api_key = self.config.resend_api_key

        params = {
            "from": self.config.from_address,
            "to": [recipient],
            "subject": subject,
            "html": body,
        }
        if attachments:
            params["attachments"] = [
                {"filename": name, "content": list(content)} for name, content in attachments.items()
            ]
        try:
            resend.Emails.send(params)
            logger.info("Email sent to %s: %s", recipient, subject)
            return True
        except Exception:
            logger.exception("Failed to send email to %s", recipient)
            return False

    async def send(
        self, recipient: str, subject: str, body: str, attachments: dict[str, bytes] | None = None,
    ) -> bool:
        """Send an email. Returns True if the provider accepted it."""
        return await asyncio.to_thread(self._send_sync, recipient, subject, body, attachments or {})
