"""HTTP client for the outbound email API."""

from typing import Optional

import httpx

from storefront.core.logging_config import get_logger
from storefront.errors import NotificationError

logger = get_logger(__name__)


class NotificationClient:
    """POSTs ``{to, subject, html}`` to the notification endpoint with bearer auth."""

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url and self.api_key)

    def send_email(self, to: str, subject: str, html: str) -> None:
        if not self.configured:
            raise NotificationError("Notification API is not configured")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    self.url, json={"to": to, "subject": subject, "html": html}, headers=headers
                )
        except httpx.HTTPError as exc:
            raise NotificationError(f"Notification request failed: {exc}") from exc

        if response.status_code >= 400:
            raise NotificationError(
                f"Notification API returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        logger.debug(
            "Email accepted by notification API",
            extra={"extra_fields": {"to": to, "subject": subject, "status_code": response.status_code}},
        )
