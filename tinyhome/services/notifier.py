"""
Transactional email delivery.

SendGridNotifier calls the v3 Mail Send API directly with httpx. When no
API key is configured the DisabledNotifier is used and bookings are
confirmed without email.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from jinja2 import Environment, PackageLoader, StrictUndefined

from ..exceptions import NotifyError

logger = logging.getLogger(__name__)

SENDGRID_API_BASE = "https://api.sendgrid.com"

_TEMPLATES = Environment(
    loader=PackageLoader("tinyhome", "templates"),
    autoescape=False,
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)


def render_template(name: str, **context) -> str:
    return _TEMPLATES.get_template(name).render(**context)


class Notifier(ABC):
    enabled = True

    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> None:
        """Deliver a plain-text email; raise NotifyError on failure."""


class DisabledNotifier(Notifier):
    enabled = False

    def send(self, to: str, subject: str, body: str) -> None:
        logger.warning(f"Email delivery not configured, dropping message to {to}: {subject}")


class SendGridNotifier(Notifier):

    def __init__(
        self,
        api_key: str,
        from_email: str,
        timeout: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout
        self.transport = transport

    def send(self, to: str, subject: str, body: str) -> None:
        if not to:
            raise NotifyError("No recipient address")

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": [{"type": "text/plain", "value": body}],
        }
        try:
            with httpx.Client(base_url=SENDGRID_API_BASE, timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    "/v3/mail/send",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as e:
            raise NotifyError(f"SendGrid request failed: {e}") from e

        if response.status_code >= 300:
            raise NotifyError(f"SendGrid rejected the message (HTTP {response.status_code}): {response.text[:300]}")


def build_notifier(api_key: str, from_email: str, timeout: float = 20.0) -> Notifier:
    if not api_key:
        logger.warning("SENDGRID_API_KEY not set: confirmation emails will not be sent")
        return DisabledNotifier()
    return SendGridNotifier(api_key, from_email, timeout=timeout)
