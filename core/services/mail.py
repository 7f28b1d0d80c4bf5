"""
Transactional email via the SendGrid v3 HTTP API.

Single place that talks to SendGrid. Transient failures (network errors,
429, 5xx) are retried with tenacity; other 4xx responses are permanent.
"""

import html
import os

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.logging import get_logger, sanitize_string_for_logging

logger = get_logger(__name__)

SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"
SENDGRID_API_KEY = os.environ.get("SENDGRID_API_KEY", "")
EMAIL_FROM = os.environ.get("EMAIL_FROM", "")

REQUEST_TIMEOUT = 10.0
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

ABANDONED_CART_SUBJECT = "We saved the items in your cart! 🛒"

ABANDONED_CART_TEMPLATE = """
      <p>Hi {name},</p>

      <p>We noticed you left a few things behind! We've kept your selection safe in your cart so you can pick up exactly where you left off.</p>

      <p>Whether you were interrupted or just needed a moment to think it over, we're here to help if you have any questions.</p>

      <p style="margin:20px 0;">
        <a href="{cart_url}"
           style="background:#000;color:#fff;padding:12px 18px;
           text-decoration:none;border-radius:6px;">
          View Your Cart & Checkout
        </a>
      </p>

      <p>Thanks for shopping with us!</p>
      <p><strong>The Brand Name Team</strong></p>
"""


class MailDeliveryError(Exception):
    """SendGrid rejected the message."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientMailError(MailDeliveryError):
    """Failure worth retrying (rate limit or SendGrid outage)."""


def render_abandoned_cart_email(customer_name: str, cart_url: str) -> str:
    return ABANDONED_CART_TEMPLATE.format(
        name=html.escape(customer_name),
        cart_url=html.escape(cart_url, quote=True),
    )


class MailService:
    """SendGrid client.

    Owns an httpx.AsyncClient unless one is injected; call `aclose()` on
    shutdown when the service created its own client.
    """

    def __init__(
        self,
        api_key: str | None = None,
        sender: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else SENDGRID_API_KEY
        self.sender = sender if sender is not None else EMAIL_FROM
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((TransientMailError, httpx.TransportError)),
        reraise=True,
    )
    async def _post(self, payload: dict) -> httpx.Response:
        response = await self._client.post(
            SENDGRID_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientMailError(
                f"SendGrid returned {response.status_code}", response.status_code
            )
        if response.status_code >= 400:
            raise MailDeliveryError(
                f"SendGrid rejected message: {response.status_code} {response.text[:200]}",
                response.status_code,
            )
        return response

    async def send_email(self, to: str, subject: str, html_body: str) -> httpx.Response:
        """Send one HTML email. Raises on failure after retries."""
        if not self.api_key or not self.sender:
            raise MailDeliveryError("SENDGRID_API_KEY and EMAIL_FROM must be set")

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.sender},
            "subject": subject,
            "content": [{"type": "text/html", "value": html_body}],
        }
        safe_to = sanitize_string_for_logging(to)
        try:
            response = await self._post(payload)
        except Exception:
            logger.error("Failed to send email to %s", safe_to, exc_info=True)
            raise
        logger.info("Email sent to %s", safe_to)
        return response

    async def send_abandoned_cart_email(
        self, to: str, customer_name: str, cart_url: str
    ) -> httpx.Response:
        return await self.send_email(
            to, ABANDONED_CART_SUBJECT, render_abandoned_cart_email(customer_name, cart_url)
        )
