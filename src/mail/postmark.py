"""Postmark implementation of outbound mail."""

import asyncio
import logging

import requests

from src.api.errors import ConfigurationError, MailDeliveryError
from src.utils import timed_operation

from .base import MailDelivery

logger = logging.getLogger(__name__)

POSTMARK_API_URL = "https://api.postmarkapp.com/email"


class PostmarkMailer(MailDelivery):
    """
    Sends through Postmark's single-email endpoint.

    ``requests`` is blocking, so each call runs in a worker thread. Failed
    sends are never retried here.
    """

    provider_name = "postmark"

    def __init__(self, server_token: str, api_url: str = POSTMARK_API_URL, timeout: int = 15):
        if not server_token:
            raise ConfigurationError(
                "POSTMARK_SERVER_TOKEN not provided (set via environment or .env file)",
                setting="postmark_server_token",
            )
        self.server_token = server_token
        self.api_url = api_url
        self.timeout = timeout

    def _post(self, payload: dict) -> requests.Response:
        return requests.post(
            self.api_url,
            json=payload,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "X-Postmark-Server-Token": self.server_token,
            },
            timeout=self.timeout,
        )

    async def send(self, from_email: str, to_email: str, subject: str, body: str) -> str:
        payload = {
            "From": from_email,
            "To": to_email,
            "Subject": subject,
            "TextBody": body,
            "MessageStream": "outbound",
        }

        try:
            with timed_operation("postmark_send", to=to_email):
                response = await asyncio.to_thread(self._post, payload)
        except requests.RequestException as e:
            raise MailDeliveryError(f"Postmark request failed: {e}", provider="postmark") from e

        if response.status_code != 200:
            logger.error(f"Postmark rejected message to {to_email}: {response.text[:500]}")
            raise MailDeliveryError(
                f"Postmark returned {response.status_code}: {response.text[:200]}",
                provider="postmark",
                status=response.status_code,
            )

        try:
            message_id = response.json().get("MessageID")
        except requests.RequestException as e:
            raise MailDeliveryError("Postmark returned invalid JSON", provider="postmark") from e
        if not message_id:
            raise MailDeliveryError(
                "Postmark response did not include a MessageID", provider="postmark"
            )

        logger.info(f"Email sent via Postmark to {to_email}: {message_id}")
        return message_id


class LazyMailer(MailDelivery):
    """
    Defers building the real mailer until the first send, so a missing
    token only fails the operation that needs it.
    """

    def __init__(self, factory):
        self._factory = factory
        self._mailer = None

    @property
    def configured(self) -> bool:
        try:
            self._resolve()
        except ConfigurationError:
            return False
        return True

    def _resolve(self) -> MailDelivery:
        if self._mailer is None:
            self._mailer = self._factory()
        return self._mailer

    async def send(self, from_email: str, to_email: str, subject: str, body: str) -> str:
        return await self._resolve().send(from_email, to_email, subject, body)
