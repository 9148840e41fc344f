"""Tests for the Postmark mailer."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from src.api.errors import ConfigurationError, MailDeliveryError
from src.mail import LazyMailer, PostmarkMailer, extract_email_address, resolve_recipient


def _response(status_code: int = 200, payload=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload if payload is not None else {"MessageID": "pm-123"}
    return response


class TestRecipient:
    def test_extracts_bracketed_address(self):
        assert extract_email_address("Acme Billing <billing@acme.com>") == "billing@acme.com"

    def test_falls_back_to_vendor_address(self):
        assert resolve_recipient(None, "Acme Collections, Inc.") == "collections@acmecollectionsinc.com"

    def test_prefers_creditor_email(self):
        assert resolve_recipient("billing@acme.com", "Acme") == "billing@acme.com"


class TestPostmarkMailer:
    def test_requires_token(self):
        with pytest.raises(ConfigurationError):
            PostmarkMailer("")

    @pytest.mark.asyncio
    async def test_send_returns_message_id(self):
        mailer = PostmarkMailer("token-abc")

        with patch("src.mail.postmark.requests.post", return_value=_response()) as mock_post:
            message_id = await mailer.send(
                "owner@example.com", "billing@acme.com", "Settlement Offer", "Dear Acme"
            )

        assert message_id == "pm-123"
        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"]["X-Postmark-Server-Token"] == "token-abc"
        assert kwargs["json"]["MessageStream"] == "outbound"
        assert kwargs["json"]["To"] == "billing@acme.com"
        assert kwargs["json"]["TextBody"] == "Dear Acme"

    @pytest.mark.asyncio
    async def test_non_200_raises(self):
        mailer = PostmarkMailer("token-abc")

        with patch(
            "src.mail.postmark.requests.post",
            return_value=_response(422, text='{"ErrorCode": 300}'),
        ):
            with pytest.raises(MailDeliveryError) as exc_info:
                await mailer.send("a@x.com", "b@y.com", "s", "b")

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        mailer = PostmarkMailer("token-abc")

        with patch(
            "src.mail.postmark.requests.post",
            side_effect=requests.ConnectionError("connection refused"),
        ):
            with pytest.raises(MailDeliveryError):
                await mailer.send("a@x.com", "b@y.com", "s", "b")

    @pytest.mark.asyncio
    async def test_missing_message_id_raises(self):
        mailer = PostmarkMailer("token-abc")

        with patch("src.mail.postmark.requests.post", return_value=_response(payload={})):
            with pytest.raises(MailDeliveryError):
                await mailer.send("a@x.com", "b@y.com", "s", "b")


class TestLazyMailer:
    def test_unconfigured_token_reported(self):
        mailer = LazyMailer(lambda: PostmarkMailer(""))

        assert mailer.configured is False

    @pytest.mark.asyncio
    async def test_missing_token_fails_on_send(self):
        mailer = LazyMailer(lambda: PostmarkMailer(None))

        with pytest.raises(ConfigurationError):
            await mailer.send("a@x.com", "b@y.com", "s", "b")
