"""Outbound mail capability."""

import re
from abc import ABC, abstractmethod
from typing import Optional

ADDRESS_IN_BRACKETS = re.compile(r"<([^>]+)>")
BARE_ADDRESS = re.compile(r"([^\s<>]+@[^\s<>]+)")


class MailDelivery(ABC):
    """Sends a single plain-text email and returns the provider's message id."""

    provider_name: str = "mail"

    @abstractmethod
    async def send(self, from_email: str, to_email: str, subject: str, body: str) -> str:
        """Deliver the message or raise ``MailDeliveryError``."""


def extract_email_address(value: Optional[str]) -> Optional[str]:
    """Address from ``Name <addr>`` or the first bare address in the text."""
    if not value:
        return None
    match = ADDRESS_IN_BRACKETS.search(value) or BARE_ADDRESS.search(value)
    return match.group(1).strip() if match else None


def resolve_recipient(creditor_email: Optional[str], vendor: str) -> str:
    """Where to send a letter; falls back to a vendor-derived collections address."""
    address = extract_email_address(creditor_email)
    if address:
        return address
    domain = re.sub(r"[^a-z0-9]", "", vendor.lower()) or "unknown"
    return f"collections@{domain}.com"
