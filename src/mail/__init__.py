"""Outbound mail delivery."""

from .base import MailDelivery, extract_email_address, resolve_recipient
from .postmark import LazyMailer, PostmarkMailer

__all__ = [
    "LazyMailer",
    "MailDelivery",
    "PostmarkMailer",
    "extract_email_address",
    "resolve_recipient",
]
