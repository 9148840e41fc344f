"""Record store capability and implementations."""

from .base import AUDIT_LOGS, DEBTS, MESSAGES, VARIABLES, RecordStore
from .memory import InMemoryRecordStore

__all__ = ["AUDIT_LOGS", "DEBTS", "MESSAGES", "VARIABLES", "RecordStore", "InMemoryRecordStore"]
