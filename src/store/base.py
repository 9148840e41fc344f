"""Record store capability used by the negotiation service."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from src.api.models.domain import AuditLogEntry, ConversationMessage, Debt, Variable

RecordT = TypeVar("RecordT", bound=BaseModel)

DEBTS = "debts"
MESSAGES = "messages"
VARIABLES = "variables"
AUDIT_LOGS = "audit_logs"

COLLECTION_MODELS: Dict[str, Type[BaseModel]] = {
    DEBTS: Debt,
    MESSAGES: ConversationMessage,
    VARIABLES: Variable,
    AUDIT_LOGS: AuditLogEntry,
}

# Only variables may be deleted; everything else is append/update only
DELETABLE_COLLECTIONS = (VARIABLES,)


class RecordStore(ABC):
    """
    Persistence for debts, messages, variables and audit entries.

    ``update`` is conditional when ``expected_version`` is given: it raises
    ``ConcurrencyConflictError`` if the stored version differs, and every
    successful update bumps the version by one. Records returned are copies;
    mutating them has no effect until passed back to ``update``.
    """

    @abstractmethod
    def get(self, collection: str, record_id: str) -> BaseModel:
        """Return a record or raise ``RecordNotFoundError``."""

    @abstractmethod
    def insert(self, collection: str, record: RecordT) -> RecordT:
        """Store a new record; raises ``DuplicateRecordError`` on unique-key clashes."""

    @abstractmethod
    def update(
        self,
        collection: str,
        record_id: str,
        patch: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> BaseModel:
        """Apply ``patch`` and return the stored record."""

    @abstractmethod
    def list_by(self, collection: str, **filters: Any) -> List[BaseModel]:
        """Records whose attributes equal every filter, oldest first."""

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> None:
        """Remove a record from a deletable collection."""

    def append_audit(self, entry: AuditLogEntry) -> AuditLogEntry:
        return self.insert(AUDIT_LOGS, entry)

    def get_debt(self, debt_id: str) -> Debt:
        return self.get(DEBTS, debt_id)
