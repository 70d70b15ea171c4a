"""Dead letter store interface."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass
class DeadLetterRecord:
    """A queue event that exhausted its retry budget.

    Invariant: total_attempts == len(error_history). Only operator actions
    flip ``resolved``; records are never deleted by the service.
    """

    original_event_id: int
    event_type: str
    event_source: str
    payload: dict[str, Any]
    error_history: list[str]
    total_attempts: int
    created_at: datetime
    resolved: bool = False
    resolved_at: datetime | None = None
    resolution_note: str | None = None
    generation: int = 0
    last_event_id: int | None = None
    id: int | None = None

    @property
    def last_error(self) -> str | None:
        return self.error_history[-1] if self.error_history else None

    def error_history_json(self) -> str:
        """Serialized error history, oldest first."""
        return json.dumps(self.error_history)


class AbstractDeadLetterStore(ABC):
    """Persistent store of dead letter records."""

    @abstractmethod
    def add(self, record: DeadLetterRecord) -> DeadLetterRecord:
        """Insert record and assign its id."""
        raise NotImplementedError

    @abstractmethod
    def get(self, dead_letter_id: int) -> DeadLetterRecord | None:
        raise NotImplementedError

    @abstractmethod
    def get_by_event_id(self, event_id: int) -> DeadLetterRecord | None:
        raise NotImplementedError

    @abstractmethod
    def save(self, record: DeadLetterRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_unresolved(self, limit: int = 20) -> list[DeadLetterRecord]:
        """Return unresolved records, newest first."""
        raise NotImplementedError

    @abstractmethod
    def count_unresolved(self) -> int:
        raise NotImplementedError
