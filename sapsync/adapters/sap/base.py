"""SAP Business One Service Layer client interface.

Concrete clients (session handling, HTTP transport) live outside this
package; the guard and the status model only depend on this contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class AbstractSAPClient(ABC):
    """Contract for SAP Business One Service Layer communication."""

    @abstractmethod
    def login(self) -> bool:
        """Open a Service Layer session."""
        ...

    @abstractmethod
    def logout(self) -> bool:
        ...

    @abstractmethod
    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET an entity or collection, e.g. ``Items('A001')``."""
        ...

    @abstractmethod
    def post(self, endpoint: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        ...

    @abstractmethod
    def patch(self, endpoint: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        ...

    @abstractmethod
    def delete(self, endpoint: str) -> bool:
        ...

    @abstractmethod
    def get_version(self) -> str:
        ...

    @abstractmethod
    def get_last_error(self) -> str | None:
        """Return the message of the last failed call, if any."""
        ...

    @abstractmethod
    def is_authenticated(self) -> bool:
        ...

    @abstractmethod
    def test_connection(self) -> dict[str, Any]:
        """Log in and report connectivity (``success``, ``message``, ``version``)."""
        ...
