"""Sync and queue status taxonomy.

Each status family is a closed enumeration. Classification works on the
string value, so ``ProductSyncStatus.PENDING`` and ``QueueStatus.PENDING``
classify the same way, and raw strings read back from a store can be passed
directly.
"""

from __future__ import annotations

from enum import Enum

from sapsync.core.errors import InvalidStatus


class ProductSyncStatus(str, Enum):
    """Sync state of a product (and the generic entity states)."""

    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"
    UNMAPPED = "unmapped"


class OrderSyncStatus(str, Enum):
    """Sync state of an order along the SAP document chain."""

    SO_CREATED = "so_created"
    DP_CREATED = "dp_created"
    DELIVERED = "delivered"
    INVOICED = "invoiced"
    CANCELED = "canceled"
    FAILED = "failed"


class QueueStatus(str, Enum):
    """Lifecycle state of a queue event."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DEAD = "dead"


class SyncDirection(str, Enum):
    SAP_TO_WC = "sap_to_wc"
    WC_TO_SAP = "wc_to_sap"


class EntityType(str, Enum):
    """Entity types recorded in the sync log."""

    PRODUCT = "product"
    ORDER = "order"
    CUSTOMER = "customer"
    INVENTORY = "inventory"
    SYSTEM = "system"
    API = "api"
    QUEUE = "queue"


class LogLevel(str, Enum):
    """Outcome recorded on a sync log entry."""

    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    DEBUG = "debug"


StatusValue = ProductSyncStatus | OrderSyncStatus | QueueStatus | str

STATUS_FAMILIES: tuple[type[Enum], ...] = (ProductSyncStatus, OrderSyncStatus, QueueStatus)

KNOWN_STATUSES: frozenset[str] = frozenset(
    member.value for family in STATUS_FAMILIES for member in family
)

ORDER_SYNCED_STATUSES: frozenset[str] = frozenset(
    {
        ProductSyncStatus.SYNCED.value,
        OrderSyncStatus.SO_CREATED.value,
        OrderSyncStatus.DP_CREATED.value,
        OrderSyncStatus.DELIVERED.value,
        OrderSyncStatus.INVOICED.value,
        OrderSyncStatus.CANCELED.value,
    }
)

RETRYABLE_STATUSES: frozenset[str] = frozenset(
    {
        ProductSyncStatus.PENDING.value,
        ProductSyncStatus.ERROR.value,
        OrderSyncStatus.FAILED.value,
    }
)


def _status_value(status: StatusValue) -> str:
    value = status.value if isinstance(status, Enum) else status
    if not isinstance(value, str) or value not in KNOWN_STATUSES:
        raise InvalidStatus(
            code="invalid_status",
            message=f"Unknown sync status: {value!r}",
            details={"status": str(value)},
        )
    return value


def parse_status(value: StatusValue) -> ProductSyncStatus | OrderSyncStatus | QueueStatus:
    """Normalize a status value to its enum member.

    Values shared by several families resolve to the first family declaring
    them (product, then order, then queue).

    Raises:
        InvalidStatus: If the value belongs to no status family.
    """

    if isinstance(value, (ProductSyncStatus, OrderSyncStatus, QueueStatus)):
        return value
    raw = _status_value(value)
    for family in STATUS_FAMILIES:
        try:
            return family(raw)  # type: ignore[return-value]
        except ValueError:
            continue
    raise AssertionError(f"{raw!r} is in KNOWN_STATUSES but in no family")


def is_order_synced(status: StatusValue) -> bool:
    """Return True when an order in this status must not be synced again.

    Raises:
        InvalidStatus: If the value belongs to no status family.
    """

    return _status_value(status) in ORDER_SYNCED_STATUSES


def is_retryable(status: StatusValue) -> bool:
    """Return True when an entity in this status is eligible for retry.

    Raises:
        InvalidStatus: If the value belongs to no status family.
    """

    return _status_value(status) in RETRYABLE_STATUSES
