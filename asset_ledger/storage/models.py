"""
Data models for storage layer.

Defines the asset record and the immutable change-history entities.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple, Union


class AssetStatus(Enum):
    """Lifecycle states an asset can be in."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    DECOMMISSIONED = "decommissioned"


class ChangeAction(Enum):
    """Kinds of change recorded in the ledger."""
    CREATED = "created"
    UPDATED = "updated"
    RELOCATED = "relocated"
    COST_UPDATED = "cost_updated"
    STATUS_CHANGED = "status_changed"
    DECOMMISSIONED = "decommissioned"


DeltaValue = Union[str, Decimal]


@dataclass(frozen=True)
class Asset:
    """Current state of one tracked inventory item.

    Records are replaced, never edited in place, so a reference held by a
    caller always reflects the state at the time it was read.
    """
    id: str
    name: str
    type: str
    responsible: str
    location: str
    cost: Decimal
    status: AssetStatus
    created_at: datetime
    updated_at: datetime
    created_by: str
    subtype: Optional[str] = None
    description: Optional[str] = None
    serial_number: Optional[str] = None


@dataclass(frozen=True)
class FieldDelta:
    """One changed attribute: field name with its previous and new value."""
    field: str
    old_value: DeltaValue
    new_value: DeltaValue


@dataclass(frozen=True)
class ChangeEvent:
    """Immutable record of a single accepted asset mutation.

    Append-only: once written to the ledger an event is never modified or
    deleted, and it outlives the asset it describes.
    """
    id: str
    asset_id: str
    action: ChangeAction
    changes: Tuple[FieldDelta, ...]
    user_id: str
    username: str
    timestamp: datetime
