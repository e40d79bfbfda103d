"""
Asset store and its diff-and-record mutation pipeline.

The store is the single writer for asset records. Every mutation is checked
for an acting identity, validated, diffed against the current record and,
when something actually changed, persisted and recorded as exactly one
ledger event.

Pipeline order:
1. Identity - mutations without an actor are rejected
2. Lookup - the target asset must exist
3. Validation - the whole proposed change is coerced before anything is applied
4. Diff - unchanged fields are dropped; an empty diff ends the mutation
5. Persist - the new table is saved, then the event is appended
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .errors import NotFoundError
from .fields import (
    REQUIRED_FIELDS,
    coerce_changes,
    coerce_cost,
    coerce_status,
    cost_delta,
    diff_fields,
)
from .identity import Actor, require_actor
from .ledger import ChangeLedger
from asset_ledger.storage.models import (
    Asset,
    AssetStatus,
    ChangeAction,
    ChangeEvent,
    FieldDelta,
)
from asset_ledger.storage.repository import AssetRepository

logger = logging.getLogger(__name__)

# Pseudo-status recorded as the new value when an asset is deleted
DELETED_STATUS = "deleted"

_MAX_ID_ATTEMPTS = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class AssetStore:
    """Live asset table with change tracking.

    Reads are served from a cached copy of the table. Every mutation reloads
    it from the repository first and then saves the whole table back, so
    several stores may share one repository as long as their writes do not
    overlap.

    Usage:
        store = AssetStore(SQLiteAssetRepository("inventory.db"))
        asset = store.create({"name": "Laptop", ...}, actor)
        store.relocate(asset.id, "Office B", "Maria", actor)
        history = store.ledger.events_for(asset.id)
    """

    def __init__(
        self,
        repository: AssetRepository,
        ledger: Optional[ChangeLedger] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """Load the current asset table from ``repository``.

        Args:
            repository: Persistence collaborator for assets and events
            ledger: Ledger to record events in (defaults to one over repository)
            clock: Returns the current time; defaults to UTC now
            id_factory: Produces candidate asset identifiers
        """
        self.repository = repository
        self.ledger = ledger if ledger is not None else ChangeLedger(repository)
        self._clock = clock or _utcnow
        self._id_factory = id_factory or _new_id
        self._assets: Dict[str, Asset] = {}
        self.reload()

    def reload(self) -> None:
        """Replace the cached table with the repository's current contents."""
        self._assets = {
            asset.id: asset for asset in self.repository.load_assets()
        }

    def get(self, asset_id: str) -> Asset:
        """Return the live asset with ``asset_id``.

        Raises:
            NotFoundError: If no such asset exists (or it was deleted)
        """
        try:
            return self._assets[asset_id]
        except KeyError:
            raise NotFoundError(asset_id)

    def list_assets(self) -> List[Asset]:
        """Return all live assets ordered by creation time."""
        return sorted(self._assets.values(), key=lambda asset: asset.created_at)

    def create(self, data: Mapping[str, Any], actor: Optional[Actor]) -> Asset:
        """Create a new asset and record a ``created`` event.

        Args:
            data: Field values; name, type, responsible and location are required
            actor: Acting user, recorded as the creator

        Returns:
            The stored asset with its assigned identifier and timestamps

        Raises:
            AuthorizationError: If no actor is supplied
            ValidationError: If a required field is missing or a value is invalid
        """
        actor = require_actor(actor)
        self.reload()

        fields = dict(data)
        for name in REQUIRED_FIELDS:
            fields.setdefault(name, None)
        if fields.get("cost") is None:
            fields["cost"] = 0
        if fields.get("status") is None:
            fields["status"] = AssetStatus.ACTIVE
        values = coerce_changes(fields)

        now = self._clock()
        asset = Asset(
            id=self._issue_id(),
            created_at=now,
            updated_at=now,
            created_by=actor.user_id,
            **values
        )
        delta = FieldDelta(field="asset", old_value="", new_value=asset.name)
        self._commit(asset, ChangeAction.CREATED, [delta], actor)
        return asset

    def update(
        self,
        asset_id: str,
        partial: Mapping[str, Any],
        actor: Optional[Actor],
    ) -> Optional[ChangeEvent]:
        """Apply a partial update and record an ``updated`` event.

        Only keys present in ``partial`` are compared. If nothing differs
        after stringification, nothing is saved and no event is recorded.

        Returns:
            The recorded event, or None for a no-op update

        Raises:
            AuthorizationError: If no actor is supplied
            NotFoundError: If the asset does not exist
            ValidationError: For immutable/unknown keys or invalid values
        """
        actor = require_actor(actor)
        self.reload()
        current = self.get(asset_id)
        changes = coerce_changes(partial)
        return self._apply(
            current, diff_fields(current, changes), changes,
            ChangeAction.UPDATED, actor
        )

    def relocate(
        self,
        asset_id: str,
        new_location: Optional[str],
        new_responsible: Optional[str],
        actor: Optional[Actor],
    ) -> Optional[ChangeEvent]:
        """Move an asset and/or hand it to a new responsible party.

        Records one ``relocated`` event covering both fields. A None argument
        keeps the current value.
        """
        actor = require_actor(actor)
        self.reload()
        current = self.get(asset_id)

        partial = {}
        if new_location is not None:
            partial["location"] = new_location
        if new_responsible is not None:
            partial["responsible"] = new_responsible
        changes = coerce_changes(partial)

        return self._apply(
            current, diff_fields(current, changes), changes,
            ChangeAction.RELOCATED, actor
        )

    def update_cost(
        self,
        asset_id: str,
        new_cost: Any,
        actor: Optional[Actor],
    ) -> Optional[ChangeEvent]:
        """Change the cost, recording old and new amounts as Decimals.

        Raises:
            ValidationError: If ``new_cost`` is negative or not a number
        """
        actor = require_actor(actor)
        self.reload()
        current = self.get(asset_id)
        cost = coerce_cost(new_cost)

        delta = cost_delta(current.cost, cost)
        return self._apply(
            current, [delta] if delta else [], {"cost": cost},
            ChangeAction.COST_UPDATED, actor
        )

    def change_status(
        self,
        asset_id: str,
        new_status: Any,
        actor: Optional[Actor],
    ) -> Optional[ChangeEvent]:
        """Move an asset to another lifecycle state.

        Raises:
            ValidationError: If ``new_status`` is not a defined state
        """
        actor = require_actor(actor)
        self.reload()
        current = self.get(asset_id)
        changes = {"status": coerce_status(new_status)}
        return self._apply(
            current, diff_fields(current, changes), changes,
            ChangeAction.STATUS_CHANGED, actor
        )

    def delete(self, asset_id: str, actor: Optional[Actor]) -> ChangeEvent:
        """Remove an asset from the live table, keeping its history.

        The ``decommissioned`` event records the status the asset had at
        deletion time.

        Raises:
            AuthorizationError: If no actor is supplied
            NotFoundError: If the asset does not exist
        """
        actor = require_actor(actor)
        self.reload()
        current = self.get(asset_id)
        now = self._next_timestamp(current.updated_at)
        delta = FieldDelta(
            field="status",
            old_value=current.status.value,
            new_value=DELETED_STATUS
        )
        return self._commit(
            replace(current, updated_at=now), ChangeAction.DECOMMISSIONED,
            [delta], actor, remove=True
        )

    def _apply(
        self,
        current: Asset,
        deltas: List[FieldDelta],
        changes: Mapping[str, Any],
        action: ChangeAction,
        actor: Actor,
    ) -> Optional[ChangeEvent]:
        if not deltas:
            logger.debug(
                "No field changes for asset %s, %s not recorded",
                current.id, action.value
            )
            return None

        updated = replace(
            current,
            updated_at=self._next_timestamp(current.updated_at),
            **{delta.field: changes[delta.field] for delta in deltas}
        )
        return self._commit(updated, action, deltas, actor)

    def _commit(
        self,
        asset: Asset,
        action: ChangeAction,
        deltas: Iterable[FieldDelta],
        actor: Actor,
        remove: bool = False,
    ) -> ChangeEvent:
        table = dict(self._assets)
        if remove:
            del table[asset.id]
        else:
            table[asset.id] = asset

        # Table first: an event is only appended once its data change is durable
        self.repository.save_assets(table.values())
        self._assets = table

        event = ChangeEvent(
            id=uuid.uuid4().hex,
            asset_id=asset.id,
            action=action,
            changes=tuple(deltas),
            user_id=actor.user_id,
            username=actor.username,
            timestamp=asset.updated_at
        )
        self.ledger.append(event)
        logger.info(
            "Recorded %s for asset %s by %s (%d change(s))",
            action.value, asset.id, actor.user_id, len(event.changes)
        )
        return event

    def _next_timestamp(self, previous: datetime) -> datetime:
        return max(self._clock(), previous)

    def _issue_id(self) -> str:
        # Ids of deleted assets still own history, so they are never reissued
        for _ in range(_MAX_ID_ATTEMPTS):
            asset_id = self._id_factory()
            if asset_id not in self._assets and not self.ledger.events_for(asset_id):
                return asset_id
        raise RuntimeError("Unable to issue a unique asset identifier")
