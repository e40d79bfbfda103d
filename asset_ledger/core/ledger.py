"""
Per-asset change history.

The ledger is a read-mostly projection over the repository's append-only
event log. Only the asset store's mutation pipeline writes to it.
"""

from typing import List

from asset_ledger.storage.models import ChangeEvent
from asset_ledger.storage.repository import AssetRepository


class ChangeLedger:
    """Append-only log of change events, queryable per asset."""

    def __init__(self, repository: AssetRepository):
        self.repository = repository

    def append(self, event: ChangeEvent) -> None:
        """Record ``event``. Called by ``AssetStore`` only."""
        self.repository.append_event(event)

    def events_for(self, asset_id: str) -> List[ChangeEvent]:
        """Return every event recorded for ``asset_id``, oldest first.

        Events are ordered by timestamp; the sort is stable, so events with
        equal timestamps keep their append order. Unknown or deleted assets
        are not an error: they simply have no (or only past) history.

        Args:
            asset_id: Asset identifier, live or deleted

        Returns:
            List of change events in chronological order
        """
        events = self.repository.list_events_by_asset(asset_id)
        return sorted(events, key=lambda event: event.timestamp)

    def recent_events(self, limit: int = 100) -> List[ChangeEvent]:
        """Return the latest events across all assets, newest first."""
        if limit <= 0:
            return []
        return self.repository.list_recent_events(limit)
