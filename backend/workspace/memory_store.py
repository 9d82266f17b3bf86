"""
Workspace Store Implementation

Thread-safe in-memory stand-in for the hosted per-account store.
Keeps the same two-table layout (fields / items keyed by user_id + id)
and the same save semantics: upsert every row in the snapshot, then
prune that user's rows the snapshot no longer mentions.

Features:
- Thread-safe operations with Lock
- Account limit with least-recently-saved eviction
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Optional, Protocol

from .models import FieldState
from .rows import FieldRow, ItemRow, from_rows, to_rows

logger = logging.getLogger(__name__)


class WorkspaceStore(Protocol):
    """Anything that can load/save a snapshot by opaque user id."""

    def load(self, user_id: str) -> Optional[FieldState]:
        ...

    def save(self, user_id: str, state: FieldState) -> None:
        ...


@dataclass
class UserTables:
    """Rows belonging to one account."""
    fields: Dict[str, FieldRow] = field(default_factory=dict)
    items: Dict[str, ItemRow] = field(default_factory=dict)


class MemoryWorkspaceStore:
    """
    In-memory workspace store
    """

    def __init__(self, max_users: int = 1000):
        self._users: "OrderedDict[str, UserTables]" = OrderedDict()
        self._lock = Lock()
        self._max_users = max_users

    def load(self, user_id: str) -> Optional[FieldState]:
        with self._lock:
            tables = self._users.get(user_id)
            if tables is None:
                return None
            return from_rows(list(tables.fields.values()), list(tables.items.values()))

    def save(self, user_id: str, state: FieldState, now: Optional[datetime] = None) -> None:
        """
        Upsert the snapshot's rows, then prune stale items and fields.
        """
        field_rows, item_rows = to_rows(user_id, state, now or datetime.now(timezone.utc))

        with self._lock:
            tables = self._users.get(user_id)
            if tables is None:
                while len(self._users) >= self._max_users:
                    evicted, _ = self._users.popitem(last=False)
                    logger.info(f"[Workspace] Evicted least recently saved user: {evicted}")
                tables = UserTables()
                self._users[user_id] = tables
            else:
                self._users.move_to_end(user_id)

            for row in field_rows:
                tables.fields[row.id] = row

            for row in item_rows:
                tables.items[row.id] = row

            item_ids = {row.id for row in item_rows}
            for stale in [i for i in tables.items if i not in item_ids]:
                del tables.items[stale]

            field_ids = {row.id for row in field_rows}
            for stale in [f for f in tables.fields if f not in field_ids]:
                del tables.fields[stale]

        logger.debug(
            f"[Workspace] Saved {user_id}: {len(field_rows)} fields, {len(item_rows)} items"
        )
