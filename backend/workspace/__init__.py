"""
Workspace Module

Per-account board snapshots (fields + images) for cross-device sync.
The image proxy does not depend on this module.
"""

from .models import (
    BoardField,
    ImageItem,
    FieldState,
    StoredState,
    normalize_state,
    parse_stored_state,
    dump_stored_state,
)
from .memory_store import MemoryWorkspaceStore, WorkspaceStore
from .routes import router as workspace_router, get_workspace_store

__all__ = [
    "BoardField",
    "ImageItem",
    "FieldState",
    "StoredState",
    "normalize_state",
    "parse_stored_state",
    "dump_stored_state",
    "MemoryWorkspaceStore",
    "WorkspaceStore",
    "workspace_router",
    "get_workspace_store",
]
