"""
Workspace API Routes

Provides HTTP endpoints for per-account board snapshots:
- GET  /api/workspace/{user_id}    - Load snapshot
- PUT  /api/workspace/{user_id}    - Save snapshot (normalized)
"""

import logging
import os
import time
import uuid

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from .memory_store import MemoryWorkspaceStore, WorkspaceStore
from .models import FieldState, normalize_state

logger = logging.getLogger(__name__)

workspace_store = MemoryWorkspaceStore(
    max_users=int(os.getenv("WORKSPACE_MAX_USERS", "1000")),
)


def get_workspace_store() -> WorkspaceStore:
    return workspace_store


router = APIRouter(prefix="/api/workspace", tags=["Workspace"])


# ============================================
# Response Models
# ============================================

class SaveWorkspaceResponse(BaseModel):
    """Response model for save operation"""
    success: bool
    fields: int
    images: int


# ============================================
# API Endpoints
# ============================================

@router.get("/{user_id}")
async def load_workspace(user_id: str, store: WorkspaceStore = Depends(get_workspace_store)):
    """
    Load the saved board for an account.
    """
    state = store.load(user_id)
    if state is None:
        raise HTTPException(
            status_code=404,
            detail=f"No workspace saved for '{user_id}'"
        )
    return {
        "success": True,
        "state": state.to_json_dict(),
    }


@router.put("/{user_id}", response_model=SaveWorkspaceResponse)
async def save_workspace(
    user_id: str,
    state: FieldState,
    store: WorkspaceStore = Depends(get_workspace_store),
):
    """
    Save a board snapshot.

    The snapshot is normalized first (dangling references dropped,
    empty boards get a default field).
    """
    normalized = normalize_state(
        state,
        now_ms=int(time.time() * 1000),
        new_id=lambda: uuid.uuid4().hex[:21],
    )
    store.save(user_id, normalized)
    logger.info(
        f"[Workspace] Saved {user_id}: {len(normalized.fields)} fields, "
        f"{len(normalized.images)} images"
    )
    return SaveWorkspaceResponse(
        success=True,
        fields=len(normalized.fields),
        images=len(normalized.images),
    )
