"""
Workspace Snapshot Models

The board's serializable state: named fields, each holding an ordered
list of image ids, plus the image items themselves.
"""

import json
import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

STORAGE_SCHEMA = "field_v1"
STORAGE_VERSION = 1

DEFAULT_FIELD_NAME = "Untitled field"


class BoardField(BaseModel):
    """A named column of images."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    image_ids: List[str] = Field(default_factory=list, alias="imageIds")
    created_at: int = Field(..., alias="createdAt", description="Unix millis")


class ImageItem(BaseModel):
    """One image on the board."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    field_id: str = Field(..., alias="fieldId")
    src: str
    created_at: int = Field(..., alias="createdAt", description="Unix millis")
    note: Optional[str] = None


class FieldState(BaseModel):
    """Whole-board snapshot."""
    fields: List[BoardField] = Field(default_factory=list)
    images: List[ImageItem] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class StoredState(BaseModel):
    """Versioned envelope around a snapshot."""
    model_config = ConfigDict(populate_by_name=True)

    schema_name: str = Field(STORAGE_SCHEMA, alias="schema")
    version: int = STORAGE_VERSION
    state: FieldState


def parse_stored_state(raw: str) -> Optional[FieldState]:
    """
    Decode a stored envelope.

    Returns None for malformed JSON, a schema/version mismatch or an
    invalid snapshot. Validation is strict: no string-to-int or
    bool-to-int coercion. Envelopes without ``schema`` (legacy) are read as
    the current schema.
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        return None

    if not isinstance(payload, dict):
        return None
    if "schema" in payload and not isinstance(payload["schema"], str):
        return None
    # bool is an int subclass; JSON true must not pass as version 1
    if type(payload.get("version")) is not int:
        return None

    try:
        stored = StoredState.model_validate_json(raw, strict=True)
    except ValidationError as e:
        logger.debug(f"[Workspace] Rejected stored state: {e.error_count()} errors")
        return None

    if stored.schema_name != STORAGE_SCHEMA or stored.version != STORAGE_VERSION:
        return None
    return stored.state


def dump_stored_state(state: FieldState) -> str:
    envelope = StoredState(state=state)
    return json.dumps(envelope.model_dump(by_alias=True))


def default_field(name: str, now_ms: int, field_id: str) -> BoardField:
    return BoardField(
        id=field_id,
        name=name.strip() or DEFAULT_FIELD_NAME,
        image_ids=[],
        created_at=now_ms,
    )


def normalize_state(state: FieldState, now_ms: int, new_id) -> FieldState:
    """
    Repair cross references in a snapshot.

    - Images pointing at a missing field are dropped
    - imageIds entries pointing at a missing image are dropped
    - An empty board gets one default field ("Field 1")

    Args:
        state: Snapshot to normalize
        now_ms: Timestamp for a default field
        new_id: Zero-arg callable producing a fresh id
    """
    valid_field_ids = {f.id for f in state.fields}
    images = [img for img in state.images if img.field_id in valid_field_ids]
    valid_image_ids = {img.id for img in images}

    fields = [
        BoardField(
            id=f.id,
            name=f.name.strip() or DEFAULT_FIELD_NAME,
            image_ids=[i for i in f.image_ids if i in valid_image_ids],
            created_at=f.created_at,
        )
        for f in state.fields
    ]

    if not fields:
        fields = [default_field("Field 1", now_ms, new_id())]

    return FieldState(fields=fields, images=images)
