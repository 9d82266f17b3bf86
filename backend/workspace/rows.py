"""
Workspace Row Conversion

Maps a FieldState snapshot to the two-table layout used by the hosted
store (``fields`` and ``items``, keyed by user_id + id) and back.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from .models import BoardField, FieldState, ImageItem


@dataclass
class FieldRow:
    user_id: str
    id: str
    name: str
    created_at: str
    updated_at: str


@dataclass
class ItemRow:
    user_id: str
    id: str
    field_id: str
    src: str
    note: Optional[str]
    position: int
    created_at: str
    updated_at: str


def to_iso(timestamp_ms: int) -> str:
    """Unix millis to an ISO-8601 UTC string."""
    try:
        moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        moment = datetime.now(timezone.utc)
    return moment.isoformat()


def parse_millis(value, now: Optional[datetime] = None) -> int:
    """ISO string or number to Unix millis; unparseable values become 'now'."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return int(round(parsed.timestamp() * 1000))
    moment = now or datetime.now(timezone.utc)
    return int(moment.timestamp() * 1000)


def to_rows(
    user_id: str,
    state: FieldState,
    now: datetime,
) -> Tuple[List[FieldRow], List[ItemRow]]:
    """
    Flatten a snapshot into table rows.

    Items follow each field's imageIds order (position = index). An image
    is written once, under the field it claims to belong to; blank notes
    are stored as None.
    """
    now_iso = now.astimezone(timezone.utc).isoformat()
    image_by_id = {img.id: img for img in state.images}

    field_rows = [
        FieldRow(
            user_id=user_id,
            id=f.id,
            name=f.name,
            created_at=to_iso(f.created_at),
            updated_at=now_iso,
        )
        for f in state.fields
    ]

    item_rows: List[ItemRow] = []
    emitted = set()
    for f in state.fields:
        for position, image_id in enumerate(f.image_ids):
            image = image_by_id.get(image_id)
            if image is None or image.field_id != f.id or image.id in emitted:
                continue
            emitted.add(image.id)
            item_rows.append(ItemRow(
                user_id=user_id,
                id=image.id,
                field_id=f.id,
                src=image.src,
                note=image.note if image.note and image.note.strip() else None,
                position=position,
                created_at=to_iso(image.created_at),
                updated_at=now_iso,
            ))

    return field_rows, item_rows


def from_rows(
    field_rows: Iterable[FieldRow],
    item_rows: Iterable[ItemRow],
) -> Optional[FieldState]:
    """
    Rebuild a snapshot from table rows.

    Returns None when the user has no fields.
    """
    fields = sorted(field_rows, key=lambda r: parse_millis(r.created_at))
    if not fields:
        return None

    known = {r.id for r in fields}
    image_ids_by_field = {r.id: [] for r in fields}
    images: List[ImageItem] = []

    items = sorted(item_rows, key=lambda r: (r.position, parse_millis(r.created_at)))
    for row in items:
        if row.field_id not in known:
            continue
        image_ids_by_field[row.field_id].append(row.id)
        images.append(ImageItem(
            id=row.id,
            field_id=row.field_id,
            src=row.src,
            note=row.note or "",
            created_at=parse_millis(row.created_at),
        ))

    return FieldState(
        fields=[
            BoardField(
                id=r.id,
                name=r.name,
                created_at=parse_millis(r.created_at),
                image_ids=image_ids_by_field[r.id],
            )
            for r in fields
        ],
        images=images,
    )
