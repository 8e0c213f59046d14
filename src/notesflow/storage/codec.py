"""JSON encoding of persisted collections.

A collection is stored as one JSON array of camelCase records with
ISO-8601 timestamps. Decoding migrates legacy records to the current
schema version, skips records that still fail validation and drops
duplicate ids, so a partially damaged value degrades instead of failing.
"""
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from notesflow.exceptions import StoreCorruptionError
from notesflow.models.schema import (
    CURRENT_SCHEMA_VERSION,
    Folder,
    Note,
    ensure_timezone_aware,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
Record = Dict[str, Any]


def migrate_note_record(record: Record) -> Record:
    """Bring a stored note record up to CURRENT_SCHEMA_VERSION.

    Version 1 records come from the original browser app: flags may be
    missing, ``archivedAt`` may be absent on archived notes or left over
    on restored ones, and ``updatedAt`` is not guaranteed to follow
    ``createdAt``.
    """
    version = record.get("schemaVersion", 1)
    if isinstance(version, int) and version >= CURRENT_SCHEMA_VERSION:
        return record

    migrated = dict(record)
    migrated.setdefault("title", "")
    migrated.setdefault("content", "")
    if not isinstance(migrated.get("tags"), list):
        migrated["tags"] = []
    migrated["isFavorite"] = bool(migrated.get("isFavorite", False))
    migrated["isArchived"] = bool(migrated.get("isArchived", False))
    if migrated.get("folderId") in ("", None):
        migrated.pop("folderId", None)

    created = migrated.get("createdAt")
    updated = migrated.get("updatedAt") or created
    if created is None:
        created = updated
    if created is not None:
        migrated["createdAt"] = created
        migrated["updatedAt"] = updated
        if isinstance(created, str) and isinstance(updated, str):
            migrated["updatedAt"] = _later_iso(created, updated)

    if migrated["isArchived"]:
        if not migrated.get("archivedAt"):
            migrated["archivedAt"] = migrated.get("updatedAt")
    else:
        migrated.pop("archivedAt", None)

    migrated["schemaVersion"] = CURRENT_SCHEMA_VERSION
    return migrated


def _parse_iso(value: str) -> datetime:
    return ensure_timezone_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))


def _later_iso(created: str, updated: str) -> str:
    try:
        c = _parse_iso(created)
        u = _parse_iso(updated)
    except ValueError:
        return updated
    return updated if u >= c else created


def migrate_folder_record(record: Record) -> Record:
    """Folders carry no version; only the shape is normalised."""
    migrated = dict(record)
    migrated.pop("noteCount", None)
    return migrated


def encode_collection(items: Sequence[Any]) -> str:
    """Serialize models exposing ``to_record()`` as one JSON array."""
    return json.dumps([item.to_record() for item in items], ensure_ascii=False)


def decode_collection(
    raw: Optional[str],
    model: type,
    key: str,
    migrate: Optional[Callable[[Record], Record]] = None,
) -> List[M]:
    """Parse a stored JSON array into validated models.

    Args:
        raw: Stored value, or None when the key is absent.
        model: pydantic model class to validate each record with.
        key: Store key (for messages).
        migrate: Per-record migration applied before validation.

    Returns:
        Models in stored order. Invalid and duplicate-id records are
        skipped with a warning.

    Raises:
        StoreCorruptionError: If the value is not a JSON array.
    """
    if raw is None:
        return []
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise StoreCorruptionError(
            f"Stored value at '{key}' is not valid JSON", key=key, original_error=e
        ) from e
    if not isinstance(payload, list):
        raise StoreCorruptionError(
            f"Stored value at '{key}' is a {type(payload).__name__}, expected a list",
            key=key,
        )

    items: List[M] = []
    seen_ids = set()
    skipped: List[str] = []
    for index, record in enumerate(payload):
        if not isinstance(record, dict) or not record.get("id"):
            # Without a stored id a fresh one would be minted on every load
            skipped.append(f"#{index}")
            continue
        try:
            item = model.model_validate(migrate(record) if migrate else record)
        except (PydanticValidationError, TypeError, ValueError) as e:
            logger.warning(f"Skipping invalid record #{index} at '{key}': {e}")
            skipped.append(str(record.get("id", f"#{index}")))
            continue
        if item.id in seen_ids:
            logger.warning(f"Dropping duplicate id '{item.id}' at '{key}'")
            skipped.append(item.id)
            continue
        seen_ids.add(item.id)
        items.append(item)

    if skipped:
        logger.warning(
            f"Skipped {len(skipped)} of {len(payload)} records at '{key}': "
            f"{skipped[:5]}{'...' if len(skipped) > 5 else ''}"
        )
    return items


def decode_notes(raw: Optional[str], key: str) -> List[Note]:
    return decode_collection(raw, Note, key, migrate_note_record)


def decode_folders(raw: Optional[str], key: str) -> List[Folder]:
    return decode_collection(raw, Folder, key, migrate_folder_record)

