"""Data models for notesflow."""

import datetime
from datetime import timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from notesflow.models.identity import generate_id

# Version 1 is the shape written by the original browser app (no
# schemaVersion field, optional flags). Version 2 is written by this package.
CURRENT_SCHEMA_VERSION = 2

# Palette used when a folder is created without an explicit colour
FOLDER_COLORS = (
    "#2D9EE0",
    "#3854F2",
    "#576EF2",
    "#2193B0",
    "#6DD5ED",
    "#15B9A7",
    "#F59E0B",
    "#EF4444",
    "#8B5CF6",
    "#06B6D4",
)

# Shared by every persisted model: camelCase on disk, snake_case in Python
_RECORD_CONFIG = {
    "extra": "forbid",
    "frozen": True,
    "alias_generator": to_camel,
    "populate_by_name": True,
}


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: datetime.datetime) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    Args:
        dt_value: A datetime that may or may not have timezone info.

    Returns:
        The same datetime with UTC timezone if it was naive, otherwise unchanged.
    """
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def dedupe_tags(tags: List[str]) -> List[str]:
    """Drop blank and repeated tags, keeping first-seen order.

    Case is left alone: lowercasing is the caller's convention.
    """
    seen = set()
    result = []
    for tag in tags:
        name = tag.strip()
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


class SortKey(str, Enum):
    """Fields the derived views can be ordered by."""

    UPDATED_AT = "updatedAt"
    CREATED_AT = "createdAt"
    TITLE = "title"
    ARCHIVED_AT = "archivedAt"  # archive view only


class SortOrder(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


class Note(BaseModel):
    """A note: title, opaque rich-text content, tags and lifecycle flags.

    Instances are immutable. The repository replaces a note with an
    evolved copy on every mutation, so a caller holding a Note never
    holds the authoritative state.
    """

    id: str = Field(default_factory=generate_id, description="Unique, immutable ID")
    title: str = Field(default="", description="Title (may be empty)")
    content: str = Field(default="", description="Opaque rich-text payload")
    tags: List[str] = Field(default_factory=list, description="Ordered, unique tags")
    folder_id: Optional[str] = Field(
        default=None, description="Weak reference to a folder"
    )
    is_favorite: bool = Field(default=False)
    is_archived: bool = Field(default=False)
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was last changed (UTC)"
    )
    archived_at: Optional[datetime.datetime] = Field(
        default=None, description="When the note was archived (UTC)"
    )
    schema_version: int = Field(default=CURRENT_SCHEMA_VERSION)

    model_config = dict(_RECORD_CONFIG)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """IDs are never empty."""
        if not v or not v.strip():
            raise ValueError("Note ID cannot be empty")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return dedupe_tags(v)

    @field_validator("created_at", "updated_at", "archived_at")
    @classmethod
    def validate_timezone(
        cls, v: Optional[datetime.datetime]
    ) -> Optional[datetime.datetime]:
        return ensure_timezone_aware(v) if v is not None else None

    @model_validator(mode="after")
    def _check_invariants(self) -> "Note":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be earlier than created_at")
        if self.is_archived and self.archived_at is None:
            raise ValueError("archived notes must have archived_at")
        if not self.is_archived and self.archived_at is not None:
            raise ValueError("archived_at is only set on archived notes")
        return self

    def evolve(self, **changes: Any) -> "Note":
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return Note.model_validate(data)

    def to_record(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys and ISO-8601 timestamps."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NoteDraft(BaseModel):
    """Fields a caller supplies when creating a note.

    Empty title and content are allowed: non-emptiness is a UI policy.
    """

    title: str = ""
    content: str = ""
    tags: List[str] = Field(default_factory=list)
    folder_id: Optional[str] = None
    is_favorite: bool = False

    model_config = {
        "extra": "forbid",
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return dedupe_tags(v)


class NoteUpdate(BaseModel):
    """A partial update. Only explicitly set fields are applied.

    ``folder_id=None`` passed explicitly clears the folder; an omitted
    field is left untouched. Identity, timestamps and lifecycle flags
    are not updatable here.
    """

    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    folder_id: Optional[str] = None
    is_favorite: Optional[bool] = None

    model_config = {
        "extra": "forbid",
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    @field_validator("title", "content", "tags", "is_favorite")
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("field cannot be null")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return dedupe_tags(v)

    def changes(self) -> Dict[str, Any]:
        """Explicitly set fields, keyed by Python field name."""
        return self.model_dump(exclude_unset=True)


class Folder(BaseModel):
    """A folder notes may point at. Stored independently of notes."""

    id: str = Field(default_factory=lambda: generate_id("folder"))
    name: str
    color: str = Field(default=FOLDER_COLORS[0])
    created_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = dict(_RECORD_CONFIG)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate that the name is not empty."""
        if not v.strip():
            raise ValueError("Folder name cannot be empty")
        return v.strip()

    @field_validator("created_at")
    @classmethod
    def validate_timezone(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_timezone_aware(v)

    def evolve(self, **changes: Any) -> "Folder":
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return Folder.model_validate(data)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TagSummary(BaseModel):
    """A tag inferred from note data, with the number of notes using it."""

    name: str
    count: int

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return self.name


class FilterCriteria(BaseModel):
    """Active filters and ordering for the derived note view.

    Categories combine with AND; the search text matches title, content
    or any tag (OR across fields).
    """

    search_text: str = ""
    folder_id: Optional[str] = None
    tag: Optional[str] = None
    favorites_only: bool = False
    sort_by: SortKey = SortKey.UPDATED_AT
    sort_order: SortOrder = SortOrder.DESC

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("sort_by")
    @classmethod
    def validate_sort_by(cls, v: SortKey) -> SortKey:
        if v is SortKey.ARCHIVED_AT:
            raise ValueError("archivedAt ordering is only available in the archive view")
        return v

    @property
    def is_empty(self) -> bool:
        """True when no filter narrows the view (ordering aside)."""
        return (
            not self.search_text.strip()
            and self.folder_id is None
            and self.tag is None
            and not self.favorites_only
        )
