"""Query engine: filtering and ordering of note collections.

Every function here is a pure function of its arguments. Nothing is
cached; callers that want memoisation key it on the identity of the
collection and the criteria (see NotesService.notes).
"""
import logging
from collections import Counter
from typing import Any, Callable, Iterable, List, Optional, Union

from notesflow.exceptions import ErrorCode, ValidationError
from notesflow.models.schema import FilterCriteria, Note, SortKey, SortOrder, TagSummary

logger = logging.getLogger(__name__)

_SORT_FIELDS: dict = {
    SortKey.UPDATED_AT: lambda note: note.updated_at,
    SortKey.CREATED_AT: lambda note: note.created_at,
    SortKey.TITLE: lambda note: note.title.casefold(),
    SortKey.ARCHIVED_AT: lambda note: note.archived_at or note.updated_at,
}

_ARCHIVE_SORT_KEYS = (SortKey.ARCHIVED_AT, SortKey.CREATED_AT, SortKey.TITLE)


def matches_search(note: Note, text: str) -> bool:
    """Case-insensitive substring match on title, raw content or any tag.

    An empty (or whitespace-only) query matches every note.
    """
    needle = text.strip().casefold()
    if not needle:
        return True
    if needle in note.title.casefold() or needle in note.content.casefold():
        return True
    return any(needle in tag.casefold() for tag in note.tags)


def _predicates(criteria: FilterCriteria) -> List[Callable[[Note], bool]]:
    checks: List[Callable[[Note], bool]] = []
    if criteria.search_text.strip():
        checks.append(lambda note: matches_search(note, criteria.search_text))
    if criteria.folder_id is not None:
        checks.append(lambda note: note.folder_id == criteria.folder_id)
    if criteria.tag is not None:
        checks.append(lambda note: criteria.tag in note.tags)
    if criteria.favorites_only:
        checks.append(lambda note: note.is_favorite)
    return checks


def sort_notes(
    notes: Iterable[Note],
    sort_by: Union[SortKey, str] = SortKey.UPDATED_AT,
    sort_order: Union[SortOrder, str] = SortOrder.DESC,
) -> List[Note]:
    """Order notes by one field; equal keys fall back to the id."""
    sort_by = _coerce_sort_key(sort_by)
    field = _SORT_FIELDS[sort_by]
    return sorted(
        notes,
        key=lambda note: (field(note), note.id),
        reverse=SortOrder(sort_order) is SortOrder.DESC,
    )


def query_notes(
    notes: Iterable[Note], criteria: Optional[FilterCriteria] = None
) -> List[Note]:
    """Project a collection onto the active-note view.

    Archived notes are always excluded. The remaining filters combine
    with AND; within the search text it is OR across title, content and
    tags. The result is ordered by ``criteria.sort_by`` / ``sort_order``
    (most recently updated first by default).

    Args:
        notes: Any iterable of notes, typically the repository collection.
        criteria: Filters and ordering. None means "no filter".

    Returns:
        A new list; the input is not modified.
    """
    criteria = criteria or FilterCriteria()
    active = (note for note in notes if not note.is_archived)
    if criteria.is_empty:
        selected: Iterable[Note] = active
    else:
        checks = _predicates(criteria)
        selected = (note for note in active if all(check(note) for check in checks))
    return sort_notes(selected, criteria.sort_by, criteria.sort_order)


def query_archived(
    notes: Iterable[Note],
    search_text: str = "",
    sort_by: Union[SortKey, str] = SortKey.ARCHIVED_AT,
    sort_order: Union[SortOrder, str] = SortOrder.DESC,
) -> List[Note]:
    """The archive view: archived notes only, searchable and sortable.

    Supports ordering by archivedAt, createdAt or title.

    Raises:
        ValidationError: For any other sort key.
    """
    sort_by = _coerce_sort_key(sort_by)
    if sort_by not in _ARCHIVE_SORT_KEYS:
        raise ValidationError(
            f"Archive view cannot be sorted by '{sort_by.value}'",
            field="sort_by",
            value=sort_by.value,
            code=ErrorCode.INVALID_SORT_KEY,
        )
    archived = (
        note for note in notes if note.is_archived and matches_search(note, search_text)
    )
    return sort_notes(archived, sort_by, sort_order)


def collect_tags(
    notes: Iterable[Note], include_archived: bool = False
) -> List[TagSummary]:
    """Tags in use with the number of notes carrying each.

    Ordered by count (highest first), then name.
    """
    counts: Counter = Counter()
    for note in notes:
        if note.is_archived and not include_archived:
            continue
        counts.update(note.tags)
    return [
        TagSummary(name=name, count=count)
        for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def count_favorites(notes: Iterable[Note]) -> int:
    """Number of active favourite notes."""
    return sum(1 for note in notes if note.is_favorite and not note.is_archived)


def _coerce_sort_key(value: Any) -> SortKey:
    try:
        return SortKey(value)
    except ValueError as e:
        raise ValidationError(
            f"Unknown sort key '{value}'",
            field="sort_by",
            value=value,
            code=ErrorCode.INVALID_SORT_KEY,
        ) from e
