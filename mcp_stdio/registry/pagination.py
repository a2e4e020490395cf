"""Cursor pagination shared by every list operation."""

from dataclasses import dataclass
from typing import Any, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    next_cursor: Optional[str] = None


def parse_cursor(cursor: Any) -> int:
    """Decode an opaque cursor. Missing or unparseable cursors mean offset 0."""
    if cursor is None or isinstance(cursor, bool):
        return 0
    try:
        offset = int(cursor)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(offset, 0)


def paginate(entries: Sequence[T], cursor: Any = None, page_size: Optional[int] = None) -> Page[T]:
    """Slice ``entries`` starting at ``cursor``.

    Without ``page_size`` everything from the cursor on is returned and there
    is no next cursor.
    """
    start = parse_cursor(cursor)

    if page_size is None:
        return Page(items=list(entries[start:]))

    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")

    end = start + page_size
    next_cursor = str(end) if end < len(entries) else None
    return Page(items=list(entries[start:end]), next_cursor=next_cursor)
