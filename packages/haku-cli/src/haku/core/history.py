"""Most-recently-opened file history."""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

FILE_HISTORY_KEY = "haku.fileHistory"
FILE_HISTORY_LIMIT = 10

_ROUTE_RE = re.compile(r"^/(?:notes|todos)/(?P<id>[0-9A-Za-z][0-9A-Za-z_-]*)/?")


def record(history: Sequence[str], item_id: Optional[str], capacity: int = FILE_HISTORY_LIMIT) -> List[str]:
    """Return a new history with ``item_id`` moved to the front.

    An earlier occurrence is dropped so ids stay unique, and the result keeps at
    most ``capacity`` entries. Empty ids leave the history unchanged.
    """
    if not item_id:
        return list(history)
    updated = [item_id, *(existing for existing in history if existing != item_id)]
    return updated[:capacity]


def id_from_route(path: str) -> Optional[str]:
    """Extract the content id from a ``/notes/<id>`` or ``/todos/<id>`` path."""
    match = _ROUTE_RE.match(path)
    return match.group("id") if match else None


def record_route(history: Sequence[str], path: str, capacity: int = FILE_HISTORY_LIMIT) -> List[str]:
    return record(history, id_from_route(path), capacity)


__all__ = [
    "FILE_HISTORY_KEY",
    "FILE_HISTORY_LIMIT",
    "record",
    "id_from_route",
    "record_route",
]
