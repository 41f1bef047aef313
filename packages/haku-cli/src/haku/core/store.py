"""Client application state.

The :class:`Store` is created once per session and torn down on logout. The
durable part of its state (current content type, file history, sidebar state)
goes through a :class:`KeyValueStore` so it survives restarts, as do copies of
the last opened notes and todos, served when the server cannot be reached.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .content import ContentType
from .errors import NetworkError
from .history import FILE_HISTORY_KEY, FILE_HISTORY_LIMIT, record_route

logger = logging.getLogger(__name__)

CONTENT_TYPE_KEY = "haku.contentType"
SIDEBAR_COLLAPSED_KEY = "haku.sidebarCollapsed"
OFFLINE_CONTENT_KEY = "haku.offlineContent"
OFFLINE_CONTENT_LIMIT = 10

DURABLE_KEYS = (CONTENT_TYPE_KEY, FILE_HISTORY_KEY, SIDEBAR_COLLAPSED_KEY, OFFLINE_CONTENT_KEY)


class KeyValueStore(ABC):
    """Persistence port for durable client state."""

    @abstractmethod
    def read(self, key: str) -> Any:
        """Return the stored value or ``None``."""

    @abstractmethod
    def write(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Forget a key. Unknown keys are ignored."""


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = dict(initial or {})

    def read(self, key: str) -> Any:
        return self.data.get(key)

    def write(self, key: str, value: Any) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """Keeps every key in a single JSON document on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable state file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def read(self, key: str) -> Any:
        return self._load().get(key)

    def write(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


@dataclass(frozen=True)
class AppState:
    content_type: ContentType = ContentType.NOTE
    file_history: Tuple[str, ...] = field(default_factory=tuple)
    sidebar_collapsed: bool = False
    online: bool = True
    content_available_offline: bool = False


Selector = Callable[[AppState], Any]
Listener = Callable[[Any], None]


class Store:
    """Observable state container."""

    def __init__(self, persistence: KeyValueStore):
        self.persistence = persistence
        self._listeners: List[Tuple[Selector, Listener]] = []
        self._state = self._restore()

    @property
    def state(self) -> AppState:
        return self._state

    def _restore(self) -> AppState:
        state = AppState()

        raw_type = self.persistence.read(CONTENT_TYPE_KEY)
        if raw_type is not None:
            try:
                state = replace(state, content_type=ContentType(raw_type))
            except ValueError:
                logger.warning("Ignoring unknown persisted content type %r", raw_type)

        raw_history = self.persistence.read(FILE_HISTORY_KEY)
        if isinstance(raw_history, list):
            history = [item for item in raw_history if isinstance(item, str) and item]
            state = replace(state, file_history=tuple(history[:FILE_HISTORY_LIMIT]))

        raw_sidebar = self.persistence.read(SIDEBAR_COLLAPSED_KEY)
        if isinstance(raw_sidebar, bool):
            state = replace(state, sidebar_collapsed=raw_sidebar)

        return state

    def subscribe(self, selector: Selector, callback: Listener) -> Callable[[], None]:
        """Call ``callback(selected)`` whenever ``selector(state)`` changes.

        Returns a function removing the subscription.
        """
        entry = (selector, callback)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def _update(self, **changes: Any) -> None:
        previous = self._state
        self._state = replace(previous, **changes)

        if "content_type" in changes and previous.content_type != self._state.content_type:
            self.persistence.write(CONTENT_TYPE_KEY, self._state.content_type.value)
        if "file_history" in changes and previous.file_history != self._state.file_history:
            self.persistence.write(FILE_HISTORY_KEY, list(self._state.file_history))
        if "sidebar_collapsed" in changes and previous.sidebar_collapsed != self._state.sidebar_collapsed:
            self.persistence.write(SIDEBAR_COLLAPSED_KEY, self._state.sidebar_collapsed)

        for selector, callback in list(self._listeners):
            selected = selector(self._state)
            if selected != selector(previous):
                callback(selected)

    def set_content_type(self, content_type: ContentType | str) -> None:
        self._update(content_type=ContentType(content_type))

    def visit(self, path: str) -> None:
        """Record a navigation to ``path`` in the file history."""
        self._update(file_history=tuple(record_route(self._state.file_history, path)))

    def set_sidebar_collapsed(self, collapsed: bool) -> None:
        self._update(sidebar_collapsed=collapsed)

    def toggle_sidebar(self) -> bool:
        self._update(sidebar_collapsed=not self._state.sidebar_collapsed)
        return self._state.sidebar_collapsed

    def set_online(self, online: bool) -> None:
        self._update(online=online)

    def set_content_available_offline(self, available: bool) -> None:
        self._update(content_available_offline=available)

    def _offline_content(self) -> Dict[str, Any]:
        stored = self.persistence.read(OFFLINE_CONTENT_KEY)
        return stored if isinstance(stored, dict) else {}

    def offline_copy(self, path: str) -> Optional[Dict[str, Any]]:
        return self._offline_content().get(path)

    def save_offline(self, path: str, data: Dict[str, Any]) -> None:
        """Keep ``data`` as the offline copy of ``path``, newest last."""
        copies = self._offline_content()
        copies.pop(path, None)
        copies[path] = data
        while len(copies) > OFFLINE_CONTENT_LIMIT:
            del copies[next(iter(copies))]
        self.persistence.write(OFFLINE_CONTENT_KEY, copies)

    async def load_content(
        self, path: str, fetch: Callable[[], Awaitable[Dict[str, Any]]]
    ) -> Dict[str, Any]:
        """Fetch the content at ``path``, falling back to its offline copy.

        A successful fetch refreshes the copy. When the server cannot be
        reached the copy is returned instead, or the :class:`NetworkError`
        propagates if there is none. ``content_available_offline`` tells
        which happened.
        """
        try:
            data = await fetch()
        except NetworkError:
            cached = self.offline_copy(path)
            self.set_content_available_offline(cached is not None)
            if cached is None:
                raise
            logger.info("Serving offline copy of %s", path)
            return cached
        self.save_offline(path, data)
        self.set_content_available_offline(True)
        return data

    def teardown(self) -> None:
        """Drop subscribers and forget durable state (logout)."""
        self._listeners.clear()
        for key in DURABLE_KEYS:
            self.persistence.delete(key)
        self._state = AppState()


__all__ = [
    "CONTENT_TYPE_KEY",
    "SIDEBAR_COLLAPSED_KEY",
    "OFFLINE_CONTENT_KEY",
    "OFFLINE_CONTENT_LIMIT",
    "DURABLE_KEYS",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "AppState",
    "Store",
]
