"""Substring search over note and todo names, note text and todo node content."""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import func, or_, select

from haku.core.content import ContentType
from haku.core.errors import ValidationError

from ..models.note import FileEntry, SearchResults
from . import schema
from .database import DatabaseService, get_database_service

logger = logging.getLogger(__name__)

SEARCH_QUERY_MIN_LENGTH = 3
SEARCH_RESULT_LIMIT = 25


def _like_pattern(query: str) -> str:
    escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SearchService:
    def __init__(
        self,
        db_service: Optional[DatabaseService] = None,
        page_size: int = SEARCH_RESULT_LIMIT,
    ):
        self._db = db_service or get_database_service()
        self.page_size = page_size

    def search(self, user_id: str, query: str, page: int = 0) -> SearchResults:
        """Return one page of matches ordered by name.

        Raises:
            ValidationError: when the query is shorter than 3 characters or the
                page is negative.
        """
        query = query.strip()
        if len(query) < SEARCH_QUERY_MIN_LENGTH:
            raise ValidationError(
                f"The search query must be at least {SEARCH_QUERY_MIN_LENGTH} characters long.",
                {"query": query},
            )
        if page < 0:
            raise ValidationError("The search page must not be negative.", {"page": page})

        pattern = _like_pattern(query)
        with self._db.session() as session:
            notes = session.execute(
                select(schema.Note.id, schema.Note.name, schema.Note.slug).where(
                    schema.Note.user_id == user_id,
                    or_(
                        func.lower(schema.Note.name).like(pattern, escape="\\"),
                        func.lower(schema.Note.text).like(pattern, escape="\\"),
                    ),
                )
            ).all()
            matching_nodes = select(schema.TodoNode.todo_id).where(
                func.lower(schema.TodoNode.content).like(pattern, escape="\\")
            )
            todos = session.execute(
                select(schema.Todo.id, schema.Todo.name, schema.Todo.slug).where(
                    schema.Todo.user_id == user_id,
                    or_(
                        func.lower(schema.Todo.name).like(pattern, escape="\\"),
                        schema.Todo.id.in_(matching_nodes),
                    ),
                )
            ).all()

        matches: List[FileEntry] = [
            FileEntry(id=row.id, name=row.name, slug=row.slug, type=ContentType.NOTE) for row in notes
        ] + [FileEntry(id=row.id, name=row.name, slug=row.slug, type=ContentType.TODO) for row in todos]
        matches.sort(key=lambda entry: (entry.name.casefold(), entry.type.value, entry.id))

        offset = page * self.page_size
        results = matches[offset : offset + self.page_size]
        next_page = page + 1 if len(matches) > offset + self.page_size else None
        logger.debug("Search %r page %d: %d of %d matches", query, page, len(results), len(matches))
        return SearchResults(results=results, next_page=next_page)


__all__ = ["SearchService", "SEARCH_QUERY_MIN_LENGTH", "SEARCH_RESULT_LIMIT"]
