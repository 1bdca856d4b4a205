"""Per-client catalog browsing state and its paginated fetch loop."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable

from ..models import (
    CatalogItem,
    CatalogQuery,
    MovieDetail,
    PaginationState,
    SessionSnapshot,
    SessionStateName,
    ViewMode,
)
from .catalog_api import CatalogApi
from .fetcher import UnreachableError

logger = logging.getLogger(__name__)

DEFAULT_AUTO_LOAD_CEILING = 5
FAILED_LOAD_MESSAGE = "Could not load the movie list. Please try again."


class SessionBusyError(RuntimeError):
    """A page request arrived while the session was still loading."""


class CatalogSession:
    """Holds the active query and its accumulated results.

    ``set_query`` always starts over from page 1 and auto-aggregates further
    pages (up to the ceiling) before the session becomes ready. Every load is
    tagged with a generation number; results that come back for a superseded
    generation are dropped instead of overwriting newer state.
    """

    def __init__(
        self,
        api: CatalogApi,
        *,
        auto_load_ceiling: int = DEFAULT_AUTO_LOAD_CEILING,
    ) -> None:
        self._api = api
        self._ceiling = max(1, auto_load_ceiling)
        self._state: SessionStateName = "idle"
        self._query: CatalogQuery | None = None
        self._items: list[CatalogItem] = []
        self._current_page = 0
        self._total_pages = 1
        self._error: str | None = None
        self._generation = 0
        self._view_mode: ViewMode = "list"
        self._detail: MovieDetail | None = None
        self._detail_generation = 0

    @property
    def state(self) -> SessionStateName:
        return self._state

    @property
    def query(self) -> CatalogQuery | None:
        return self._query

    @property
    def items(self) -> tuple[CatalogItem, ...]:
        return tuple(self._items)

    @property
    def view_mode(self) -> ViewMode:
        return self._view_mode

    @property
    def pagination(self) -> PaginationState:
        return PaginationState(
            current_page=self._current_page,
            total_pages=self._total_pages,
            auto_load_ceiling=self._ceiling,
        )

    @property
    def has_more(self) -> bool:
        if self._query is None or self._query.is_search:
            return False
        return self._state == "ready" and self._current_page < self._total_pages

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            query=self._query,
            items=list(self._items),
            pagination=self.pagination,
            has_more=self.has_more,
            view_mode=self._view_mode,
            detail=self._detail,
            error=self._error,
        )

    async def set_query(self, query: CatalogQuery) -> SessionSnapshot:
        """Replace the active query and load it, auto-aggregating pages."""

        query = query.with_page(1)
        self._generation += 1
        generation = self._generation
        self._query = query
        self._items = []
        self._current_page = 0
        self._total_pages = 1
        self._error = None
        self._state = "loading"
        self._view_mode = "list"
        self._detail = None

        try:
            return await self._load_query(query, generation)
        finally:
            if self._is_current(generation) and self._state == "loading":
                logger.warning("Loading %s %r was interrupted", query.kind, query.value)
                self._items = []
                self._error = FAILED_LOAD_MESSAGE
                self._state = "failed"

    async def _load_query(self, query: CatalogQuery, generation: int) -> SessionSnapshot:
        try:
            first = await self._api.fetch_page(query)
        except UnreachableError as exc:
            if self._is_current(generation):
                logger.warning("Loading %s %r failed: %s", query.kind, query.value, exc)
                self._items = []
                self._error = FAILED_LOAD_MESSAGE
                self._state = "failed"
            return self.snapshot()

        if not self._is_current(generation):
            logger.debug("Discarding stale page 1 for %s %r", query.kind, query.value)
            return self.snapshot()

        self._items = list(first.items)
        self._current_page = 1
        self._total_pages = first.total_pages

        while self._should_auto_load():
            next_query = query.with_page(self._current_page + 1)
            try:
                page = await self._api.fetch_page(next_query)
            except UnreachableError as exc:
                if self._is_current(generation):
                    logger.warning(
                        "Stopping auto-load of %s %r at page %s: %s",
                        query.kind,
                        query.value,
                        next_query.page,
                        exc,
                    )
                break
            if not self._is_current(generation):
                logger.debug(
                    "Discarding stale page %s for %s %r",
                    next_query.page,
                    query.kind,
                    query.value,
                )
                return self.snapshot()
            self._items.extend(page.items)
            self._current_page = next_query.page
            self._total_pages = page.total_pages

        if self._is_current(generation):
            self._state = "ready"
        return self.snapshot()

    async def load_more(self) -> SessionSnapshot:
        """Fetch the single next page of the active query."""

        if self._state == "loading":
            raise SessionBusyError("A catalog request is already in progress")
        if self._query is None or not self.has_more:
            return self.snapshot()

        generation = self._generation
        query = self._query.with_page(self._current_page + 1)
        self._state = "loading"
        self._error = None
        try:
            page = await self._api.fetch_page(query)
        except UnreachableError as exc:
            logger.warning("Loading page %s failed: %s", query.page, exc)
            page = None
        finally:
            if self._is_current(generation) and self._state == "loading":
                self._state = "ready"

        if not self._is_current(generation):
            return self.snapshot()
        if page is None:
            self._error = FAILED_LOAD_MESSAGE
        else:
            self._items.extend(page.items)
            self._current_page = query.page
            self._total_pages = page.total_pages
        return self.snapshot()

    async def open_detail(self, slug: str) -> MovieDetail:
        """Switch to the detail view for ``slug``; the latest request wins."""

        self._detail_generation += 1
        generation = self._detail_generation
        self._view_mode = "detail"
        detail = await self._api.fetch_detail(slug)
        if generation == self._detail_generation and self._view_mode == "detail":
            self._detail = detail
        else:
            logger.debug("Discarding stale detail for %s", slug)
        return detail

    def show_list(self) -> SessionSnapshot:
        self._detail_generation += 1
        self._view_mode = "list"
        self._detail = None
        return self.snapshot()

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _should_auto_load(self) -> bool:
        if self._query is None or self._query.is_search:
            return False
        return self._current_page < self._total_pages and self._current_page < self._ceiling


class SessionRegistry:
    """Bounded map of client identifiers to their catalog sessions."""

    def __init__(
        self,
        factory: Callable[[], CatalogSession],
        *,
        max_sessions: int = 256,
    ) -> None:
        self._factory = factory
        self._max_sessions = max(1, max_sessions)
        self._sessions: OrderedDict[str, CatalogSession] = OrderedDict()

    def get(self, session_id: str) -> CatalogSession:
        session = self._sessions.get(session_id)
        if session is None:
            session = self._factory()
            self._sessions[session_id] = session
            while len(self._sessions) > self._max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.debug("Evicted catalog session %s", evicted)
        else:
            self._sessions.move_to_end(session_id)
        return session

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
