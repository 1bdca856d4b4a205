"""Tests for the catalog session state machine and its page aggregation."""

from __future__ import annotations

import asyncio
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.models import CatalogItem, CatalogPage, CatalogQuery, MovieDetail
from app.services.catalog_api import CatalogApi, build_layout
from app.services.fetcher import ResilientFetcher, UnreachableError
from app.services.relays import ProxyChain
from app.services.session import CatalogSession, SessionBusyError, SessionRegistry


def _page(page: int, *, total_pages: int, count: int = 2) -> CatalogPage:
    return CatalogPage(
        items=[
            CatalogItem(name=f"Title {page}-{index}", slug=f"title-{page}-{index}")
            for index in range(count)
        ],
        total_pages=total_pages,
    )


class StubCatalogApi(CatalogApi):
    """Serve canned pages and record every request."""

    def __init__(
        self,
        total_pages: int = 1,
        failing_pages: set[int] | None = None,
        broken_pages: set[int] | None = None,
    ):
        self.total_pages = total_pages
        self.failing_pages = failing_pages or set()
        self.broken_pages = broken_pages or set()
        self.calls: list[CatalogQuery] = []
        self.gates: dict[tuple[str, int], asyncio.Event] = {}

    async def fetch_page(self, query: CatalogQuery) -> CatalogPage:
        self.calls.append(query)
        gate = self.gates.get((query.value, query.page))
        if gate is not None:
            await gate.wait()
        if query.page in self.failing_pages:
            raise UnreachableError(f"page-{query.page}", [], None)
        if query.page in self.broken_pages:
            raise RuntimeError(f"malformed page {query.page}")
        return _page(query.page, total_pages=self.total_pages)

    async def fetch_detail(self, slug: str) -> MovieDetail:
        gate = self.gates.get((slug, 0))
        if gate is not None:
            await gate.wait()
        return MovieDetail(name=slug.title(), slug=slug)


@pytest.mark.anyio("asyncio")
async def test_auto_aggregation_stops_at_ceiling_over_http() -> None:
    """Ten upstream pages with a ceiling of five fetch pages one to five in order."""

    requested_pages: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        page = int(parse_qs(urlparse(str(request.url)).query)["page"][0])
        requested_pages.append(page)
        return httpx.Response(
            200,
            json={
                "status": True,
                "items": [{"name": f"Movie {page}", "slug": f"movie-{page}"}],
                "pagination": {"currentPage": page, "totalPages": 10},
            },
        )

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as http_client:
        fetcher = ResilientFetcher(http_client, ProxyChain([]), timeout=1.0)
        api = CatalogApi(fetcher, build_layout("kkphim"), base_url="https://api.test")
        session = CatalogSession(api, auto_load_ceiling=5)

        snapshot = await session.set_query(CatalogQuery.category())

    assert requested_pages == [1, 2, 3, 4, 5]
    assert [item.slug for item in snapshot.items] == [f"movie-{page}" for page in range(1, 6)]
    assert snapshot.state == "ready"
    assert snapshot.pagination.current_page == 5
    assert snapshot.pagination.total_pages == 10
    assert snapshot.has_more is True


@pytest.mark.anyio("asyncio")
async def test_aggregation_stops_when_pages_run_out() -> None:
    api = StubCatalogApi(total_pages=3)
    session = CatalogSession(api, auto_load_ceiling=5)

    snapshot = await session.set_query(CatalogQuery(kind="genre", value="hanh-dong"))

    assert [query.page for query in api.calls] == [1, 2, 3]
    assert len(snapshot.items) == 6
    assert snapshot.has_more is False


@pytest.mark.anyio("asyncio")
async def test_search_never_fetches_a_second_page() -> None:
    api = StubCatalogApi(total_pages=10)
    session = CatalogSession(api)

    snapshot = await session.set_query(CatalogQuery.search("dune"))

    assert [query.page for query in api.calls] == [1]
    assert snapshot.state == "ready"
    assert snapshot.has_more is False

    await session.load_more()
    assert len(api.calls) == 1


@pytest.mark.anyio("asyncio")
async def test_first_page_failure_moves_to_failed_state() -> None:
    api = StubCatalogApi(total_pages=4, failing_pages={1})
    session = CatalogSession(api)

    snapshot = await session.set_query(CatalogQuery.category())

    assert snapshot.state == "failed"
    assert snapshot.items == []
    assert snapshot.error
    assert len(api.calls) == 1


@pytest.mark.anyio("asyncio")
async def test_later_page_failure_keeps_partial_results() -> None:
    api = StubCatalogApi(total_pages=8, failing_pages={3})
    session = CatalogSession(api, auto_load_ceiling=5)

    snapshot = await session.set_query(CatalogQuery.category("phim-bo"))

    assert [query.page for query in api.calls] == [1, 2, 3]
    assert snapshot.state == "ready"
    assert [item.slug for item in snapshot.items] == [
        "title-1-0",
        "title-1-1",
        "title-2-0",
        "title-2-1",
    ]
    assert snapshot.error is None
    assert snapshot.pagination.current_page == 2


@pytest.mark.anyio("asyncio")
async def test_new_query_resets_previous_results() -> None:
    api = StubCatalogApi(total_pages=1)
    session = CatalogSession(api)

    await session.set_query(CatalogQuery.category())
    snapshot = await session.set_query(CatalogQuery(kind="year", value="2024"))

    assert len(snapshot.items) == 2
    assert snapshot.query == CatalogQuery(kind="year", value="2024")


@pytest.mark.anyio("asyncio")
async def test_stale_response_for_superseded_query_is_discarded() -> None:
    """A late page for an old query must not overwrite the newer results."""

    api = StubCatalogApi(total_pages=1)
    slow_gate = asyncio.Event()
    api.gates[("phim-le", 1)] = slow_gate
    session = CatalogSession(api)

    slow = asyncio.create_task(session.set_query(CatalogQuery.category("phim-le")))
    await asyncio.sleep(0)
    assert session.state == "loading"

    fresh = await session.set_query(CatalogQuery.category("phim-bo"))
    slow_gate.set()
    await slow

    assert fresh.state == "ready"
    assert session.query == CatalogQuery.category("phim-bo")
    assert session.state == "ready"
    assert len(session.items) == 2


@pytest.mark.anyio("asyncio")
async def test_stale_page_during_aggregation_is_discarded() -> None:
    """A query superseded between its pages stops aggregating and appends nothing."""

    api = StubCatalogApi(total_pages=3)
    page_two_gate = asyncio.Event()
    api.gates[("phim-le", 2)] = page_two_gate
    session = CatalogSession(api, auto_load_ceiling=5)

    slow = asyncio.create_task(session.set_query(CatalogQuery.category("phim-le")))
    await asyncio.sleep(0)
    assert session.state == "loading"

    await session.set_query(CatalogQuery.category("phim-bo"))
    page_two_gate.set()
    await slow

    assert [query.page for query in api.calls if query.value == "phim-le"] == [1, 2]
    assert session.query == CatalogQuery.category("phim-bo")
    assert session.state == "ready"
    assert len(session.items) == 6
    assert session.pagination.current_page == 3


@pytest.mark.anyio("asyncio")
async def test_unexpected_error_on_first_page_does_not_leave_session_loading() -> None:
    api = StubCatalogApi(total_pages=4, broken_pages={1})
    session = CatalogSession(api)

    with pytest.raises(RuntimeError):
        await session.set_query(CatalogQuery.category())

    assert session.state == "failed"
    assert session.snapshot().error
    assert session.items == ()
    snapshot = await session.load_more()
    assert snapshot.state == "failed"


@pytest.mark.anyio("asyncio")
async def test_unexpected_error_during_aggregation_fails_the_query() -> None:
    api = StubCatalogApi(total_pages=4, broken_pages={2})
    session = CatalogSession(api)

    with pytest.raises(RuntimeError):
        await session.set_query(CatalogQuery.category())

    assert session.state == "failed"

    api.broken_pages.clear()
    snapshot = await session.set_query(CatalogQuery.category())
    assert snapshot.state == "ready"


@pytest.mark.anyio("asyncio")
async def test_unexpected_error_in_load_more_returns_to_ready() -> None:
    api = StubCatalogApi(total_pages=9, broken_pages={3})
    session = CatalogSession(api, auto_load_ceiling=2)
    await session.set_query(CatalogQuery.category())

    with pytest.raises(RuntimeError):
        await session.load_more()

    assert session.state == "ready"
    assert len(session.items) == 4
    api.broken_pages.clear()
    snapshot = await session.load_more()
    assert snapshot.pagination.current_page == 3


@pytest.mark.anyio("asyncio")
async def test_load_more_fetches_exactly_one_page() -> None:
    api = StubCatalogApi(total_pages=9)
    session = CatalogSession(api, auto_load_ceiling=2)

    await session.set_query(CatalogQuery.category())
    snapshot = await session.load_more()

    assert [query.page for query in api.calls] == [1, 2, 3]
    assert snapshot.pagination.current_page == 3
    assert len(snapshot.items) == 6
    assert snapshot.has_more is True


@pytest.mark.anyio("asyncio")
async def test_load_more_failure_keeps_items_and_reports_error() -> None:
    api = StubCatalogApi(total_pages=9, failing_pages={3})
    session = CatalogSession(api, auto_load_ceiling=2)

    await session.set_query(CatalogQuery.category())
    snapshot = await session.load_more()

    assert snapshot.state == "ready"
    assert snapshot.error
    assert len(snapshot.items) == 4
    assert snapshot.pagination.current_page == 2


@pytest.mark.anyio("asyncio")
async def test_load_more_while_loading_is_rejected() -> None:
    api = StubCatalogApi(total_pages=1)
    gate = asyncio.Event()
    api.gates[("phim-moi-cap-nhat", 1)] = gate
    session = CatalogSession(api)

    pending = asyncio.create_task(session.set_query(CatalogQuery.category()))
    await asyncio.sleep(0)

    with pytest.raises(SessionBusyError):
        await session.load_more()

    gate.set()
    await pending


@pytest.mark.anyio("asyncio")
async def test_latest_detail_request_wins() -> None:
    api = StubCatalogApi()
    slow_gate = asyncio.Event()
    api.gates[("inception", 0)] = slow_gate
    session = CatalogSession(api)

    slow = asyncio.create_task(session.open_detail("inception"))
    await asyncio.sleep(0)
    await session.open_detail("dune")
    slow_gate.set()
    await slow

    snapshot = session.snapshot()
    assert snapshot.view_mode == "detail"
    assert snapshot.detail is not None
    assert snapshot.detail.slug == "dune"

    assert session.show_list().view_mode == "list"
    assert session.snapshot().detail is None


def test_registry_evicts_least_recently_used_sessions() -> None:
    registry = SessionRegistry(lambda: CatalogSession(StubCatalogApi()), max_sessions=2)

    first = registry.get("a")
    registry.get("b")
    assert registry.get("a") is first
    registry.get("c")

    assert "a" in registry
    assert "b" not in registry
    assert len(registry) == 2
