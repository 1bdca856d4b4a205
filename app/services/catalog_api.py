"""Catalog API client built on the resilient fetcher and normalizer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal
from urllib.parse import quote, urlencode

from ..models import LATEST_CATEGORY, CatalogItem, CatalogPage, CatalogQuery, MovieDetail
from .fetcher import ResilientFetcher
from .normalizer import ResponseNormalizer

logger = logging.getLogger(__name__)

LayoutName = Literal["gogophim", "kkphim", "nguonc"]


@dataclass(frozen=True)
class ApiLayout:
    """Endpoint naming of one upstream deployment."""

    name: str
    default_base_url: str
    page_size: int = 24
    search_limit: int = 20

    def list_path(self, query: CatalogQuery) -> str:
        raise NotImplementedError

    def search_path(self, keyword: str) -> str:
        raise NotImplementedError

    def detail_path(self, slug: str) -> str:
        raise NotImplementedError

    def path_for(self, query: CatalogQuery) -> str:
        if query.is_search:
            return self.search_path(query.value)
        return self.list_path(query)


class GogoPhimLayout(ApiLayout):
    """``/posts`` feeds answered with bare ``{title, link, image}`` arrays."""

    def list_path(self, query: CatalogQuery) -> str:
        params: dict[str, object]
        if query.kind == "genre":
            params = {"genre": query.value}
        elif query.kind == "category" and query.value != LATEST_CATEGORY:
            params = {"filter": query.value}
        else:
            # No country or year filter upstream; those browse the latest feed.
            params = {"filter": "latest"}
        params.update({"page": query.page, "limit": self.page_size})
        return f"/posts?{urlencode(params)}"

    def search_path(self, keyword: str) -> str:
        params = {"query": keyword, "page": 1, "limit": self.search_limit}
        return f"/search?{urlencode(params)}"

    def detail_path(self, slug: str) -> str:
        return f"/meta?{urlencode({'type': 'movie', 'slug': slug})}"


class KKPhimLayout(ApiLayout):
    """``phimapi``-style deployment with ``/v1/api`` listing endpoints."""

    _PREFIXES = {
        "category": "danh-sach",
        "genre": "the-loai",
        "country": "quoc-gia",
        "year": "nam",
    }

    def list_path(self, query: CatalogQuery) -> str:
        if query.kind == "category" and query.value == LATEST_CATEGORY:
            return f"/danh-sach/{LATEST_CATEGORY}?{urlencode({'page': query.page})}"
        prefix = self._PREFIXES[query.kind]
        params = urlencode({"page": query.page, "limit": self.page_size})
        return f"/v1/api/{prefix}/{quote(query.value, safe='')}?{params}"

    def search_path(self, keyword: str) -> str:
        params = {"keyword": keyword, "limit": self.search_limit}
        return f"/v1/api/tim-kiem?{urlencode(params)}"

    def detail_path(self, slug: str) -> str:
        return f"/phim/{quote(slug, safe='')}"


class NguonCLayout(ApiLayout):
    """``/films`` deployment whose details nest categories in groups."""

    _PREFIXES = {
        "category": "danh-sach",
        "genre": "the-loai",
        "country": "quoc-gia",
        "year": "nam-phat-hanh",
    }

    def list_path(self, query: CatalogQuery) -> str:
        params = urlencode({"page": query.page})
        if query.kind == "category" and query.value == LATEST_CATEGORY:
            return f"/films/{LATEST_CATEGORY}?{params}"
        prefix = self._PREFIXES[query.kind]
        return f"/films/{prefix}/{quote(query.value, safe='')}?{params}"

    def search_path(self, keyword: str) -> str:
        return f"/films/search?{urlencode({'keyword': keyword})}"

    def detail_path(self, slug: str) -> str:
        return f"/film/{quote(slug, safe='')}"


def build_layout(
    name: LayoutName, *, page_size: int = 24, search_limit: int = 20
) -> ApiLayout:
    """Return the endpoint layout for the configured deployment."""

    layouts: dict[str, tuple[type[ApiLayout], str]] = {
        "gogophim": (GogoPhimLayout, "https://app.gogophim.com/v1"),
        "kkphim": (KKPhimLayout, "https://phimapi.com"),
        "nguonc": (NguonCLayout, "https://phim.nguonc.com/api"),
    }
    try:
        layout_cls, base_url = layouts[name]
    except KeyError as exc:
        raise ValueError(f"Unknown API layout: {name}") from exc
    return layout_cls(
        name=name,
        default_base_url=base_url,
        page_size=page_size,
        search_limit=search_limit,
    )


class CatalogApi:
    """Fetch and normalize catalog pages and movie details."""

    def __init__(
        self,
        fetcher: ResilientFetcher,
        layout: ApiLayout,
        *,
        base_url: str | None = None,
        normalizer: ResponseNormalizer | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._layout = layout
        self._base_url = (base_url or layout.default_base_url).rstrip("/")
        self._normalizer = normalizer or ResponseNormalizer()

    def url_for(self, query: CatalogQuery) -> str:
        return f"{self._base_url}{self._layout.path_for(query)}"

    async def fetch_page(self, query: CatalogQuery) -> CatalogPage:
        """Fetch one page of the query; raises ``UnreachableError`` on exhaustion."""

        payload = await self._fetcher.fetch(self.url_for(query))
        page = self._normalizer.normalize_page(payload)
        logger.debug(
            "Page %s of %s %r: %s items (total pages %s)",
            query.page,
            query.kind,
            query.value,
            len(page.items),
            page.total_pages,
        )
        return page

    async def fetch_detail(self, slug: str) -> MovieDetail:
        url = f"{self._base_url}{self._layout.detail_path(slug)}"
        payload = await self._fetcher.fetch(url)
        return self._normalizer.normalize_detail(payload, slug)

    async def suggest(self, keyword: str, *, limit: int = 8) -> list[CatalogItem]:
        """Return a handful of search matches for autocomplete."""

        normalized = (keyword or "").strip()
        if len(normalized) < 2:
            return []
        page = await self.fetch_page(CatalogQuery.search(normalized))
        return page.items[:limit]

    async def featured(self, *, limit: int = 5) -> list[CatalogItem]:
        """Return the first items of the latest feed for the hero slider."""

        page = await self.fetch_page(CatalogQuery.category())
        return page.items[:limit]
