"""Pydantic models describing catalog payloads."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

QueryKind = Literal["category", "genre", "country", "year", "search"]
SessionStateName = Literal["idle", "loading", "ready", "failed"]
ViewMode = Literal["list", "detail"]

LATEST_CATEGORY = "phim-moi-cap-nhat"


class CatalogQuery(BaseModel):
    """A single navigation/filter/search request against the catalog."""

    model_config = ConfigDict(frozen=True)

    kind: QueryKind = "category"
    value: str = LATEST_CATEGORY
    page: int = Field(default=1, ge=1)

    @field_validator("value", mode="before")
    @classmethod
    def _strip_value(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("Query value may not be blank")
        return value

    @classmethod
    def category(cls, key: str = LATEST_CATEGORY) -> "CatalogQuery":
        return cls(kind="category", value=key)

    @classmethod
    def search(cls, keyword: str) -> "CatalogQuery":
        return cls(kind="search", value=keyword)

    @property
    def is_search(self) -> bool:
        return self.kind == "search"

    def with_page(self, page: int) -> "CatalogQuery":
        return self.model_copy(update={"page": page})


class CatalogItem(BaseModel):
    """A movie card as shown in list views."""

    name: str
    slug: str
    original_name: str = ""
    poster_url: str = ""
    quality: str = ""
    language: str = ""
    year: str = ""
    current_episode: str = ""
    link: str = ""

    def display_title(self) -> str:
        """Return a human-friendly title for cards."""

        return self.name.strip() or self.original_name.strip() or self.slug


class EpisodeSource(BaseModel):
    """One playable episode with its candidate sources."""

    display_name: str
    embed_url: str | None = None
    hls_url: str | None = None

    @property
    def is_dead(self) -> bool:
        return not (self.embed_url or self.hls_url)


class ServerGroup(BaseModel):
    """Episodes offered by one hosting provider."""

    server_name: str
    episodes: list[EpisodeSource] = Field(default_factory=list)


class MovieDetail(CatalogItem):
    """Full metadata for the detail view."""

    description: str = ""
    duration: str = ""
    category_tags: list[str] = Field(default_factory=list)
    cast: list[str] = Field(default_factory=list)
    servers: list[ServerGroup] = Field(default_factory=list)


class CatalogPage(BaseModel):
    """One normalized upstream page of catalog items."""

    items: list[CatalogItem] = Field(default_factory=list)
    total_pages: int = 1


class PaginationState(BaseModel):
    """Progress of the current query through the upstream pages."""

    current_page: int = 0
    total_pages: int = 1
    auto_load_ceiling: int = 5


class SessionSnapshot(BaseModel):
    """Serializable view of a catalog session handed to renderers."""

    state: SessionStateName
    query: CatalogQuery | None = None
    items: list[CatalogItem] = Field(default_factory=list)
    pagination: PaginationState = Field(default_factory=PaginationState)
    has_more: bool = False
    view_mode: ViewMode = "list"
    detail: MovieDetail | None = None
    error: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.state == "ready" and not self.items
