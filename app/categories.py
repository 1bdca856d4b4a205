"""Browsable category definitions and section headings."""

from __future__ import annotations

from dataclasses import dataclass

from .models import LATEST_CATEGORY, CatalogQuery


@dataclass(frozen=True)
class CategoryDefinition:
    """A navigation category offered by every upstream deployment."""

    key: str
    title: str
    description: str


CATEGORIES: tuple[CategoryDefinition, ...] = (
    CategoryDefinition(
        key=LATEST_CATEGORY,
        title="Latest Updates",
        description="Titles most recently added or updated upstream.",
    ),
    CategoryDefinition(
        key="phim-le",
        title="Movies",
        description="Single-feature films.",
    ),
    CategoryDefinition(
        key="phim-bo",
        title="Series",
        description="Multi-episode series.",
    ),
    CategoryDefinition(
        key="hoat-hinh",
        title="Animation",
        description="Animated films and series.",
    ),
    CategoryDefinition(
        key="phim-dang-chieu",
        title="Now Showing",
        description="Titles still releasing new episodes.",
    ),
)


def category_title(key: str) -> str:
    for definition in CATEGORIES:
        if definition.key == key:
            return definition.title
    return "Movie List"


def section_title(query: CatalogQuery | None) -> str:
    """Return the heading shown above the list view for ``query``."""

    if query is None:
        return category_title(LATEST_CATEGORY)
    if query.kind == "search":
        return f'Results for "{query.value}"'
    if query.kind == "year":
        return f"Movies from {query.value}"
    if query.kind in {"genre", "country"}:
        label = query.value.replace("-", " ").title()
        return f"{label} Movies"
    return category_title(query.value)
