import pytest
from pydantic import ValidationError

from app.categories import section_title
from app.models import (
    CatalogItem,
    CatalogQuery,
    EpisodeSource,
    SessionSnapshot,
)


def test_catalog_query_defaults_to_latest_category():
    query = CatalogQuery()

    assert query.kind == "category"
    assert query.value == "phim-moi-cap-nhat"
    assert query.page == 1
    assert not query.is_search


def test_catalog_query_coerces_and_validates_values():
    assert CatalogQuery(kind="year", value=2024).value == "2024"
    assert CatalogQuery.search("  dune ").value == "dune"

    with pytest.raises(ValidationError):
        CatalogQuery(kind="search", value="   ")
    with pytest.raises(ValidationError):
        CatalogQuery(page=0)


def test_catalog_query_with_page_keeps_filter():
    query = CatalogQuery(kind="genre", value="hanh-dong")
    later = query.with_page(4)

    assert later.page == 4
    assert (later.kind, later.value) == (query.kind, query.value)
    assert query.page == 1


def test_display_title_falls_back_to_original_name_and_slug():
    assert CatalogItem(name="", original_name="Parasite", slug="parasite").display_title() == "Parasite"
    assert CatalogItem(name=" ", slug="untitled").display_title() == "untitled"


def test_episode_without_sources_is_dead():
    assert EpisodeSource(display_name="Trailer").is_dead
    assert not EpisodeSource(display_name="Full", embed_url="https://player.test/e/1").is_dead


def test_snapshot_empty_only_when_ready():
    assert SessionSnapshot(state="ready").is_empty
    assert not SessionSnapshot(state="loading").is_empty
    assert not SessionSnapshot(
        state="ready", items=[CatalogItem(name="Dune", slug="dune")]
    ).is_empty


def test_section_titles():
    assert section_title(None) == "Latest Updates"
    assert section_title(CatalogQuery.category("phim-bo")) == "Series"
    assert section_title(CatalogQuery(kind="genre", value="hanh-dong")) == "Hanh Dong Movies"
    assert section_title(CatalogQuery(kind="year", value="2024")) == "Movies from 2024"
    assert section_title(CatalogQuery.search("dune")) == 'Results for "dune"'
