"""Map the upstream catalog dialects onto the canonical item/detail models."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping
from urllib.parse import urlparse

from ..models import CatalogItem, CatalogPage, EpisodeSource, MovieDetail, ServerGroup
from ..utils import clean_text, optional_url, slug_from_link, slugify

logger = logging.getLogger(__name__)

IMAGE_BASE_KEYS = ("pathImage", "APP_DOMAIN_CDN_IMAGE")
TOTAL_PAGE_KEYS = ("total_page", "totalPages", "total_pages", "totalPage")


class Dialect(str, Enum):
    """Structural families of upstream responses."""

    LINK_LIST = "link-list"
    ENVELOPE = "envelope"
    MOVIE_OBJECT = "movie-object"


def detect_dialect(payload: Any) -> Dialect:
    """Classify a payload by its structure."""

    if isinstance(payload, list):
        return Dialect.LINK_LIST
    if isinstance(payload, dict):
        if isinstance(payload.get("movie"), dict):
            return Dialect.MOVIE_OBJECT
        data = payload.get("data")
        if isinstance(data, dict) and isinstance(data.get("item"), dict):
            return Dialect.MOVIE_OBJECT
        if "items" in payload or isinstance(data, (dict, list)):
            return Dialect.ENVELOPE
        return Dialect.MOVIE_OBJECT
    raise ValueError(f"Unsupported payload type '{type(payload).__name__}'")


class ResponseNormalizer:
    """Convert raw API payloads into ``CatalogItem`` and ``MovieDetail`` models."""

    def normalize(self, payload: Any) -> list[CatalogItem]:
        """Return the catalog items carried by a list payload."""

        dialect = detect_dialect(payload)
        if dialect is Dialect.LINK_LIST:
            return self._collect(payload, image_base=None)
        if dialect is Dialect.ENVELOPE:
            entries, image_base = self._envelope_entries(payload)
            return self._collect(entries, image_base=image_base)
        logger.debug("List request answered with a detail-shaped payload")
        return []

    def normalize_page(self, payload: Any) -> CatalogPage:
        return CatalogPage(items=self.normalize(payload), total_pages=self.total_pages(payload))

    def normalize_detail(self, payload: Any, requested_slug: str) -> MovieDetail:
        """Return the detail model for a detail payload."""

        if not isinstance(payload, dict):
            raise ValueError("Detail payload must be an object")

        movie, episodes, image_base = self._movie_parts(payload)
        item = self._map_envelope_item(movie, image_base=image_base)
        name = clean_text(movie.get("name") or movie.get("title"))
        description = clean_text(
            movie.get("content") or movie.get("description") or movie.get("synopsis")
        )

        return MovieDetail(
            name=name,
            slug=clean_text(movie.get("slug")) or requested_slug,
            original_name=item.original_name if item else "",
            poster_url=self._resolve_image(
                movie.get("poster_url") or movie.get("thumb_url") or movie.get("image"),
                image_base,
            ),
            quality=item.quality if item else "",
            language=item.language if item else "",
            year=item.year if item else "",
            current_episode=item.current_episode if item else "",
            link=clean_text(movie.get("link")),
            description=description,
            duration=clean_text(movie.get("time") or movie.get("duration")),
            category_tags=flatten_categories(movie.get("category") or movie.get("tags")),
            cast=_names(movie.get("actor") or movie.get("casts") or movie.get("cast")),
            servers=normalize_servers(episodes),
        )

    def total_pages(self, payload: Any) -> int:
        """Return the upstream-reported page count, defaulting to one."""

        if not isinstance(payload, dict):
            return 1
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        params = data.get("params") if isinstance(data.get("params"), dict) else {}
        candidates = (
            payload.get("paginate"),
            payload.get("pagination"),
            data.get("pagination"),
            params.get("pagination"),
        )
        for candidate in candidates:
            if not isinstance(candidate, Mapping):
                continue
            for key in TOTAL_PAGE_KEYS:
                try:
                    total = int(candidate.get(key))
                except (TypeError, ValueError):
                    continue
                if total >= 1:
                    return total
        return 1

    def _collect(
        self, entries: Any, *, image_base: str | None
    ) -> list[CatalogItem]:
        if not isinstance(entries, list):
            return []
        items: list[CatalogItem] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            if entry.get("slug") is None and entry.get("link"):
                item = self._map_link_post(entry)
            else:
                item = self._map_envelope_item(entry, image_base=image_base)
            if item is not None:
                items.append(item)
        return items

    @staticmethod
    def _envelope_entries(payload: dict[str, Any]) -> tuple[Any, str | None]:
        data = payload.get("data")
        image_base = _image_base(payload)
        if isinstance(payload.get("items"), list):
            return payload["items"], image_base
        if isinstance(data, dict):
            return data.get("items") or [], image_base or _image_base(data)
        if isinstance(data, list):
            return data, image_base
        return [], image_base

    def _movie_parts(
        self, payload: dict[str, Any]
    ) -> tuple[dict[str, Any], Any, str | None]:
        data = payload.get("data")
        if isinstance(payload.get("movie"), dict):
            movie = payload["movie"]
            image_base = _image_base(payload)
        elif isinstance(data, dict) and isinstance(data.get("item"), dict):
            movie = data["item"]
            image_base = _image_base(data)
        else:
            movie = payload
            image_base = _image_base(payload)
        episodes = payload.get("episodes") or movie.get("episodes") or movie.get("linkList")
        return movie, episodes, image_base

    @staticmethod
    def _map_link_post(entry: dict[str, Any]) -> CatalogItem | None:
        name = clean_text(entry.get("title") or entry.get("name"))
        link = clean_text(entry.get("link"))
        slug = slug_from_link(link) or slugify(name)
        if not slug:
            return None
        return CatalogItem(
            name=name,
            slug=slug,
            poster_url=clean_text(entry.get("image")),
            link=link,
        )

    def _map_envelope_item(
        self, entry: dict[str, Any], *, image_base: str | None
    ) -> CatalogItem | None:
        name = clean_text(entry.get("name") or entry.get("title"))
        link = clean_text(entry.get("link"))
        slug = clean_text(entry.get("slug")) or slug_from_link(link) or slugify(name)
        if not slug:
            return None
        return CatalogItem(
            name=name,
            slug=slug,
            original_name=clean_text(
                entry.get("origin_name") or entry.get("original_name")
            ),
            poster_url=self._resolve_image(
                entry.get("thumb_url") or entry.get("poster_url") or entry.get("image"),
                image_base,
            ),
            quality=clean_text(entry.get("quality")),
            language=clean_text(entry.get("lang") or entry.get("language")),
            year=clean_text(entry.get("year")),
            current_episode=clean_text(
                entry.get("episode_current") or entry.get("current_episode")
            ),
            link=link,
        )

    @staticmethod
    def _resolve_image(value: Any, image_base: str | None) -> str:
        url = clean_text(value)
        if not url or url.startswith(("http://", "https://", "//", "data:")):
            return url
        if not image_base:
            return url
        return f"{image_base.rstrip('/')}/{url.lstrip('/')}"


def flatten_categories(raw: Any) -> list[str]:
    """Flatten category data into ordered tag names.

    Accepts a list of ``{name}`` objects (or plain strings) and a mapping of
    groups that each hold a ``list`` of ``{name}`` objects. Group order and
    in-group order are preserved.
    """

    if isinstance(raw, list):
        return _names(raw)
    if isinstance(raw, Mapping):
        tags: list[str] = []
        for group in raw.values():
            if isinstance(group, Mapping):
                tags.extend(_names(group.get("list")))
        return tags
    return []


def normalize_servers(raw: Any) -> list[ServerGroup]:
    """Convert an upstream list of hosting providers into server groups."""

    if not isinstance(raw, list):
        return []
    servers: list[ServerGroup] = []
    for server_index, server in enumerate(raw, start=1):
        if not isinstance(server, dict):
            continue
        server_name = clean_text(
            server.get("server_name") or server.get("title") or server.get("name")
        ) or f"Server {server_index}"
        raw_episodes = (
            server.get("server_data")
            or server.get("items")
            or server.get("directLinks")
            or []
        )
        episodes: list[EpisodeSource] = []
        if isinstance(raw_episodes, list):
            for episode_index, episode in enumerate(raw_episodes, start=1):
                if not isinstance(episode, dict):
                    continue
                episodes.append(_episode_source(episode, episode_index))
        servers.append(ServerGroup(server_name=server_name, episodes=episodes))
    return servers


def _episode_source(episode: dict[str, Any], index: int) -> EpisodeSource:
    display_name = clean_text(episode.get("name") or episode.get("title")) or f"Episode {index}"
    embed_url = optional_url(episode.get("link_embed") or episode.get("embed"))
    hls_url = optional_url(episode.get("link_m3u8") or episode.get("m3u8"))
    bare_link = optional_url(episode.get("link"))
    if bare_link and not (embed_url or hls_url):
        if _is_hls_manifest(bare_link):
            hls_url = bare_link
        else:
            embed_url = bare_link
    return EpisodeSource(display_name=display_name, embed_url=embed_url, hls_url=hls_url)


def _is_hls_manifest(url: str) -> bool:
    return urlparse(url).path.lower().endswith(".m3u8")


def _image_base(container: Mapping[str, Any]) -> str | None:
    for key in IMAGE_BASE_KEYS:
        value = container.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _names(raw: Any) -> list[str]:
    if isinstance(raw, str):
        return [part.strip() for part in raw.split(",") if part.strip()]
    if not isinstance(raw, list):
        return []
    names: list[str] = []
    for entry in raw:
        if isinstance(entry, Mapping):
            name = clean_text(entry.get("name"))
        else:
            name = clean_text(entry)
        if name:
            names.append(name)
    return names
