"""HTML page rendering for the catalog list and detail views."""

from __future__ import annotations

import json
import re
from html import escape
from textwrap import dedent
from urllib.parse import quote, urlencode

from .categories import CATEGORIES, section_title
from .config import Settings
from .models import CatalogItem, MovieDetail, SessionSnapshot
from .services.playback import STREAM_ERROR_MESSAGE


PAGE_TEMPLATE = dedent(
    """
<!DOCTYPE html>
<html lang="en" data-theme="__THEME__">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>__TITLE__ · __APP_NAME__</title>
    <style>
        :root {
            font-family: 'Inter', 'Segoe UI', system-ui, -apple-system, sans-serif;
            --surface: #ffffff;
            --surface-muted: #f1f2f6;
            --text-primary: #111318;
            --text-muted: #5b6170;
            --accent: #818cf8;
        }
        [data-theme="dark"] {
            --surface: #141414;
            --surface-muted: #090909;
            --text-primary: #f5f5f5;
            --text-muted: #a6a6a6;
        }
        body {
            margin: 0;
            background: var(--surface-muted);
            color: var(--text-primary);
        }
        header, main {
            max-width: 1200px;
            margin: 0 auto;
            padding: 1.25rem 1.5rem;
        }
        nav a, .badge {
            display: inline-block;
            margin: 0 0.5rem 0.5rem 0;
            padding: 0.25rem 0.75rem;
            border-radius: 999px;
            background: var(--surface);
            color: inherit;
            text-decoration: none;
            font-size: 0.85rem;
        }
        .grid {
            display: grid;
            grid-template-columns: repeat(auto-fill, minmax(160px, 1fr));
            gap: 1.25rem;
        }
        .card {
            background: var(--surface);
            border-radius: 14px;
            overflow: hidden;
            color: inherit;
            text-decoration: none;
        }
        .card img, .detail img {
            width: 100%;
            aspect-ratio: 2 / 3;
            object-fit: cover;
            background: var(--surface-muted);
        }
        .card h3 {
            margin: 0.5rem 0.75rem 0.25rem;
            font-size: 0.95rem;
        }
        .card p, .muted {
            margin: 0 0.75rem 0.75rem;
            color: var(--text-muted);
            font-size: 0.8rem;
        }
        .detail {
            display: grid;
            grid-template-columns: minmax(180px, 280px) 1fr;
            gap: 2rem;
        }
        .episodes button {
            margin: 0 0.5rem 0.5rem 0;
            padding: 0.4rem 0.9rem;
            border: 1px solid var(--accent);
            border-radius: 8px;
            background: transparent;
            color: inherit;
            cursor: pointer;
        }
        .empty {
            padding: 4rem 0;
            text-align: center;
            color: var(--text-muted);
        }
        #player video {
            width: 100%;
            max-height: 70vh;
            background: #000;
        }
    </style>
</head>
<body>
    <header>
        <h1><a href="/" style="color: inherit; text-decoration: none;">__APP_NAME__</a></h1>
        <nav>__NAVIGATION__</nav>
        <form action="/" method="get">
            <input type="hidden" name="kind" value="search" />
            <input type="search" name="value" placeholder="Search movies" value="__SEARCH_VALUE__" />
            <button type="submit">Search</button>
            <button type="button" id="theme-toggle">Toggle theme</button>
        </form>
    </header>
    <main>
        <h2>__HEADING__</h2>
        __CONTENT__
        <div id="player" hidden></div>
    </main>
    <script src="https://cdn.jsdelivr.net/npm/hls.js@1"></script>
    <script>
        (function() {
            const state = __STATE_JSON__;
            let hls = null;

            function releasePlayer() {
                if (hls) {
                    hls.destroy();
                    hls = null;
                }
            }

            function showMessage(message) {
                const player = document.getElementById('player');
                player.hidden = false;
                player.textContent = message;
            }

            async function playEpisode(button) {
                releasePlayer();
                const response = await fetch('/api/playback', {
                    method: 'POST',
                    headers: { 'Content-Type': 'application/json' },
                    body: JSON.stringify({
                        embed_url: button.dataset.embed || null,
                        hls_url: button.dataset.hls || null,
                    }),
                });
                const decision = await response.json();
                if (decision.action === 'open-external') {
                    window.open(decision.url, '_blank', 'noopener,noreferrer');
                    return;
                }
                if (decision.action !== 'play-hls') {
                    showMessage(decision.message);
                    return;
                }
                const player = document.getElementById('player');
                player.hidden = false;
                player.innerHTML = '<video controls playsinline></video>';
                const video = player.querySelector('video');
                if (window.Hls && Hls.isSupported()) {
                    hls = new Hls(state.hlsOptions);
                    hls.loadSource(decision.url);
                    hls.attachMedia(video);
                    hls.on(Hls.Events.ERROR, (event, data) => {
                        if (data.fatal) {
                            releasePlayer();
                            showMessage(state.streamErrorMessage);
                        }
                    });
                } else {
                    video.src = decision.url;
                }
                video.play().catch(() => {});
            }

            document.querySelectorAll('.episodes button').forEach((button) => {
                button.addEventListener('click', () => playEpisode(button));
            });
            window.addEventListener('pagehide', releasePlayer);

            const loadMore = document.getElementById('load-more');
            if (loadMore) {
                loadMore.addEventListener('click', async () => {
                    loadMore.disabled = true;
                    const response = await fetch('/api/catalog/more', { method: 'POST' });
                    if (response.ok) {
                        window.location.assign('/');
                    } else {
                        loadMore.disabled = false;
                    }
                });
            }

            document.getElementById('theme-toggle').addEventListener('click', async () => {
                const root = document.documentElement;
                const next = root.dataset.theme === 'dark' ? 'light' : 'dark';
                root.dataset.theme = next;
                await fetch('/api/preferences/theme', {
                    method: 'PUT',
                    headers: { 'Content-Type': 'application/json' },
                    body: JSON.stringify({ theme: next }),
                });
            });
        })();
    </script>
</body>
</html>
"""
)

PLACEHOLDER_RE = re.compile(r"__[A-Z_]+__")

HLS_OPTIONS = {
    "maxBufferLength": 30,
    "maxMaxBufferLength": 60,
    "manifestLoadingTimeOut": 8000,
    "manifestLoadingMaxRetry": 1,
}


def render_list_page(settings: Settings, snapshot: SessionSnapshot, *, theme: str) -> str:
    """Render the card grid for the session's current result set."""

    query = snapshot.query
    if snapshot.state == "failed":
        content = _empty_state(
            "Something went wrong", snapshot.error or "Could not load the movie list."
        )
    elif snapshot.is_empty:
        content = _empty_state("No movies found", "Try a different keyword or filter.")
    elif not snapshot.items:
        content = _empty_state("Loading", "This list is still loading. Refresh in a moment.")
    else:
        cards = "\n".join(_render_card(item) for item in snapshot.items)
        content = f'<div class="grid">{cards}</div>'
        if snapshot.has_more:
            content += (
                f'<p class="muted">Showing {len(snapshot.items)} titles from '
                f"{snapshot.pagination.current_page} of {snapshot.pagination.total_pages} pages.</p>"
                '<button type="button" id="load-more">Load more</button>'
            )

    search_value = query.value if query is not None and query.is_search else ""
    return _render_page(
        settings,
        theme=theme,
        title=section_title(query),
        heading=section_title(query),
        content=content,
        search_value=search_value,
    )


def render_detail_page(settings: Settings, detail: MovieDetail, *, theme: str) -> str:
    """Render a movie's metadata with its server/episode buttons."""

    badges = "".join(
        f'<span class="badge">{escape(value)}</span>'
        for value in (
            detail.quality,
            detail.current_episode,
            detail.language,
            detail.duration,
            detail.year,
        )
        if value
    )
    tags = "".join(f'<span class="badge">{escape(tag)}</span>' for tag in detail.category_tags)
    servers = []
    for server in detail.servers:
        buttons = "".join(
            '<button type="button" data-embed="{embed}" data-hls="{hls}"{dead}>{name}</button>'.format(
                embed=escape(episode.embed_url or ""),
                hls=escape(episode.hls_url or ""),
                dead=" disabled" if episode.is_dead else "",
                name=escape(episode.display_name),
            )
            for episode in server.episodes
        )
        servers.append(
            f'<section class="episodes"><h3>{escape(server.server_name)}</h3>{buttons}</section>'
        )

    poster = (
        f'<img src="{escape(detail.poster_url)}" alt="{escape(detail.display_title())}" />'
        if detail.poster_url
        else ""
    )
    description = escape(detail.description or "No description available.")
    content = f"""
        <div class="detail">
            <div>{poster}</div>
            <div>
                <p class="muted">{escape(detail.original_name)}</p>
                <div>{badges}</div>
                <p>{description}</p>
                {f'<h3>Genres</h3><div>{tags}</div>' if tags else ''}
                {''.join(servers)}
            </div>
        </div>
    """
    return _render_page(
        settings,
        theme=theme,
        title=detail.display_title(),
        heading=detail.display_title(),
        content=content,
        search_value="",
    )


def render_error_page(settings: Settings, message: str, *, theme: str) -> str:
    return _render_page(
        settings,
        theme=theme,
        title="Error",
        heading="Something went wrong",
        content=_empty_state("Could not load this page", message),
        search_value="",
    )


def _render_card(item: CatalogItem) -> str:
    meta = " · ".join(
        escape(value)
        for value in (item.quality, item.current_episode, item.language, item.year)
        if value
    )
    poster = (
        f'<img src="{escape(item.poster_url)}" alt="{escape(item.display_title())}" loading="lazy" />'
        if item.poster_url
        else '<img alt="" />'
    )
    return (
        f'<a class="card" href="/movies/{quote(item.slug, safe="")}">'
        f"{poster}<h3>{escape(item.display_title())}</h3>"
        f"<p>{escape(item.original_name)}</p><p>{meta}</p></a>"
    )


def _empty_state(title: str, message: str) -> str:
    return f'<div class="empty"><h3>{escape(title)}</h3><p>{escape(message)}</p></div>'


def _render_navigation() -> str:
    return "".join(
        f'<a href="/?{urlencode({"kind": "category", "value": definition.key})}"'
        f' title="{escape(definition.description)}">{escape(definition.title)}</a>'
        for definition in CATEGORIES
    )


def _render_page(
    settings: Settings,
    *,
    theme: str,
    title: str,
    heading: str,
    content: str,
    search_value: str,
) -> str:
    state = {"hlsOptions": HLS_OPTIONS, "streamErrorMessage": STREAM_ERROR_MESSAGE}
    state_json = json.dumps(state).replace("</", "<\\/")
    replacements = {
        "__APP_NAME__": escape(settings.app_name),
        "__THEME__": escape(theme),
        "__TITLE__": escape(title),
        "__HEADING__": escape(heading),
        "__NAVIGATION__": _render_navigation(),
        "__SEARCH_VALUE__": escape(search_value),
        "__STATE_JSON__": state_json,
        "__CONTENT__": content,
    }
    return PLACEHOLDER_RE.sub(lambda match: replacements[match.group(0)], PAGE_TEMPLATE)
