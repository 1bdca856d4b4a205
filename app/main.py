"""Entry point for the FastAPI-powered catalog viewer."""

from __future__ import annotations

import logging
import secrets
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, TypeVar

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel, ValidationError

from .config import settings
from .database import Database
from .models import CatalogQuery
from .services.catalog_api import CatalogApi, build_layout
from .services.fetcher import ResilientFetcher, UnreachableError
from .services.playback import PlaybackResolver, decision_payload
from .services.preferences import PreferenceStore
from .services.session import CatalogSession, SessionBusyError, SessionRegistry
from .web import render_detail_page, render_error_page, render_list_page

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SESSION_COOKIE = "chum_session"
UPSTREAM_UNAVAILABLE = "The movie catalog is unreachable right now. Please try again shortly."
INVALID_FILTER = "That filter is not available. Pick another category or search term."

app: FastAPI

_T = TypeVar("_T")


class PlaybackRequest(BaseModel):
    embed_url: str | None = None
    hls_url: str | None = None


class ThemeUpdate(BaseModel):
    theme: str


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout_seconds, connect=5.0),
            follow_redirects=True,
            headers={"User-Agent": f"{settings.app_name} (chummovies)"},
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    fetcher = ResilientFetcher(
        http_client,
        settings.proxy_chain,
        timeout=settings.request_timeout_seconds,
    )
    layout = build_layout(
        settings.api_layout,
        page_size=settings.page_size,
        search_limit=settings.search_limit,
    )
    catalog_api = CatalogApi(
        fetcher,
        layout,
        base_url=str(settings.api_base_url) if settings.api_base_url else None,
    )
    logger.info(
        "Using %s layout with relays: %s",
        layout.name,
        ", ".join(settings.relay_proxies) or "none",
    )

    fastapi_app.state.catalog_api = catalog_api
    fastapi_app.state.sessions = SessionRegistry(
        lambda: CatalogSession(catalog_api, auto_load_ceiling=settings.auto_load_ceiling),
        max_sessions=settings.max_sessions,
    )
    fastapi_app.state.preferences = PreferenceStore(database.session_factory)

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Movie catalog viewer with relay fallback for the upstream API",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def _app_state(fastapi_app: FastAPI, name: str, expected: type[_T]) -> _T:
    value = getattr(fastapi_app.state, name, None)
    if not isinstance(value, expected):
        raise RuntimeError(f"{name} not initialised")
    return value


def register_routes(fastapi_app: FastAPI) -> None:
    def _session_id(request: Request) -> tuple[str, bool]:
        existing = request.cookies.get(SESSION_COOKIE)
        if existing and len(existing) <= 64:
            return existing, False
        return secrets.token_urlsafe(16), True

    def _session(session_id: str) -> CatalogSession:
        registry = _app_state(fastapi_app, "sessions", SessionRegistry)
        return registry.get(session_id)

    def _remember(response: Response, session_id: str, is_new: bool) -> Response:
        if is_new:
            response.set_cookie(
                SESSION_COOKIE,
                session_id,
                max_age=60 * 60 * 24 * 365,
                httponly=True,
                samesite="lax",
            )
        return response

    async def _theme(session_id: str) -> str:
        store = _app_state(fastapi_app, "preferences", PreferenceStore)
        return await store.get_theme(session_id) or settings.default_theme

    def _parse_query(kind: str | None, value: str | None) -> CatalogQuery:
        payload: dict[str, Any] = {}
        if kind:
            payload["kind"] = kind
        if value is not None:
            payload["value"] = value
        try:
            return CatalogQuery.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(
                status_code=400,
                detail=exc.errors(include_url=False, include_context=False),
            ) from exc

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/", response_class=HTMLResponse)
    async def list_page(
        request: Request, kind: str | None = None, value: str | None = None
    ) -> Response:
        session_id, is_new = _session_id(request)
        session = _session(session_id)
        blank_search = kind == "search" and not (value or "").strip()
        if (kind or value) and not blank_search:
            try:
                query = _parse_query(kind, value)
            except HTTPException:
                theme = await _theme(session_id)
                html = render_error_page(settings, INVALID_FILTER, theme=theme)
                return _remember(HTMLResponse(html, status_code=400), session_id, is_new)
            snapshot = await session.set_query(query)
        elif session.query is None:
            snapshot = await session.set_query(CatalogQuery.category())
        else:
            snapshot = session.show_list()
        html = render_list_page(settings, snapshot, theme=await _theme(session_id))
        return _remember(HTMLResponse(html), session_id, is_new)

    @fastapi_app.get("/movies/{slug}", response_class=HTMLResponse)
    async def detail_page(request: Request, slug: str) -> Response:
        session_id, is_new = _session_id(request)
        session = _session(session_id)
        theme = await _theme(session_id)
        try:
            detail = await session.open_detail(slug)
        except (UnreachableError, ValueError) as exc:
            logger.warning("Detail page for %s failed: %s", slug, exc)
            html = render_error_page(settings, UPSTREAM_UNAVAILABLE, theme=theme)
            return _remember(HTMLResponse(html, status_code=502), session_id, is_new)
        html = render_detail_page(settings, detail, theme=theme)
        return _remember(HTMLResponse(html), session_id, is_new)

    @fastapi_app.get("/api/catalog")
    async def catalog(
        request: Request, kind: str | None = None, value: str | None = None
    ) -> Response:
        session_id, is_new = _session_id(request)
        snapshot = await _session(session_id).set_query(_parse_query(kind, value))
        status_code = 502 if snapshot.state == "failed" else 200
        return _remember(
            JSONResponse(snapshot.model_dump(mode="json"), status_code=status_code),
            session_id,
            is_new,
        )

    @fastapi_app.post("/api/catalog/more")
    async def catalog_more(request: Request) -> Response:
        session_id, is_new = _session_id(request)
        try:
            snapshot = await _session(session_id).load_more()
        except SessionBusyError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _remember(
            JSONResponse(snapshot.model_dump(mode="json")), session_id, is_new
        )

    @fastapi_app.get("/api/movies/{slug}")
    async def movie_detail(request: Request, slug: str) -> Response:
        session_id, is_new = _session_id(request)
        try:
            detail = await _session(session_id).open_detail(slug)
        except (UnreachableError, ValueError) as exc:
            logger.warning("Detail lookup for %s failed: %s", slug, exc)
            raise HTTPException(status_code=502, detail=UPSTREAM_UNAVAILABLE) from exc
        return _remember(JSONResponse(detail.model_dump(mode="json")), session_id, is_new)

    @fastapi_app.post("/api/playback")
    async def playback(payload: PlaybackRequest) -> dict[str, str]:
        decision = PlaybackResolver.resolve(payload.embed_url, payload.hls_url)
        return decision_payload(decision)

    @fastapi_app.get("/api/search/suggestions")
    async def search_suggestions(q: str = "") -> dict[str, Any]:
        catalog_api = _app_state(fastapi_app, "catalog_api", CatalogApi)
        try:
            items = await catalog_api.suggest(q, limit=settings.suggestion_limit)
        except UnreachableError as exc:
            raise HTTPException(status_code=502, detail=UPSTREAM_UNAVAILABLE) from exc
        return {"query": q.strip(), "items": [item.model_dump() for item in items]}

    @fastapi_app.get("/api/featured")
    async def featured() -> dict[str, Any]:
        catalog_api = _app_state(fastapi_app, "catalog_api", CatalogApi)
        try:
            items = await catalog_api.featured(limit=settings.featured_limit)
        except UnreachableError as exc:
            raise HTTPException(status_code=502, detail=UPSTREAM_UNAVAILABLE) from exc
        return {"items": [item.model_dump() for item in items]}

    @fastapi_app.get("/api/preferences/theme")
    async def get_theme(request: Request) -> Response:
        session_id, is_new = _session_id(request)
        theme = await _theme(session_id)
        return _remember(JSONResponse({"theme": theme}), session_id, is_new)

    @fastapi_app.put("/api/preferences/theme")
    async def put_theme(request: Request, payload: ThemeUpdate) -> Response:
        session_id, is_new = _session_id(request)
        store = _app_state(fastapi_app, "preferences", PreferenceStore)
        try:
            theme = await store.set_theme(session_id, payload.theme)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _remember(JSONResponse({"theme": theme}), session_id, is_new)


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
