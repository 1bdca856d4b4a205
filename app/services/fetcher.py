"""Resilient access to the catalog API through direct calls and relays."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from ..utils import extract_json_payload
from .relays import ProxyChain, RelayProxy
from .validation import is_valid_payload

logger = logging.getLogger(__name__)

DIRECT_ROUTE = "direct"
DEFAULT_TIMEOUT_SECONDS = 8.0

AttemptOutcome = Literal["success", "reject", "invalid-shape"]


@dataclass(slots=True)
class FetchAttempt:
    """Outcome of one route tried for a target URL."""

    route: str
    outcome: AttemptOutcome
    latency: float


class RouteError(Exception):
    """A single route failed; the fetcher moves on to the next one."""

    outcome: AttemptOutcome = "reject"

    def __init__(self, route: str, message: str):
        super().__init__(f"{route}: {message}")
        self.route = route


class NetworkTimeout(RouteError):
    """The attempt did not complete within the per-attempt timeout."""


class NetworkError(RouteError):
    """Connection, DNS or non-success HTTP status failure."""


class InvalidShape(RouteError):
    """The body parsed (or failed to parse) into something other than an API payload."""

    outcome: AttemptOutcome = "invalid-shape"


class UnreachableError(RuntimeError):
    """Every route to the target URL was exhausted."""

    def __init__(
        self,
        target_url: str,
        attempts: list[FetchAttempt],
        last_error: Exception | None,
    ):
        super().__init__(
            f"Unable to reach {target_url} after {len(attempts)} attempts"
        )
        self.target_url = target_url
        self.attempts = attempts
        self.last_error = last_error


class ResilientFetcher:
    """GET JSON from the catalog API, falling back through relay proxies.

    The direct route is always tried first, then each relay in chain order.
    The first route that yields a valid payload wins and the rest are never
    contacted. Nothing is remembered between calls.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        chain: ProxyChain,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._client = http_client
        self._chain = chain
        self._timeout = timeout

    async def fetch(self, target_url: str) -> Any:
        attempts: list[FetchAttempt] = []
        last_error: RouteError | None = None

        routes: list[tuple[str, RelayProxy | None]] = [(DIRECT_ROUTE, None)]
        routes.extend((relay.name, relay) for relay in self._chain)

        for route, relay in routes:
            started = time.monotonic()
            try:
                if relay is None:
                    payload = await self._fetch_direct(target_url)
                else:
                    payload = await self._fetch_relayed(target_url, relay)
            except RouteError as exc:
                latency = time.monotonic() - started
                attempts.append(FetchAttempt(route, exc.outcome, latency))
                last_error = exc
                logger.info("Route %s failed for %s: %s", route, target_url, exc)
                continue

            latency = time.monotonic() - started
            attempts.append(FetchAttempt(route, "success", latency))
            logger.debug(
                "Fetched %s via %s in %.0fms", target_url, route, latency * 1000
            )
            return payload

        logger.warning(
            "All %s routes failed for %s; last error: %s",
            len(attempts),
            target_url,
            last_error,
        )
        raise UnreachableError(target_url, attempts, last_error) from last_error

    async def _fetch_direct(self, target_url: str) -> Any:
        response = await self._get(DIRECT_ROUTE, target_url)
        try:
            payload = json.loads(response.text)
        except (ValueError, RecursionError) as exc:
            raise InvalidShape(DIRECT_ROUTE, "response is not JSON") from exc
        return self._validated(DIRECT_ROUTE, payload)

    async def _fetch_relayed(self, target_url: str, relay: RelayProxy) -> Any:
        response = await self._get(relay.name, relay.rewrite(target_url))
        try:
            payload = extract_json_payload(response.text)
        except ValueError as exc:
            raise InvalidShape(relay.name, str(exc)) from exc

        payload = relay.unwrap(payload)
        if isinstance(payload, str):
            try:
                payload = extract_json_payload(payload)
            except ValueError as exc:
                raise InvalidShape(relay.name, f"wrapped {exc}") from exc
        return self._validated(relay.name, payload)

    async def _get(self, route: str, url: str) -> httpx.Response:
        try:
            # httpx timeouts bound each read, not the whole transfer.
            response = await asyncio.wait_for(
                self._client.get(
                    url,
                    headers={"Accept": "application/json"},
                    timeout=self._timeout,
                ),
                self._timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            raise NetworkTimeout(route, f"timed out after {self._timeout:.0f}s") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(route, f"{exc.__class__.__name__}: {exc}") from exc
        if not response.is_success:
            raise NetworkError(route, f"HTTP {response.status_code}")
        return response

    @staticmethod
    def _validated(route: str, payload: Any) -> Any:
        if not is_valid_payload(payload):
            raise InvalidShape(route, "payload is missing every envelope key")
        return payload
