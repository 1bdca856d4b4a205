"""Payload guards separating real API responses from relay noise."""

from __future__ import annotations

from typing import Any, Collection

ENVELOPE_KEYS: frozenset[str] = frozenset({"items", "data", "movie", "status", "title"})


def is_valid_payload(body: Any, hints: Collection[str] | None = None) -> bool:
    """Return ``True`` when ``body`` looks like a catalog API payload.

    Relays answer blocked or rate-limited requests with HTTP 200 and their own
    content (captcha pages, quota JSON, empty objects), so the status code is
    not enough to trust a response. A bare list is accepted as is; an object
    must expose at least one envelope key with a non-null value. ``hints``
    names extra keys to accept for endpoints with an unusual envelope.
    """

    if isinstance(body, list):
        return True
    if not isinstance(body, dict) or not body:
        return False
    accepted = ENVELOPE_KEYS.union(hints) if hints else ENVELOPE_KEYS
    return any(body.get(key) is not None for key in accepted)
