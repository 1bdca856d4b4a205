"""Utility helpers for the CHUM Movies service."""

from __future__ import annotations

import json
import re
import unicodedata
from typing import Any
from urllib.parse import urlparse


JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*([\[{].*?[\]}])\s*```", re.DOTALL)
DETAIL_LINK_RE = re.compile(r"/(?:m|s|phim)/([^/?#]+)")


def slugify(value: str) -> str:
    """Return a URL-friendly slug."""

    value = unicodedata.normalize("NFKD", value)
    value = value.replace("đ", "d").replace("Đ", "D")
    value = value.encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9]+", "-", value)
    value = value.strip("-")
    value = re.sub(r"-+", "-", value)
    return value.lower()


def extract_json_payload(content: str) -> Any:
    """Parse a JSON document, tolerating text wrapped around it."""

    text = (content or "").strip()
    if not text:
        raise ValueError("Empty response body")
    try:
        return json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        pass

    match = JSON_BLOCK_RE.search(text)
    if match:
        payload = match.group(1)
    else:
        payload = _outermost_brackets(text)
        if not payload:
            raise ValueError("No JSON document found in response")

    try:
        return json.loads(payload)
    except (json.JSONDecodeError, RecursionError) as exc:
        raise ValueError("Invalid JSON payload in response") from exc


def _outermost_brackets(text: str) -> str:
    """Return the span from the first opening to the last closing bracket."""

    starts = [index for index in (text.find("["), text.find("{")) if index >= 0]
    if not starts:
        return ""
    start = min(starts)
    end = max(text.rfind("]"), text.rfind("}"))
    if end <= start:
        return ""
    return text[start : end + 1]


def slug_from_link(link: str | None) -> str:
    """Extract the detail slug from an upstream detail-page link."""

    if not link:
        return ""
    match = DETAIL_LINK_RE.search(link)
    if match:
        return match.group(1)
    path = urlparse(link).path if "://" in link else link.split("?", 1)[0]
    segments = [segment for segment in path.split("/") if segment]
    return segments[-1] if segments else ""


def clean_text(value: Any) -> str:
    """Coerce optional scalar values to display text, never ``None``."""

    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return ""
    return str(value).strip()


def optional_url(value: Any) -> str | None:
    """Return a trimmed URL, treating blank values as absent."""

    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None
