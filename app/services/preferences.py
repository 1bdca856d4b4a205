"""Persistence of the per-client theme preference."""

from __future__ import annotations

import logging
from typing import Literal, cast, get_args

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import Preference

logger = logging.getLogger(__name__)

Theme = Literal["light", "dark"]
THEMES: tuple[str, ...] = get_args(Theme)
THEME_KEY = "theme"


class PreferenceStore:
    """Reads and writes the theme preference."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_theme(self, owner_id: str) -> Theme | None:
        async with self._session_factory() as session:
            record = await session.get(Preference, (owner_id, THEME_KEY))
        if record is None or record.value not in THEMES:
            return None
        return cast(Theme, record.value)

    async def set_theme(self, owner_id: str, theme: str) -> Theme:
        normalized = (theme or "").strip().lower()
        if normalized not in THEMES:
            raise ValueError(f"Unsupported theme: {theme!r}")
        async with self._session_factory() as session:
            record = await session.get(Preference, (owner_id, THEME_KEY))
            if record is None:
                session.add(Preference(owner_id=owner_id, key=THEME_KEY, value=normalized))
            else:
                record.value = normalized
            await session.commit()
        logger.debug("Stored theme %s for %s", normalized, owner_id)
        return cast(Theme, normalized)
