"""Tests for the persisted theme preference."""

from __future__ import annotations

from pathlib import Path

import pytest

from app.database import Database
from app.services.preferences import PreferenceStore


@pytest.mark.anyio("asyncio")
async def test_theme_round_trips_per_owner(tmp_path: Path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'preferences.db'}")
    await database.create_all()
    store = PreferenceStore(database.session_factory)

    try:
        assert await store.get_theme("client-a") is None

        assert await store.set_theme("client-a", " Light ") == "light"
        assert await store.set_theme("client-a", "dark") == "dark"
        await store.set_theme("client-b", "light")

        assert await store.get_theme("client-a") == "dark"
        assert await store.get_theme("client-b") == "light"
    finally:
        await database.dispose()


@pytest.mark.anyio("asyncio")
async def test_unsupported_theme_is_rejected(tmp_path: Path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'preferences.db'}")
    await database.create_all()
    store = PreferenceStore(database.session_factory)

    try:
        with pytest.raises(ValueError, match="Unsupported theme"):
            await store.set_theme("client-a", "sepia")
        assert await store.get_theme("client-a") is None
    finally:
        await database.dispose()
