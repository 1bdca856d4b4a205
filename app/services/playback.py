"""Choosing an episode's playback source and owning the HLS player slot."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Literal, Protocol, Union

from ..models import EpisodeSource
from ..utils import optional_url

logger = logging.getLogger(__name__)

NO_SOURCE_MESSAGE = "No stream is available for this episode."
STREAM_ERROR_MESSAGE = "The stream is unavailable or has expired. Try another episode or server."


@dataclass(frozen=True)
class OpenExternal:
    """Open the embed page as an external navigation."""

    url: str
    action: Literal["open-external"] = "open-external"


@dataclass(frozen=True)
class PlayHls:
    """Play the HLS manifest in the page's player."""

    url: str
    action: Literal["play-hls"] = "play-hls"


@dataclass(frozen=True)
class NoSource:
    """Neither an embed page nor a manifest is available."""

    message: str = NO_SOURCE_MESSAGE
    action: Literal["no-source"] = "no-source"


PlaybackDecision = Union[OpenExternal, PlayHls, NoSource]


class PlaybackResolver:
    """Pick how an episode should be played.

    Third-party embed pages usually refuse to load inside a foreign iframe, so
    an embed URL is always opened externally and wins over a manifest.
    """

    @staticmethod
    def resolve(embed_url: str | None = None, hls_url: str | None = None) -> PlaybackDecision:
        embed = optional_url(embed_url)
        if embed:
            return OpenExternal(embed)
        manifest = optional_url(hls_url)
        if manifest:
            return PlayHls(manifest)
        return NoSource()

    @classmethod
    def resolve_episode(cls, episode: EpisodeSource) -> PlaybackDecision:
        return cls.resolve(episode.embed_url, episode.hls_url)


def decision_payload(decision: PlaybackDecision) -> dict[str, str]:
    """Return the JSON representation handed to the player UI."""

    if isinstance(decision, NoSource):
        return {"action": decision.action, "message": decision.message}
    return {"action": decision.action, "url": decision.url}


class HlsPlayer(Protocol):
    """Minimal surface of an HLS player instance."""

    def load(self, url: str) -> None:
        ...

    def destroy(self) -> None:
        ...


class PlaybackHandle:
    """Owns at most one live HLS player instance."""

    def __init__(self, player_factory: Callable[[], HlsPlayer]):
        self._factory = player_factory
        self._player: HlsPlayer | None = None

    @property
    def active(self) -> HlsPlayer | None:
        return self._player

    def start(self, url: str) -> HlsPlayer:
        """Release any previous player, then create and load a new one."""

        self.release()
        player = self._factory()
        self._player = player
        player.load(url)
        return player

    def release(self) -> bool:
        """Destroy the active player; returns ``False`` when there was none."""

        player, self._player = self._player, None
        if player is None:
            return False
        player.destroy()
        return True

    def __enter__(self) -> "PlaybackHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


@dataclass(frozen=True)
class PlaybackOutcome:
    """What the player UI should show after a playback action."""

    decision: PlaybackDecision
    message: str | None = None


class PlaybackController:
    """Applies playback decisions to the owned player slot."""

    def __init__(self, handle: PlaybackHandle):
        self._handle = handle

    @property
    def handle(self) -> PlaybackHandle:
        return self._handle

    def play(self, decision: PlaybackDecision) -> PlaybackOutcome:
        if isinstance(decision, PlayHls):
            self._handle.start(decision.url)
            return PlaybackOutcome(decision)
        self._handle.release()
        if isinstance(decision, NoSource):
            return PlaybackOutcome(decision, decision.message)
        return PlaybackOutcome(decision)

    def play_episode(self, episode: EpisodeSource) -> PlaybackOutcome:
        return self.play(PlaybackResolver.resolve_episode(episode))

    def report_error(self, *, fatal: bool, details: str = "") -> str | None:
        """Handle a stream error raised by the active player."""

        if not fatal:
            logger.info("Recoverable stream error: %s", details)
            return None
        logger.warning("Fatal stream error: %s", details)
        self._handle.release()
        return STREAM_ERROR_MESSAGE

    def close(self) -> None:
        self._handle.release()
