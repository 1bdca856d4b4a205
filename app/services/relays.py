"""Public CORS relays used when the catalog API cannot be reached directly."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator
from urllib.parse import quote


@dataclass(frozen=True)
class RelayProxy:
    """A relay's calling convention for wrapping a target URL."""

    name: str
    template: str
    encode_target: bool = True
    envelope_key: str | None = None

    def rewrite(self, target_url: str) -> str:
        """Return the relay URL that fetches ``target_url``."""

        target = quote(target_url, safe="") if self.encode_target else target_url
        return self.template.format(url=target)

    def unwrap(self, payload: Any) -> Any:
        """Strip the relay's own JSON envelope, when it adds one."""

        if self.envelope_key is None or not isinstance(payload, dict):
            return payload
        return payload.get(self.envelope_key)


KNOWN_RELAYS: tuple[RelayProxy, ...] = (
    RelayProxy(
        name="codetabs",
        template="https://api.codetabs.com/v1/proxy?quest={url}",
    ),
    RelayProxy(
        name="corsproxy",
        template="https://corsproxy.org/?{url}",
    ),
    RelayProxy(
        name="thingproxy",
        template="https://thingproxy.freeboard.io/fetch/{url}",
        encode_target=False,
    ),
    RelayProxy(
        name="allorigins",
        template="https://api.allorigins.win/raw?url={url}",
    ),
    RelayProxy(
        name="allorigins-get",
        template="https://api.allorigins.win/get?url={url}",
        envelope_key="contents",
    ),
)

RELAY_NAMES: tuple[str, ...] = tuple(relay.name for relay in KNOWN_RELAYS)

DEFAULT_RELAY_ORDER: tuple[str, ...] = ("codetabs", "corsproxy", "thingproxy")


class ProxyChain:
    """Fixed preference ranking of relays, tried front to back."""

    def __init__(self, relays: Iterable[RelayProxy]):
        self._relays: tuple[RelayProxy, ...] = tuple(relays)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "ProxyChain":
        registry = {relay.name: relay for relay in KNOWN_RELAYS}
        relays: list[RelayProxy] = []
        for name in names:
            try:
                relays.append(registry[name])
            except KeyError as exc:
                raise ValueError(f"Unknown relay proxy: {name}") from exc
        return cls(relays)

    @classmethod
    def default(cls) -> "ProxyChain":
        return cls.from_names(DEFAULT_RELAY_ORDER)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(relay.name for relay in self._relays)

    def __iter__(self) -> Iterator[RelayProxy]:
        return iter(self._relays)

    def __len__(self) -> int:
        return len(self._relays)
