from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from layerplot.errors import InvalidChannel, UnresolvedColumn
from layerplot.table import Table


CHANNELS = frozenset(
    {
        "x",
        "y",
        "xend",
        "yend",
        "xmin",
        "xmax",
        "ymin",
        "ymax",
        "color",
        "fill",
        "size",
        "alpha",
        "label",
        "group",
        "shape",
        "weight",
    }
)
POSITION_CHANNELS = frozenset({"x", "y", "xend", "yend", "xmin", "xmax", "ymin", "ymax"})
CHANNEL_ALIASES = {"colour": "color"}


@dataclass(frozen=True)
class Literal:
    """A constant mapped onto a channel instead of a column."""

    value: Any


class Aes:
    """Immutable channel -> column (or Literal) assignment."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[str, str | Literal] | None = None) -> None:
        clean: dict[str, str | Literal] = {}
        for channel, target in (entries or {}).items():
            channel = normalize_channel(channel)
            if not isinstance(target, (str, Literal)):
                target = Literal(target)
            clean[channel] = target
        self._entries = MappingProxyType(clean)

    def __getitem__(self, channel: str) -> str | Literal:
        return self._entries[channel]

    def __contains__(self, channel: object) -> bool:
        return channel in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Aes):
            return NotImplemented
        return dict(self._entries) == dict(other._entries)

    def __hash__(self) -> int:
        return hash(tuple(sorted((k, repr(v)) for k, v in self._entries.items())))

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v!r}" for k, v in self._entries.items())
        return f"aes({body})"

    def get(self, channel: str, default: Any = None) -> Any:
        return self._entries.get(channel, default)

    def items(self):
        return self._entries.items()

    def channels(self) -> frozenset[str]:
        return frozenset(self._entries)

    def column(self, channel: str) -> str | None:
        target = self._entries.get(channel)
        return target if isinstance(target, str) else None


def normalize_channel(channel: str) -> str:
    channel = CHANNEL_ALIASES.get(channel, channel)
    if channel not in CHANNELS:
        raise InvalidChannel(channel)
    return channel


def aes(**entries: Any) -> Aes:
    """Build a mapping: ``aes(x="carat", y="price", color="cut")``."""
    return Aes(entries)


EMPTY = Aes()


def resolve_mapping(
    scene_mapping: Aes | None,
    layer_mapping: Aes | None = None,
    *,
    inherit: bool = True,
) -> Aes:
    """Overlay layer entries on scene entries; the layer wins on collisions."""
    merged: dict[str, str | Literal] = {}
    if inherit and scene_mapping is not None:
        for channel, target in scene_mapping.items():
            merged[normalize_channel(channel)] = target
    if layer_mapping is not None:
        for channel, target in layer_mapping.items():
            merged[normalize_channel(channel)] = target
    return Aes(merged)


def check_columns(mapping: Aes, table: Table) -> None:
    for channel, target in mapping.items():
        if isinstance(target, str) and target not in table:
            raise UnresolvedColumn(channel, target)
