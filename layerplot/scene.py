from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable

from layerplot.adapters import to_table
from layerplot.coords import Cartesian, CoordSystem, MapProjection
from layerplot.facet import Facet, FacetGrid, FacetNull, FacetWrap
from layerplot.layers import Layer
from layerplot.mapping import Aes, normalize_channel
from layerplot.scales import ScaleSpec
from layerplot.table import Table
from layerplot.theme import Theme, ThemeOverrides


@dataclass(frozen=True)
class Labels:
    """Plot title block and per-channel titles; ``None`` leaves a value unchanged."""

    title: str | None = None
    subtitle: str | None = None
    caption: str | None = None
    channels: tuple[tuple[str, str], ...] = ()

    def merged(self, other: "Labels") -> "Labels":
        channels = dict(self.channels)
        channels.update(dict(other.channels))
        return Labels(
            title=other.title if other.title is not None else self.title,
            subtitle=other.subtitle if other.subtitle is not None else self.subtitle,
            caption=other.caption if other.caption is not None else self.caption,
            channels=tuple(channels.items()),
        )

    def for_channel(self, channel: str) -> str | None:
        return dict(self.channels).get(channel)


def labs(
    *,
    title: str | None = None,
    subtitle: str | None = None,
    caption: str | None = None,
    **channels: str,
) -> Labels:
    return Labels(
        title=title,
        subtitle=subtitle,
        caption=caption,
        channels=tuple((normalize_channel(k), str(v)) for k, v in channels.items()),
    )


@dataclass(frozen=True)
class Scene:
    """Immutable plot description. ``scene + component`` returns a new Scene."""

    data: Table | None = None
    mapping: Aes = field(default_factory=Aes)
    layers: tuple[Layer, ...] = ()
    scales: tuple[ScaleSpec, ...] = ()
    coord: CoordSystem = field(default_factory=Cartesian)
    facet: Facet = field(default_factory=FacetNull)
    theme: Theme = field(default_factory=Theme)
    labels: Labels = field(default_factory=Labels)

    def __add__(self, other: Any) -> "Scene":
        if isinstance(other, (tuple, list)):
            out = self
            for item in other:
                out = out + item
            return out
        if isinstance(other, Layer):
            return replace(self, layers=self.layers + (other,))
        if isinstance(other, ScaleSpec):
            return replace(self, scales=self.scales + (other,))
        if isinstance(other, (Cartesian, MapProjection)):
            return replace(self, coord=other)
        if isinstance(other, (FacetNull, FacetWrap, FacetGrid)):
            return replace(self, facet=other)
        if isinstance(other, Theme):
            return replace(self, theme=other)
        if isinstance(other, ThemeOverrides):
            return replace(self, theme=other.apply(self.theme))
        if isinstance(other, Labels):
            return replace(self, labels=self.labels.merged(other))
        return NotImplemented

    def resolved_scales(self) -> dict[str, ScaleSpec]:
        return merge_scales(self.scales)


def scene(data: Any = None, mapping: Aes | None = None, *, schema: Any = None) -> Scene:
    """Start a plot from a source table and default mapping."""
    table = to_table(data, schema=schema) if data is not None else None
    return Scene(data=table, mapping=mapping if mapping is not None else Aes())


def merge_scales(specs: Iterable[ScaleSpec]) -> dict[str, ScaleSpec]:
    """One scale per channel; a later declaration replaces an earlier one."""
    out: dict[str, ScaleSpec] = {}
    for spec in specs:
        out.pop(spec.channel, None)
        out[spec.channel] = spec
    return out

