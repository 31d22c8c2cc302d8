from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Mapping, Sequence

import numpy as np

from layerplot.palettes import RGBA, gradient_colors
from layerplot.scales import COLOR_CHANNELS, ContinuousScale, DiscreteScale
from layerplot.theme import Theme

LOGGER = logging.getLogger(__name__)

COLORBAR_STEPS = 32


@dataclass(frozen=True)
class LegendKey:
    label: str
    color: RGBA | None = None
    fill: RGBA | None = None
    size: float | None = None
    alpha: float | None = None
    shape: str | None = None


@dataclass(frozen=True)
class Legend:
    """A guide for one or more channels sharing a source column.

    Discrete guides carry ``keys``; continuous colour guides carry a sampled
    ``colorbar`` (low to high) and ``ticks`` positioned in ``[0, 1]``.
    """

    title: str
    channels: tuple[str, ...]
    keys: tuple[LegendKey, ...] = ()
    glyphs: tuple[str, ...] = ("point",)
    colorbar: tuple[RGBA, ...] = ()
    ticks: tuple[tuple[float, str], ...] = ()

    @property
    def is_colorbar(self) -> bool:
        return bool(self.colorbar)


def build_legends(
    scales: Mapping[str, DiscreteScale | ContinuousScale],
    *,
    titles: Mapping[str, str | None],
    columns: Mapping[str, str | None],
    glyphs: Mapping[str, Sequence[str]],
    theme: Theme,
) -> list[Legend]:
    """One legend per discrete scale with more than one category, plus colourbars.

    Discrete channels mapped to the same column with the same categories are
    merged into a single legend whose keys combine every channel's value.
    """
    if theme.legend_position == "none":
        return []

    merged: dict[tuple[Any, ...], list[str]] = {}
    continuous: list[str] = []
    for channel, scale in scales.items():
        if not scale.guide or channel not in glyphs:
            continue
        if isinstance(scale, DiscreteScale):
            if len(scale.levels) <= 1:
                continue
            column = columns.get(channel) or channel
            merged.setdefault((column, scale.levels), []).append(channel)
        else:
            continuous.append(channel)

    legends: list[Legend] = []
    for (column, _), channels in merged.items():
        legends.append(_discrete_legend(channels, scales, title=_title(channels[0], titles, column), glyphs=glyphs))
    for channel in continuous:
        scale = scales[channel]
        assert isinstance(scale, ContinuousScale)
        title = _title(channel, titles, columns.get(channel))
        if channel in COLOR_CHANNELS:
            legends.append(_colorbar(channel, scale, title, glyphs))
        else:
            legends.append(_continuous_keys(channel, scale, title, glyphs))
    if len(legends) > 1:
        LOGGER.debug("built %d legends", len(legends))
    return legends


def _discrete_legend(
    channels: Sequence[str],
    scales: Mapping[str, DiscreteScale | ContinuousScale],
    *,
    title: str,
    glyphs: Mapping[str, Sequence[str]],
) -> Legend:
    first = scales[channels[0]]
    assert isinstance(first, DiscreteScale)
    labels = [name for name, _ in first.entries()]
    keys = []
    for i, label in enumerate(labels):
        values: dict[str, Any] = {}
        for channel in channels:
            scale = scales[channel]
            assert isinstance(scale, DiscreteScale)
            values[channel] = scale.outputs[i]
        keys.append(LegendKey(label=label, **values))
    return Legend(title=title, channels=tuple(channels), keys=tuple(keys), glyphs=_glyphs_for(channels, glyphs))


def _colorbar(channel: str, scale: ContinuousScale, title: str, glyphs: Mapping[str, Sequence[str]]) -> Legend:
    lo, hi = scale.domain
    samples = gradient_colors(scale.stops, np.linspace(0.0, 1.0, COLORBAR_STEPS))
    ticks = tuple((float(scale.rescale(np.asarray([v]))[0]), label) for v, label in scale.ticks(5) if lo != hi)
    return Legend(
        title=title,
        channels=(channel,),
        glyphs=_glyphs_for([channel], glyphs),
        colorbar=tuple(tuple(int(c) for c in row) for row in samples),  # type: ignore[misc]
        ticks=ticks,
    )


def _continuous_keys(channel: str, scale: ContinuousScale, title: str, glyphs: Mapping[str, Sequence[str]]) -> Legend:
    ticks = scale.ticks(4)
    mapped = scale.map(np.asarray([v for v, _ in ticks], dtype=np.float64))
    keys = tuple(LegendKey(label=label, **{channel: float(out)}) for (_, label), out in zip(ticks, mapped.tolist()))
    return Legend(title=title, channels=(channel,), keys=keys, glyphs=_glyphs_for([channel], glyphs))


def _glyphs_for(channels: Sequence[str], glyphs: Mapping[str, Sequence[str]]) -> tuple[str, ...]:
    out: list[str] = []
    for channel in channels:
        for glyph in glyphs.get(channel, ()):
            if glyph not in out:
                out.append(glyph)
    return tuple(out) or ("point",)


def _title(channel: str, titles: Mapping[str, str | None], column: str | None) -> str:
    return titles.get(channel) or column or channel
