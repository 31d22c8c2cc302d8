"""Coordinate systems: Cartesian, flipped Cartesian and simple map projections.

A plot has exactly one coordinate system; declaring another replaces it.
Projection and clipping helpers are pure functions over numpy arrays.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from layerplot.errors import PlotDataError


PROJECTIONS = frozenset({"mercator", "equirectangular"})
# Mercator diverges at the poles.
MERCATOR_MAX_LAT = 85.05112878


@dataclass(frozen=True)
class Cartesian:
    xlim: tuple[float, float] | None = None
    ylim: tuple[float, float] | None = None
    flip: bool = False

    @property
    def fixed_aspect(self) -> bool:
        return False


@dataclass(frozen=True)
class MapProjection:
    projection: str = "mercator"
    xlim: tuple[float, float] | None = None
    ylim: tuple[float, float] | None = None

    def __post_init__(self) -> None:
        if self.projection not in PROJECTIONS:
            raise ValueError(f"unknown projection: {self.projection}")
        for lim in (self.xlim, self.ylim):
            if lim is not None and (len(lim) != 2 or lim[0] >= lim[1]):
                raise ValueError("projection window limits must be (low, high) with low < high")

    @property
    def flip(self) -> bool:
        return False

    @property
    def fixed_aspect(self) -> bool:
        return True

    def project(self, lon: np.ndarray, lat: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        return project(self.projection, lon, lat)

    def window(self) -> tuple[float, float, float, float] | None:
        """Projected (x0, y0, x1, y1) bounding window, or None when unbounded."""
        if self.xlim is None and self.ylim is None:
            return None
        lon = np.asarray(self.xlim if self.xlim is not None else (-180.0, 180.0), dtype=np.float64)
        lat = np.asarray(self.ylim if self.ylim is not None else (-90.0, 90.0), dtype=np.float64)
        px, py = self.project(lon, lat)
        return (float(px[0]), float(py[0]), float(px[1]), float(py[1]))


CoordSystem = Cartesian | MapProjection


def coord_cartesian(xlim: tuple[float, float] | None = None, ylim: tuple[float, float] | None = None) -> Cartesian:
    return Cartesian(
        xlim=tuple(xlim) if xlim is not None else None,  # type: ignore[arg-type]
        ylim=tuple(ylim) if ylim is not None else None,  # type: ignore[arg-type]
    )


def coord_flip(xlim: tuple[float, float] | None = None, ylim: tuple[float, float] | None = None) -> Cartesian:
    return Cartesian(
        xlim=tuple(xlim) if xlim is not None else None,  # type: ignore[arg-type]
        ylim=tuple(ylim) if ylim is not None else None,  # type: ignore[arg-type]
        flip=True,
    )


def coord_map(
    projection: str = "mercator",
    xlim: tuple[float, float] | None = None,
    ylim: tuple[float, float] | None = None,
) -> MapProjection:
    return MapProjection(
        projection=projection,
        xlim=tuple(xlim) if xlim is not None else None,  # type: ignore[arg-type]
        ylim=tuple(ylim) if ylim is not None else None,  # type: ignore[arg-type]
    )


def project(projection: str, lon: np.ndarray, lat: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    lon = np.asarray(lon, dtype=np.float64)
    lat = np.asarray(lat, dtype=np.float64)
    if projection == "equirectangular":
        return lon.copy(), lat.copy()
    if projection == "mercator":
        clipped = np.clip(lat, -MERCATOR_MAX_LAT, MERCATOR_MAX_LAT)
        y = np.degrees(np.log(np.tan(np.pi / 4.0 + np.radians(clipped) / 2.0)))
        return lon.copy(), y
    raise PlotDataError(f"unknown projection: {projection}")


def inside_window(x: np.ndarray, y: np.ndarray, window: tuple[float, float, float, float]) -> np.ndarray:
    x0, y0, x1, y1 = window
    return (x >= x0) & (x <= x1) & (y >= y0) & (y <= y1)


def clip_polygon(
    xs: np.ndarray,
    ys: np.ndarray,
    window: tuple[float, float, float, float],
) -> tuple[np.ndarray, np.ndarray]:
    """Sutherland-Hodgman clip of one ring against an axis-aligned window."""
    x0, y0, x1, y1 = window
    points = list(zip(np.asarray(xs, dtype=np.float64).tolist(), np.asarray(ys, dtype=np.float64).tolist()))
    edges = (
        (lambda p: p[0] >= x0, lambda a, b: _cross_x(a, b, x0)),
        (lambda p: p[0] <= x1, lambda a, b: _cross_x(a, b, x1)),
        (lambda p: p[1] >= y0, lambda a, b: _cross_y(a, b, y0)),
        (lambda p: p[1] <= y1, lambda a, b: _cross_y(a, b, y1)),
    )
    for keep, cross in edges:
        if not points:
            break
        out: list[tuple[float, float]] = []
        prev = points[-1]
        for cur in points:
            if keep(cur):
                if not keep(prev):
                    out.append(cross(prev, cur))
                out.append(cur)
            elif keep(prev):
                out.append(cross(prev, cur))
            prev = cur
        points = out
    if not points:
        return np.zeros(0, dtype=np.float64), np.zeros(0, dtype=np.float64)
    arr = np.asarray(points, dtype=np.float64)
    return arr[:, 0], arr[:, 1]


def clip_segment(
    p0: tuple[float, float],
    p1: tuple[float, float],
    window: tuple[float, float, float, float],
) -> tuple[tuple[float, float], tuple[float, float]] | None:
    """Liang-Barsky clip; None when the segment misses the window."""
    x0, y0, x1, y1 = window
    dx = p1[0] - p0[0]
    dy = p1[1] - p0[1]
    t0, t1 = 0.0, 1.0
    for p, q in ((-dx, p0[0] - x0), (dx, x1 - p0[0]), (-dy, p0[1] - y0), (dy, y1 - p0[1])):
        if p == 0:
            if q < 0:
                return None
            continue
        r = q / p
        if p < 0:
            if r > t1:
                return None
            t0 = max(t0, r)
        else:
            if r < t0:
                return None
            t1 = min(t1, r)
    return (
        (p0[0] + t0 * dx, p0[1] + t0 * dy),
        (p0[0] + t1 * dx, p0[1] + t1 * dy),
    )


def _cross_x(a: tuple[float, float], b: tuple[float, float], x: float) -> tuple[float, float]:
    t = (x - a[0]) / (b[0] - a[0])
    return (x, a[1] + t * (b[1] - a[1]))


def _cross_y(a: tuple[float, float], b: tuple[float, float], y: float) -> tuple[float, float]:
    t = (y - a[1]) / (b[1] - a[1])
    return (a[0] + t * (b[0] - a[0]), y)
