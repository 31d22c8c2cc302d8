from __future__ import annotations


class PlotError(ValueError):
    """Base class for plot construction failures raised before rendering."""


class PlotDataError(PlotError):
    """Malformed input table or plot configuration."""


class InvalidChannel(PlotError):
    def __init__(self, channel: str) -> None:
        super().__init__(f"unknown mapping channel: {channel!r}")
        self.channel = channel


class UnresolvedColumn(PlotError):
    def __init__(self, channel: str, column: str) -> None:
        super().__init__(f"channel {channel!r} references missing column {column!r}")
        self.channel = channel
        self.column = column


class TypeMismatch(PlotError):
    def __init__(self, channel: str, column: str | None, expected: str, actual: str) -> None:
        where = f"column {column!r}" if column is not None else "constant value"
        super().__init__(f"channel {channel!r} ({where}) must be {expected}, got {actual}")
        self.channel = channel
        self.column = column
        self.expected = expected
        self.actual = actual


class DomainError(PlotError):
    def __init__(self, channel: str, transform: str, value: float) -> None:
        super().__init__(f"{transform} transform undefined for {value!r} on channel {channel!r}")
        self.channel = channel
        self.transform = transform
        self.value = value


class UnmappedCategory(PlotError):
    def __init__(self, channel: str, category: object) -> None:
        super().__init__(f"category {category!r} has no value in the manual scale for channel {channel!r}")
        self.channel = channel
        self.category = category


__all__ = [
    "DomainError",
    "InvalidChannel",
    "PlotDataError",
    "PlotError",
    "TypeMismatch",
    "UnmappedCategory",
    "UnresolvedColumn",
]
