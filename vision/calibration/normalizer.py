"""Normalization of marker layouts into a unit coordinate frame."""

from dataclasses import dataclass
from typing import List, Sequence

from config.settings import Point


class EmptyInputError(ValueError):
    """Raised when normalizing an empty point set."""


class DegenerateExtentError(ValueError):
    """Raised when all points share one y coordinate."""


@dataclass(frozen=True)
class NormalizedLayout:
    """Normalized points together with the transform that produced them."""
    points: List[Point]
    origin: Point
    scale: float


def normalize_layout(points: Sequence[Point]) -> NormalizedLayout:
    """Shift points to the (minX, minY) origin and scale by the y extent.

    Both axes share the scale 1 / (maxY - minY), so a vertically arranged
    string of lights keeps its aspect ratio and spans y in [0, 1].

    Args:
        points: Points in pixel space.

    Returns:
        NormalizedLayout with points in input order.

    Raises:
        EmptyInputError: If points is empty.
        DegenerateExtentError: If maxY == minY.
    """
    if not points:
        raise EmptyInputError("Cannot normalize an empty point set")

    min_x = min(p.x for p in points)
    min_y = min(p.y for p in points)
    max_y = max(p.y for p in points)

    if max_y == min_y:
        raise DegenerateExtentError(f"All {len(points)} points share y={min_y}")

    scale = 1.0 / (max_y - min_y)
    normalized = [Point((p.x - min_x) * scale, (p.y - min_y) * scale) for p in points]

    return NormalizedLayout(points=normalized, origin=Point(min_x, min_y), scale=scale)


def normalize(points: Sequence[Point]) -> List[Point]:
    """Normalize points; see normalize_layout."""
    return normalize_layout(points).points
