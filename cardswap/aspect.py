"""Closest supported output aspect ratio for an input image."""

from enum import Enum
from typing import List


class AspectRatio(str, Enum):
    """Output aspect ratios accepted by the image model, in resolution order."""

    SQUARE = "1:1"
    PORTRAIT = "3:4"
    LANDSCAPE = "4:3"
    TALL = "9:16"
    WIDE = "16:9"

    @property
    def quotient(self) -> float:
        w, h = self.value.split(":")
        return int(w) / int(h)

    @classmethod
    def parse(cls, value: str) -> "AspectRatio":
        for ratio in cls:
            if ratio.value == value:
                return ratio
        raise ValueError(f"Unsupported aspect ratio: {value}")


DEFAULT_ASPECT_RATIO = AspectRatio.PORTRAIT


def supported_aspect_ratios() -> List[str]:
    return [r.value for r in AspectRatio]


def resolve_closest(width: int, height: int) -> AspectRatio:
    """
    Map a pixel size to the nearest supported aspect ratio.

    Candidates are scanned in enumeration order and only a strictly smaller
    difference replaces the current best, so exact ties keep the earlier one.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Dimensions must be positive, got {width}x{height}")

    ratio = width / height
    best = None
    best_diff = None
    for candidate in AspectRatio:
        diff = abs(candidate.quotient - ratio)
        if best is None or diff < best_diff:
            best = candidate
            best_diff = diff
    return best
