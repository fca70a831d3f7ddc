"""
Data models and crop-geometry utilities.

CropRect is anchored on its center point and carries a fixed aspect ratio,
so only ``x``, ``y`` and ``w`` ever change.  Every interactive edit goes
through ``apply_if_valid``: a proposal that would leave the image (or touch
its border) is dropped and the original rectangle is returned untouched.
There is no clamping.

PersonIdentity and CropRecord are the plain records shared with the
metadata codec and the roster.
"""

from dataclasses import dataclass, replace
from enum import Enum

from trombinoscope.config import DEFAULT_ASPECT_RATIO, INITIAL_WIDTH_DIVISOR


# =============================================================================
# Data classes
# =============================================================================
@dataclass(frozen=True)
class CropRect:
    """Crop rectangle in rotated-image coordinates, anchored on its center."""
    x: int = 0
    y: int = 0
    w: int = 0
    ratio: tuple[int, int] = DEFAULT_ASPECT_RATIO  # (height_units, width_units)

    @property
    def h(self) -> int:
        return height(self)


@dataclass(frozen=True)
class PersonIdentity:
    given: str
    family: str


@dataclass(frozen=True)
class CropRecord:
    """The durable state embedded in a photo file."""
    given: str
    family: str
    x: int
    y: int
    w: int
    rotation: int = 0


class Direction(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    ZOOM_IN = "zoom_in"
    ZOOM_OUT = "zoom_out"


# =============================================================================
# Crop math utilities
# =============================================================================
def _height_for(w: int, ratio: tuple[int, int]) -> int:
    hh, ww = ratio
    return w * hh // ww


def height(rect: CropRect) -> int:
    """Height derived from the width and the locked aspect ratio."""
    return _height_for(rect.w, rect.ratio)


def is_within_bounds(rect: CropRect, x: int, y: int, w: int, max_w: int, max_h: int) -> bool:
    """
    Check a proposed center/width against an image of ``max_w`` × ``max_h``.

    The height is derived from the *proposed* width.  Inequalities are
    strict so the crop never touches the image border.
    """
    h = _height_for(w, rect.ratio)
    return (
        w > 0
        and x - w // 2 > 0
        and y - h // 2 > 0
        and x + w // 2 < max_w
        and y + h // 2 < max_h
    )


def apply_if_valid(rect: CropRect, x: int, y: int, w: int, bounds: tuple[int, int]) -> CropRect:
    """Return the proposed rectangle if it fits in ``bounds``, else ``rect`` itself."""
    max_w, max_h = bounds
    if is_within_bounds(rect, x, y, w, max_w, max_h):
        return replace(rect, x=x, y=y, w=w)
    return rect


def shift_up(rect: CropRect, n: int, bounds: tuple[int, int]) -> CropRect:
    return apply_if_valid(rect, rect.x, rect.y - n, rect.w, bounds)


def shift_down(rect: CropRect, n: int, bounds: tuple[int, int]) -> CropRect:
    return apply_if_valid(rect, rect.x, rect.y + n, rect.w, bounds)


def shift_left(rect: CropRect, n: int, bounds: tuple[int, int]) -> CropRect:
    return apply_if_valid(rect, rect.x - n, rect.y, rect.w, bounds)


def shift_right(rect: CropRect, n: int, bounds: tuple[int, int]) -> CropRect:
    return apply_if_valid(rect, rect.x + n, rect.y, rect.w, bounds)


def zoom_in(rect: CropRect, n: int, bounds: tuple[int, int]) -> CropRect:
    """Narrow the crop by ``n`` around a fixed center."""
    return apply_if_valid(rect, rect.x, rect.y, rect.w - n, bounds)


def zoom_out(rect: CropRect, n: int, bounds: tuple[int, int]) -> CropRect:
    """Widen the crop by ``n`` around a fixed center."""
    return apply_if_valid(rect, rect.x, rect.y, rect.w + n, bounds)


_MOVES = {
    Direction.UP: shift_up,
    Direction.DOWN: shift_down,
    Direction.LEFT: shift_left,
    Direction.RIGHT: shift_right,
    Direction.ZOOM_IN: zoom_in,
    Direction.ZOOM_OUT: zoom_out,
}


def move(rect: CropRect, direction: Direction, n: int, bounds: tuple[int, int]) -> CropRect:
    return _MOVES[direction](rect, n, bounds)


def crop_box(rect: CropRect) -> tuple[int, int, int, int]:
    """Pillow ``(left, top, right, bottom)`` box covering exactly ``w`` × ``h`` pixels."""
    left = rect.x - rect.w // 2
    top = rect.y - rect.h // 2
    return left, top, left + rect.w, top + rect.h


def default_rect(img_w: int, img_h: int, ratio: tuple[int, int] = DEFAULT_ASPECT_RATIO) -> CropRect:
    """Centered crop, one fifth of the image width."""
    return CropRect(img_w // 2, img_h // 2, img_w // INITIAL_WIDTH_DIVISOR, ratio)
