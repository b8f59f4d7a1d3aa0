"""HSV color utilities.

Hue is an angle, so every average and distance over hue goes through the unit
circle. Saturation and value use the 0-100 scale throughout the pipeline.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

import cv2
import numpy as np

from betavision.core.types import ColorName, HSVColor

# Detector palette (class id -> label). Two-tone holds are named after their main color.
HOLD_CLASSES: dict[int, str] = {
    0: "black-hold",
    1: "black-pink-hold",
    2: "black-white-hold",
    3: "blue-hold",
    4: "brown-hold",
    5: "cyan-hold",
    6: "gray-hold",
    7: "green-hold",
    8: "orange-hold",
    9: "pink-hold",
    10: "purple-hold",
    11: "red-hold",
    12: "white-hold",
    13: "yellow-hold",
    14: "yellow-purple-hold",
    15: "black-yellow-hold",
}

# Achromatic bands, checked before hue.
BLACK_MAX_VALUE = 20.0
ACHROMATIC_MAX_SATURATION = 15.0
WHITE_MIN_VALUE = 80.0

# Hue bands: a hue belongs to the first band whose upper bound it is below.
RED_MAX_HUE = 15.0
ORANGE_MAX_HUE = 45.0
YELLOW_MAX_HUE = 75.0
GREEN_MAX_HUE = 150.0
CYAN_MAX_HUE = 195.0
BLUE_MAX_HUE = 255.0
PURPLE_MAX_HUE = 285.0
PINK_MAX_HUE = 345.0

_HUE_BANDS: tuple[tuple[float, ColorName], ...] = (
    (RED_MAX_HUE, ColorName.RED),
    (ORANGE_MAX_HUE, ColorName.ORANGE),
    (YELLOW_MAX_HUE, ColorName.YELLOW),
    (GREEN_MAX_HUE, ColorName.GREEN),
    (CYAN_MAX_HUE, ColorName.CYAN),
    (BLUE_MAX_HUE, ColorName.BLUE),
    (PURPLE_MAX_HUE, ColorName.PURPLE),
    (PINK_MAX_HUE, ColorName.PINK),
    (360.0, ColorName.RED),  # wraps back to red
)


def main_color_from_class(color_class: str) -> str:
    """Return the main color of a detector label (`"yellow-purple-hold"` -> `"yellow"`)."""

    return color_class.replace("-hold", "").split("-")[0]


def normalize_hue(h: float) -> float:
    """Wrap a hue in degrees into [0, 360)."""

    h = math.fmod(h, 360.0)
    if h < 0:
        h += 360.0
    if h >= 360.0:
        h -= 360.0
    return h


def rgb_to_hsv(r: float, g: float, b: float) -> HSVColor:
    """Convert 0-255 RGB to HSV (hue degrees, saturation/value 0-100)."""

    r, g, b = r / 255.0, g / 255.0, b / 255.0
    mx = max(r, g, b)
    mn = min(r, g, b)
    delta = mx - mn

    h = 0.0
    if delta != 0:
        if mx == r:
            h = 60.0 * (((g - b) / delta) % 6)
        elif mx == g:
            h = 60.0 * ((b - r) / delta + 2)
        else:
            h = 60.0 * ((r - g) / delta + 4)
    s = 0.0 if mx == 0 else (delta / mx) * 100.0
    return HSVColor(h=normalize_hue(h), s=s, v=mx * 100.0)


def bgr_pixels_to_hsv(pixels: np.ndarray) -> np.ndarray:
    """Convert an (N, 3) uint8 BGR pixel array to (N, 3) HSV on the pipeline scale."""

    if pixels.size == 0:
        return np.zeros((0, 3), dtype=np.float32)
    arr = pixels.reshape(-1, 1, 3).astype(np.float32) / 255.0
    # Float input makes OpenCV return H in [0, 360) and S, V in [0, 1].
    hsv = cv2.cvtColor(arr, cv2.COLOR_BGR2HSV).reshape(-1, 3)
    hsv[:, 1:] *= 100.0
    return hsv


def circular_hue_distance(h1: float, h2: float) -> float:
    """Shortest angular distance between two hues, in [0, 180]."""

    d = abs(h1 - h2) % 360.0
    return min(d, 360.0 - d)


def circular_mean_hue(hues: Iterable[float], weights: Iterable[float] | None = None) -> float:
    """Vector mean of hue angles in degrees. Returns 0 for an empty input."""

    h = np.asarray(list(hues), dtype=np.float64)
    if h.size == 0:
        return 0.0
    w = np.ones_like(h) if weights is None else np.asarray(list(weights), dtype=np.float64)
    rad = np.deg2rad(h)
    sin_sum = float(np.sum(np.sin(rad) * w))
    cos_sum = float(np.sum(np.cos(rad) * w))
    return normalize_hue(math.degrees(math.atan2(sin_sum, cos_sum)))


def average_hsv(colors: np.ndarray | Iterable[HSVColor]) -> HSVColor:
    """Mean color with a circular mean for hue and linear means for S and V."""

    if isinstance(colors, np.ndarray):
        arr = colors.reshape(-1, 3)
    else:
        arr = np.asarray([c.as_tuple() for c in colors], dtype=np.float64).reshape(-1, 3)
    if arr.shape[0] == 0:
        return HSVColor(0.0, 0.0, 0.0)
    return HSVColor(
        h=circular_mean_hue(arr[:, 0]),
        s=float(arr[:, 1].mean()),
        v=float(arr[:, 2].mean()),
    )


def classify_hsv(h: float, s: float, v: float) -> ColorName:
    """Map an HSV triple to a named color through ordered band checks."""

    if any(math.isnan(c) for c in (h, s, v)):
        return ColorName.UNKNOWN
    if v < BLACK_MAX_VALUE:
        return ColorName.BLACK
    if s < ACHROMATIC_MAX_SATURATION:
        return ColorName.WHITE if v > WHITE_MIN_VALUE else ColorName.GRAY

    hue = normalize_hue(h)
    for upper, name in _HUE_BANDS:
        if hue < upper:
            return name
    return ColorName.UNKNOWN


def classify_color(color: HSVColor) -> ColorName:
    return classify_hsv(color.h, color.s, color.v)
