"""
Scene Surface Analyzer - detect a flat, close surface ("wall").

Used only when the classifier reports nothing worth announcing.
A square region in the middle of the frame (side = min(w, h) / 3) is
scanned for mean brightness and edge density:

    luma  = mean(R, G, B)
    edge  = |luma(left) - luma(right)| + |luma(up) - luma(down)|

A wall is reported when the region is flat (few edges) and lit.
Brighter flat surfaces are assumed to be closer.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from pathsense.models import Frame, FrameAccessError, Position, SurfaceReading


logger = logging.getLogger(__name__)


EDGE_THRESHOLD = 30.0
MAX_EDGE_DENSITY = 0.10
MIN_BRIGHTNESS = 50.0

# (brightness strictly above, distance in meters), brightest first
BRIGHTNESS_DISTANCE_STEPS: Tuple[Tuple[float, float], ...] = (
    (220, 0.5),
    (210, 0.7),
    (200, 1.0),
    (190, 1.3),
    (180, 1.6),
    (170, 2.0),
    (160, 2.5),
    (150, 3.0),
    (140, 3.5),
    (130, 4.0),
    (120, 4.5),
    (110, 5.0),
    (100, 5.5),
)
FARTHEST_WALL_M = 6.0


def brightness_to_distance(mean_brightness: float) -> float:
    """Step table lookup: >220 → 0.5 m ... <=100 → 6.0 m."""
    for floor, distance in BRIGHTNESS_DISTANCE_STEPS:
        if mean_brightness > floor:
            return distance
    return FARTHEST_WALL_M


def analysis_region(width: int, height: int) -> Tuple[int, int, int, int]:
    """Centered square region as (x0, y0, x1, y1), end-exclusive."""
    side = min(width, height) // 3
    x0 = max(0, width // 2 - side // 2)
    y0 = max(0, height // 2 - side // 2)
    return x0, y0, min(width, x0 + side), min(height, y0 + side)


def luma(rgba: np.ndarray) -> np.ndarray:
    """Per-pixel brightness as the mean of R, G and B."""
    return rgba[..., :3].astype(np.float32).mean(axis=2)


def edge_magnitude(brightness: np.ndarray) -> np.ndarray:
    """
    Central-difference gradient magnitude for every pixel.
    Pixels on the frame border have no full neighbourhood and score 0.
    """
    edges = np.zeros_like(brightness)
    if brightness.shape[0] < 3 or brightness.shape[1] < 3:
        return edges

    horizontal = np.abs(brightness[1:-1, :-2] - brightness[1:-1, 2:])
    vertical = np.abs(brightness[:-2, 1:-1] - brightness[2:, 1:-1])
    edges[1:-1, 1:-1] = horizontal + vertical
    return edges


def brightest_third(region: np.ndarray) -> Position:
    """Compare mean brightness of the region's vertical thirds; ties → center."""
    width = region.shape[1]
    left_end = width // 3
    right_start = (2 * width) // 3

    def _mean(part: np.ndarray) -> float:
        return float(part.mean()) if part.size else 0.0

    left = _mean(region[:, :left_end])
    center = _mean(region[:, left_end:right_start])
    right = _mean(region[:, right_start:])

    if left > center and left > right:
        return Position.LEFT
    if right > center and right > left:
        return Position.RIGHT
    return Position.CENTER


class SurfaceAnalyzer:
    """
    Flat-surface detector over raw RGBA pixels.

    Thresholds default to the fixed pipeline constants and can be
    overridden from settings.
    """

    def __init__(
        self,
        edge_threshold: float = EDGE_THRESHOLD,
        max_edge_density: float = MAX_EDGE_DENSITY,
        min_brightness: float = MIN_BRIGHTNESS,
    ):
        self.edge_threshold = edge_threshold
        self.max_edge_density = max_edge_density
        self.min_brightness = min_brightness

    def measure(self, frame: Frame) -> Optional[Tuple[float, float, Position]]:
        """
        Raw statistics for the analysis region:
        (mean_brightness, edge_density, brightest third).

        Returns None if the frame is empty or the buffer unreadable.
        """
        if frame.width == 0 or frame.height == 0:
            return None

        try:
            rgba = frame.rgba()
        except FrameAccessError as e:
            logger.warning(f"Surface analysis skipped: {e}")
            return None

        x0, y0, x1, y1 = analysis_region(frame.width, frame.height)
        pixel_count = (x1 - x0) * (y1 - y0)
        if pixel_count <= 0:
            return None

        brightness = luma(rgba)
        region = brightness[y0:y1, x0:x1]
        edges = edge_magnitude(brightness)[y0:y1, x0:x1]

        mean_brightness = float(region.mean())
        edge_density = int(np.count_nonzero(edges > self.edge_threshold)) / pixel_count
        return mean_brightness, edge_density, brightest_third(region)

    def analyze(self, frame: Frame) -> Optional[SurfaceReading]:
        """Return a wall reading, or None when no flat surface is present."""
        stats = self.measure(frame)
        if stats is None:
            return None

        mean_brightness, edge_density, position = stats
        logger.debug(
            f"Surface stats: brightness={mean_brightness:.1f} edge_density={edge_density:.3f}"
        )

        if edge_density >= self.max_edge_density or mean_brightness <= self.min_brightness:
            return None

        return SurfaceReading(
            distance_m=brightness_to_distance(mean_brightness),
            position=position,
            mean_brightness=round(mean_brightness, 1),
            edge_density=round(edge_density, 4),
        )
