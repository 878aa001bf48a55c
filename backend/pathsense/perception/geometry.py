"""
Geometry Estimator - distance and position from a bounding box.

Distance uses a pinhole camera model:
    focal_px = frame_width / (2 * tan(vfov / 2))
    distance = expected_height_m * focal_px / bbox_height_px

The field of view is an assumed constant, not a calibrated intrinsic.
Every function here is pure and total: bad input yields a safe default.
"""

import math
import logging

import numpy as np

from pathsense.models import BoundingBox, Detection, Position, SpatialEstimate


logger = logging.getLogger(__name__)


# Camera vertical FOV (degrees) - typical smartphone/webcam
CAMERA_VFOV_DEG = 60.0

MIN_DISTANCE_M = 0.3
MAX_DISTANCE_M = 20.0
DEFAULT_DISTANCE_M = 1.0
DEFAULT_HEIGHT_M = 1.0

# Expected real-world heights (meters), keyed by normalized class label
EXPECTED_HEIGHT_M = {
    "person": 1.7,
    "car": 1.5,
    "truck": 2.5,
    "motorcycle": 1.2,
    "bus": 3.0,
    "dog": 0.6,
    "cat": 0.3,
    "bicycle": 1.0,
    "chair": 0.8,
    "door": 2.0,
    "tree": 5.0,
    "pole": 0.3,
    "traffic cone": 0.7,
    "bench": 0.5,
    "wall": 2.0,
}

LEFT_BOUNDARY = 0.33
RIGHT_BOUNDARY = 0.67


def normalize_label(class_label: str) -> str:
    """Lower-case, trimmed label with underscores read as spaces."""
    return class_label.strip().lower().replace("_", " ")


def focal_length_px(frame_width: float, vfov_deg: float = CAMERA_VFOV_DEG) -> float:
    """Effective focal length in pixels for the assumed field of view."""
    return float(frame_width / (2 * np.tan(np.radians(vfov_deg) / 2)))


def estimate_distance(
    bbox: BoundingBox,
    frame_width: float,
    class_label: str,
    vfov_deg: float = CAMERA_VFOV_DEG,
) -> float:
    """
    Estimate distance in meters to the object inside `bbox`.

    Result is rounded to one decimal and clamped to [0.3, 20.0].
    Zero/negative/non-finite box height or frame width returns 1.0.
    """
    height = bbox.height
    if not (math.isfinite(height) and height > 0):
        return DEFAULT_DISTANCE_M
    if not (math.isfinite(frame_width) and frame_width > 0):
        return DEFAULT_DISTANCE_M
    if not (math.isfinite(vfov_deg) and 0 < vfov_deg < 180):
        return DEFAULT_DISTANCE_M

    expected_h = EXPECTED_HEIGHT_M.get(normalize_label(class_label), DEFAULT_HEIGHT_M)
    distance = expected_h * focal_length_px(frame_width, vfov_deg) / height

    if math.isnan(distance):
        logger.debug(f"Distance for {class_label} is NaN, using default")
        return DEFAULT_DISTANCE_M

    return max(MIN_DISTANCE_M, min(MAX_DISTANCE_M, round(distance, 1)))


def estimate_position(bbox: BoundingBox, frame_width: float) -> Position:
    """
    Map the box's horizontal center to a third of the frame:
        left (< 0.33), center, right (> 0.67)
    """
    if not (math.isfinite(frame_width) and frame_width > 0):
        return Position.CENTER

    relative = bbox.center_x / frame_width
    if relative < LEFT_BOUNDARY:
        return Position.LEFT
    if relative > RIGHT_BOUNDARY:
        return Position.RIGHT
    return Position.CENTER


def spatial_estimate(
    detection: Detection,
    frame_width: float,
    vfov_deg: float = CAMERA_VFOV_DEG,
) -> SpatialEstimate:
    """Distance and position for a single detection."""
    return SpatialEstimate(
        distance_m=estimate_distance(detection.bbox, frame_width, detection.class_label, vfov_deg),
        position=estimate_position(detection.bbox, frame_width),
    )
