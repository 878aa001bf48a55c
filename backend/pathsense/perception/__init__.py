"""Perception module - classifier backend, geometry and surface analysis."""

from pathsense.perception.geometry import estimate_distance, estimate_position, spatial_estimate
from pathsense.perception.surface import SurfaceAnalyzer
from pathsense.perception.detector import Classifier, YoloClassifier, decode_frame, get_classifier

__all__ = [
    "estimate_distance",
    "estimate_position",
    "spatial_estimate",
    "SurfaceAnalyzer",
    "Classifier",
    "YoloClassifier",
    "decode_frame",
    "get_classifier",
]
