"""
Decision Engine - Obstacle Prioritizer
Turns one tick's detections into the single most urgent thing to say.

Tier order (first non-empty tier wins):
1. PERSON   - "person"
2. VEHICLE  - car, truck, motorcycle, bus
3. OBSTACLE - furniture, structures, animals, outdoor hazards
4. WALL     - flat surface from the scene surface analyzer (no object found)
5. CLEAR    - nothing in any tier

Within a tier the nearest subject wins; ties keep the first encountered.
No state is kept between ticks.
"""

import logging
from typing import FrozenSet, Optional, Sequence, Tuple

from pathsense.models import (
    Detection, Finding, Frame, PriorityClass, SpatialEstimate, SurfaceReading
)
from pathsense.perception.geometry import CAMERA_VFOV_DEG, normalize_label, spatial_estimate
from pathsense.perception.surface import SurfaceAnalyzer


logger = logging.getLogger(__name__)


CLEAR_PATH_TEXT = "Clear path ahead"
VERY_CLOSE_DISTANCE_M = 2.0

PERSON_LABELS: FrozenSet[str] = frozenset({"person"})

VEHICLE_LABELS: FrozenSet[str] = frozenset({"car", "truck", "motorcycle", "bus"})

OBSTACLE_LABELS: FrozenSet[str] = frozenset({
    # Furniture and indoor objects
    "chair", "couch", "bed", "dining table", "door", "tv", "laptop",
    "bottle", "cup", "backpack", "handbag", "suitcase",
    # Hazard objects
    "umbrella", "sports ball", "baseball bat", "tennis racket",
    "potted plant", "plant", "traffic cone", "bench", "railing", "fence",
    "pole", "skateboard", "bicycle", "motorcycle helmet",
    # Animals
    "dog", "cat", "bird", "teddy bear",
    # Outdoor hazards and structures
    "kite", "frisbee", "stairs", "step", "ramp", "escalator", "elevator",
    "pillar", "column", "barrier", "gate", "sign", "lamp", "street light",
    "hydrant", "fire hydrant", "mailbox", "trash can", "dumpster", "wall",
    "building", "bridge", "tunnel", "curb", "manhole", "grate", "bollard",
    "post", "tree", "bush", "rock", "log", "branch", "stick",
})

OBJECT_TIERS: Tuple[Tuple[PriorityClass, FrozenSet[str]], ...] = (
    (PriorityClass.PERSON, PERSON_LABELS),
    (PriorityClass.VEHICLE, VEHICLE_LABELS),
    (PriorityClass.OBSTACLE, OBSTACLE_LABELS),
)


def format_distance(distance_m: float) -> str:
    """1.0 -> "1", 2.5 -> "2.5" (speech friendly)."""
    return f"{distance_m:g}"


def phrase_person(estimate: SpatialEstimate, very_close_m: float = VERY_CLOSE_DISTANCE_M) -> str:
    distance = format_distance(estimate.distance_m)
    if estimate.distance_m < very_close_m:
        return f"Very close person {estimate.position.value} about {distance} meters"
    return f"Person {estimate.position.value} about {distance} meters away"


def phrase_object(class_label: str, estimate: SpatialEstimate) -> str:
    distance = format_distance(estimate.distance_m)
    return f"{class_label} {estimate.position.value} about {distance} meters away"


def phrase_wall(reading: SurfaceReading) -> str:
    distance = format_distance(reading.distance_m)
    return f"Wall {reading.position.value} about {distance} meters ahead"


class ObstaclePrioritizer:
    """
    Stateless tier resolver.

    Rules:
    - Tier precedence beats distance: a far person outranks a near car
    - Nearest subject wins inside a tier
    - The surface analyzer only runs when no object tier matched
    """

    def __init__(
        self,
        surface_analyzer: Optional[SurfaceAnalyzer] = None,
        min_confidence: float = 0.0,
        very_close_m: float = VERY_CLOSE_DISTANCE_M,
        vfov_deg: float = CAMERA_VFOV_DEG,
    ):
        self.surface_analyzer = surface_analyzer or SurfaceAnalyzer()
        self.min_confidence = min_confidence
        self.very_close_m = very_close_m
        self.vfov_deg = vfov_deg

    def select_object(
        self,
        detections: Sequence[Detection],
        frame_width: float,
    ) -> Optional[Tuple[PriorityClass, Detection, SpatialEstimate]]:
        """
        Resolve tiers 1-3.

        Returns (tier, nearest detection, estimate) or None if no detection
        belongs to an object tier.
        """
        qualifying = [d for d in detections if d.confidence >= self.min_confidence]

        for tier, labels in OBJECT_TIERS:
            best: Optional[Tuple[Detection, SpatialEstimate]] = None

            for detection in qualifying:
                if normalize_label(detection.class_label) not in labels:
                    continue
                estimate = spatial_estimate(detection, frame_width, self.vfov_deg)
                # Strict comparison keeps the first of equally near subjects
                if best is None or estimate.distance_m < best[1].distance_m:
                    best = (detection, estimate)

            if best is not None:
                return tier, best[0], best[1]

        return None

    def phrase(self, tier: PriorityClass, detection: Detection, estimate: SpatialEstimate) -> str:
        """Announcement text for an object-tier subject."""
        if tier == PriorityClass.PERSON:
            return phrase_person(estimate, self.very_close_m)
        return phrase_object(detection.class_label, estimate)

    def prioritize(
        self,
        detections: Sequence[Detection],
        frame_width: float,
        frame: Optional[Frame] = None,
    ) -> Finding:
        """
        Pick exactly one subject for this tick.

        `frame` feeds the surface analyzer; without it the wall tier is
        skipped and an empty scene reports a clear path.
        """
        selected = self.select_object(detections, frame_width)
        if selected is not None:
            tier, detection, estimate = selected
            logger.debug(f"Selected {tier.value}: {detection.class_label} at {estimate.distance_m}m")
            return Finding(
                priority=tier,
                subject=detection,
                estimate=estimate,
                text=self.phrase(tier, detection, estimate),
            )

        if frame is not None:
            reading = self.surface_analyzer.analyze(frame)
            if reading is not None:
                return Finding(
                    priority=PriorityClass.WALL,
                    subject=reading,
                    estimate=SpatialEstimate(distance_m=reading.distance_m, position=reading.position),
                    text=phrase_wall(reading),
                )

        return Finding(priority=PriorityClass.CLEAR, text=CLEAR_PATH_TEXT)
