"""
Pydantic models for the detection pipeline and the HTTP API.
Defines the data contracts shared by perception, decision and agent layers.
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Union
from enum import Enum

import numpy as np


class FrameAccessError(RuntimeError):
    """Raised when a frame's pixel buffer cannot be read."""


# ============================================================================
# Detection Models
# ============================================================================

class BoundingBox(BaseModel):
    """Axis-aligned bounding box in pixel coordinates (top-left origin)."""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2


class Detection(BaseModel):
    """
    Single classifier result for one tick.

    - class_label: raw class name reported by the classifier ("person", "car", ...)
    - confidence: classifier score [0, 1]
    - bbox: pixel-space bounding box
    """
    model_config = ConfigDict(frozen=True)

    class_label: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    bbox: BoundingBox


class Frame(BaseModel):
    """
    Read-only RGBA snapshot of the current camera image.

    `pixels` is None when the buffer is not readable (e.g. a tainted
    browser canvas); consumers must handle that via FrameAccessError.
    """
    model_config = ConfigDict(frozen=True)

    width: int = Field(..., ge=0)
    height: int = Field(..., ge=0)
    pixels: Optional[bytes] = None

    @classmethod
    def from_array(cls, image: np.ndarray) -> "Frame":
        """Build a frame from an (H, W, 3) RGB or (H, W, 4) RGBA uint8 array."""
        if image.ndim != 3 or image.shape[2] not in (3, 4):
            raise ValueError(f"Expected (H, W, 3|4) image, got shape {image.shape}")

        h, w = image.shape[:2]
        if image.shape[2] == 3:
            alpha = np.full((h, w, 1), 255, dtype=np.uint8)
            image = np.concatenate([image.astype(np.uint8), alpha], axis=2)

        return cls(width=w, height=h, pixels=np.ascontiguousarray(image, dtype=np.uint8).tobytes())

    def rgba(self) -> np.ndarray:
        """Return pixels as an (H, W, 4) uint8 array view."""
        if self.pixels is None:
            raise FrameAccessError("Pixel buffer is not accessible")

        expected = self.width * self.height * 4
        if len(self.pixels) != expected:
            raise FrameAccessError(
                f"Pixel buffer has {len(self.pixels)} bytes, expected {expected}"
            )

        return np.frombuffer(self.pixels, dtype=np.uint8).reshape(self.height, self.width, 4)


# ============================================================================
# Spatial / Priority Models
# ============================================================================

class Position(str, Enum):
    """Horizontal position of a subject in the frame."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class PriorityClass(str, Enum):
    """
    Priority tiers, most urgent first.
    Exactly one tier wins per tick.
    """
    PERSON = "person"
    VEHICLE = "vehicle"
    OBSTACLE = "obstacle"
    WALL = "wall"
    CLEAR = "clear"


class SpatialEstimate(BaseModel):
    """Distance and position derived for the selected subject."""
    model_config = ConfigDict(frozen=True)

    distance_m: float
    position: Position


class SurfaceReading(BaseModel):
    """Flat surface ("wall") found by the scene surface analyzer."""
    model_config = ConfigDict(frozen=True)

    distance_m: float
    position: Position
    mean_brightness: float
    edge_density: float


class Finding(BaseModel):
    """
    Outcome of prioritizing one tick.

    subject is the winning Detection, the SurfaceReading for the wall tier,
    or None when the path is clear.
    """
    model_config = ConfigDict(frozen=True)

    priority: PriorityClass
    subject: Optional[Union[Detection, SurfaceReading]] = None
    estimate: Optional[SpatialEstimate] = None
    text: str


# ============================================================================
# API Models
# ============================================================================

class FrameRequest(BaseModel):
    """Request body for /frame endpoint."""
    image_base64: str = Field(..., description="Base64 encoded image")


class FrameResponse(BaseModel):
    """Response from /frame endpoint."""
    width: int
    height: int
    accepted: bool = True


class PipelineRequest(BaseModel):
    """Request body for /pipeline endpoint."""
    image_base64: str = Field(..., description="Base64 encoded image")


class PipelineResponse(BaseModel):
    """Unthrottled prioritization of a single frame."""
    finding: Finding
    detections: List[Detection]
    inference_time_ms: float


class AnnouncementResponse(BaseModel):
    """Current published announcement and loop status."""
    text: str
    ready: bool
    running: bool
    error: Optional[str] = None
    last_error: Optional[str] = None


class SpeechStateRequest(BaseModel):
    """Client speech engine start/end signal."""
    speaking: bool


class SpeechNextResponse(BaseModel):
    """Pending utterance for the client speech engine."""
    text: Optional[str] = None


class ControlResponse(BaseModel):
    """Response from /start and /stop."""
    running: bool
    error: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    version: str
    models_loaded: bool
