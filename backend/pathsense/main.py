"""
PathSense Backend - FastAPI Application
Spoken obstacle warnings from a live camera feed.

The browser client uploads camera frames, polls for the next utterance,
speaks it, and reports when speech starts/ends. The detection loop runs
server-side once per tick period.
"""

import time
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from pathsense import __version__
from pathsense.config import get_settings
from pathsense.models import (
    FrameRequest, FrameResponse,
    PipelineRequest, PipelineResponse,
    AnnouncementResponse, ControlResponse,
    SpeechStateRequest, SpeechNextResponse,
    HealthResponse
)
from pathsense.perception import decode_frame, get_classifier
from pathsense.agent import get_controller, get_frame_buffer, get_speech_channel


# Configure logging
settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting PathSense backend...")

    logger.info("Loading object detection model...")
    try:
        get_classifier().load()
    except Exception as e:
        # Service stays up; /start reports the missing capability
        logger.error(f"Model load failed: {e}")

    controller = get_controller()
    if get_settings().auto_start:
        controller.start()

    logger.info(f"PathSense backend v{__version__} ready!")

    yield

    # Shutdown
    logger.info("Shutting down PathSense backend...")
    controller.stop()


# Create FastAPI app
app = FastAPI(
    title="PathSense - Obstacle Announcement API",
    description="Camera-based spoken obstacle warnings for blind and low-vision users",
    version=__version__,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=__version__,
        models_loaded=get_controller().ready
    )


# ============================================================================
# Frame Intake
# ============================================================================

@app.post("/frame", response_model=FrameResponse)
async def upload_frame(request: FrameRequest):
    """Store the latest camera frame for the next tick."""
    try:
        frame = decode_frame(request.image_base64)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    get_frame_buffer().put(frame)
    return FrameResponse(width=frame.width, height=frame.height)


# ============================================================================
# Published Announcement
# ============================================================================

@app.get("/announcement", response_model=AnnouncementResponse)
async def current_announcement():
    """Current announcement and loop status."""
    controller = get_controller()
    return AnnouncementResponse(
        text=controller.announcement,
        ready=controller.ready,
        running=controller.running,
        error=controller.error,
        last_error=controller.last_error,
    )


# ============================================================================
# Speech Hand-off
# ============================================================================

@app.get("/speech/next", response_model=SpeechNextResponse)
async def next_utterance():
    """Pop the utterance the client should speak next."""
    return SpeechNextResponse(text=get_speech_channel().take_pending())


@app.post("/speech/state", response_model=SpeechNextResponse)
async def speech_state(request: SpeechStateRequest):
    """Client reports speech start (speaking=true) or end/error (speaking=false)."""
    speech = get_speech_channel()
    if request.speaking:
        speech.started()
    else:
        speech.finished()
    return SpeechNextResponse(text=None)


# ============================================================================
# Loop Control
# ============================================================================

@app.post("/start", response_model=ControlResponse)
async def start_detection():
    """Start (or restart) the detection loop."""
    controller = get_controller()
    if not controller.start():
        raise HTTPException(status_code=503, detail=controller.error)
    return ControlResponse(running=True)


@app.post("/stop", response_model=ControlResponse)
async def stop_detection():
    """Stop the detection loop and clear announcement state."""
    controller = get_controller()
    controller.stop()
    get_speech_channel().cancel()
    get_frame_buffer().clear()
    return ControlResponse(running=False)


# ============================================================================
# Single-frame Pipeline (debug)
# ============================================================================

@app.post("/pipeline", response_model=PipelineResponse)
async def run_pipeline(request: PipelineRequest):
    """
    Prioritize one frame without the throttle.

    For UI/debug purposes only: does not publish or speak anything.
    """
    controller = get_controller()
    if not controller.ready:
        raise HTTPException(status_code=503, detail="Detection model not loaded")

    try:
        frame = decode_frame(request.image_base64)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        start = time.time()
        detections = await controller.classifier.detect(frame)
        inference_time = (time.time() - start) * 1000

        finding = controller.prioritizer.prioritize(detections, frame.width, frame)

        return PipelineResponse(
            finding=finding,
            detections=detections,
            inference_time_ms=inference_time
        )

    except Exception as e:
        logger.error(f"Pipeline error: {e}")
        raise HTTPException(status_code=500, detail=str(e))
