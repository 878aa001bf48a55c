"""
Configuration management for the PathSense backend.
Tunables are loaded from environment variables (or a local .env file).
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # Model Configuration
    yolo_model: str = Field(default="yolov8n.pt", description="YOLO model file")
    yolo_confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    min_detection_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    
    # Detection Loop
    tick_period_seconds: float = Field(default=1.0, gt=0.0, le=10.0)
    frame_max_age_seconds: float = Field(default=3.0, gt=0.0)
    auto_start: bool = Field(default=False, description="Start the detection loop on startup")
    
    # Geometry
    camera_vfov_deg: float = Field(default=60.0, gt=0.0, lt=180.0)
    very_close_distance_m: float = Field(default=2.0, ge=0.0)
    
    # Announcement Throttle
    object_refresh_seconds: float = Field(default=4.0, ge=0.0)
    clear_refresh_seconds: float = Field(default=6.0, ge=0.0)
    
    # Scene Surface Analyzer
    surface_edge_threshold: float = Field(default=30.0, ge=0.0)
    surface_max_edge_density: float = Field(default=0.10, ge=0.0, le=1.0)
    surface_min_brightness: float = Field(default=50.0, ge=0.0, le=255.0)
    
    # Speech Channel
    speech_min_gap_seconds: float = Field(default=2.5, ge=0.0)
    speech_repeat_window_seconds: float = Field(default=5.0, ge=0.0)
    speech_timeout_seconds: float = Field(default=5.0, gt=0.0)
    
    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    cors_origins: str = Field(default="http://localhost:3000")
    
    # Debug
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    
    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
