"""PathSense - spoken obstacle warnings from a live camera feed."""

__version__ = "0.1.0"
