"""
Starts the PathSense API under uvicorn with host, port and log level taken
from settings (environment or .env). Installed as the `pathsense`
console script; `uvicorn pathsense.main:app` works too for ad hoc runs.
"""

import uvicorn
from pathsense.config import get_settings


def main():
    """Serve pathsense.main:app; debug mode turns on auto-reload."""
    settings = get_settings()

    uvicorn.run(
        "pathsense.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
