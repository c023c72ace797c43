"""Run the API server: ``python -m facecheck``."""

import uvicorn

from facecheck.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "facecheck.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
