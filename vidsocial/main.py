"""FastAPI ASGI application entrypoint."""

import os

import uvicorn

from .core.app_factory import create_application
from .core.config import Settings

settings = Settings()
app = create_application(settings)

__all__ = ("app",)


if __name__ == "__main__":
    uvicorn.run(
        "vidsocial.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=settings.log_level.lower(),
    )
