"""
Main application entry point for the ExamForge backend.

Usage:
    - Direct: python -m backend.main
    - ASGI server: uvicorn backend.main:app
"""

import os

from backend import create_app
from backend.common.logger import APP_LOGGER_NAME, configure_logger
from backend.config import settings

# Apply the configured level and format to the application logger
app_logger = configure_logger(
    name=APP_LOGGER_NAME,
    level=settings.LOG_LEVEL,
    format_string=settings.LOG_FORMAT,
    use_json=os.environ.get("LOG_JSON", "false").lower() == "true",
    log_file=os.environ.get("LOG_FILE"),
)
logger = app_logger.getChild("main")

# Create the FastAPI application
app = create_app(settings)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": f"Welcome to {settings.PROJECT_NAME}"}


# Entry point for running the application directly
if __name__ == "__main__":
    import uvicorn

    # Get configuration from environment or use defaults
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 8000))
    reload_enabled = os.environ.get("RELOAD", "false").lower() == "true"

    logger.info(f"Starting server on {host}:{port} (reload: {reload_enabled})")

    uvicorn.run(
        "backend.main:app",
        host=host,
        port=port,
        reload=reload_enabled,
        log_level=settings.LOG_LEVEL.lower()
    )
