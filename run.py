"""
Development server for the business analysis API.

Usage:
    python run.py

Environment variables (set in .env file):
    DEBUG=true - Enable debug logging
    PORT=8000 - Set server port (default: 8000)
    HOST=127.0.0.1 - Set server host (default: 127.0.0.1)
    DATABASE_URL=sqlite:///data/business_circle.db - Message/snapshot store
    BATCH_SIZE=500 - Messages sent to the extraction service per call
"""

import os

import uvicorn

from app.config import get_settings

ANALYSIS_ROUTES = (
    "POST /api/analysis/run",
    "GET  /api/analysis/latest",
    "GET  /api/analysis/snapshots",
    "GET  /api/analysis/sync-status",
)


if __name__ == "__main__":
    settings = get_settings()
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    log_level = "debug" if settings.debug else "info"

    print(f"{settings.app_name} on http://{host}:{port} (log level {log_level})")
    print(f"Store: {settings.database_url}, batch size {settings.batch_size}, "
          f"up to {settings.max_concurrent_groups} groups at once")
    for route in ANALYSIS_ROUTES:
        print(f"  {route}")

    uvicorn.run(
        "app.main:app",
        host=host,
        port=port,
        reload=settings.debug,
        log_level=log_level,
        access_log=True,
    )
