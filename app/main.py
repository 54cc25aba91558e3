import logging
from fastapi import FastAPI
from app.config import get_settings
from app.api.routes import analysis

settings = get_settings()

# Configure application logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Set log level for app modules
logger = logging.getLogger("app")
logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

app = FastAPI(
    title=settings.app_name,
    description="Group chat to business recommendation knowledge base",
    version="0.1.0",
)

# Include routers
app.include_router(analysis.router, prefix="/api/analysis", tags=["Analysis"])


@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.app_name} - Group Chat to Business Recommendations",
        "version": "0.1.0",
        "endpoints": {
            "analysis": "/api/analysis",
            "health": "/health",
            "docs": "/docs",
            "redoc": "/redoc",
        },
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.app_name}
