"""
YShorts - YouTube Best-Moments to Shorts
Main FastAPI Application Entry Point
"""

from pathlib import Path
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .utils.logger import setup_logger
from .utils.exceptions import NotFoundError, YShortsError
from .routers import shorts_router, transcription_router
from .services.transcoder import Transcoder


# Set up logging
logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    settings = get_settings()

    # Create required directories
    Path(settings.output_dir).mkdir(parents=True, exist_ok=True)
    Path(settings.temp_dir).mkdir(parents=True, exist_ok=True)

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} - YouTube Best-Moments to Shorts")
    logger.info("=" * 60)
    logger.info(f"Output directory: {settings.output_dir}")
    logger.info(f"Temp directory: {settings.temp_dir}")

    if await Transcoder(settings).check_available():
        logger.info("[OK] FFmpeg available")
    else:
        logger.warning("[!] FFmpeg not found (clip rendering will fail)")

    if settings.assemblyai_api_key:
        logger.info("[OK] AssemblyAI configured")
    else:
        logger.warning("[!] AssemblyAI API key not set (transcription disabled)")

    if settings.gemini_api_key:
        logger.info("[OK] Gemini AI configured")
    else:
        logger.warning("[!] Gemini API key not set (moment extraction disabled)")

    logger.info("=" * 60)
    logger.info("Server started successfully!")
    logger.info("API Docs: http://localhost:8000/docs")
    logger.info("=" * 60)

    yield

    logger.info(f"Shutting down {settings.app_name}...")


# Create FastAPI app
app = FastAPI(
    title="YShorts",
    description="Turn the best moments of a YouTube video into short clips",
    version=get_settings().app_version,
    lifespan=lifespan
)

# CORS middleware
settings = get_settings()
cors_origins = settings.cors_allowed_origins or ["http://localhost:3000", "http://127.0.0.1:3000"]
cors_allow_credentials = "*" not in cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Global Exception Handlers
# ============================================================================

@app.exception_handler(YShortsError)
async def yshorts_exception_handler(request: Request, exc: YShortsError):
    """Handle all YShorts custom exceptions"""
    logger.error(f"YShortsError [{exc.code}]: {exc.message}")
    if isinstance(exc, NotFoundError):
        status_code = 404
    else:
        status_code = 400 if exc.recoverable else 500
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(ValueError)
async def validation_exception_handler(request: Request, exc: ValueError):
    """Handle validation errors"""
    logger.warning(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content={
            "error": "VALIDATION_ERROR",
            "message": str(exc),
            "recoverable": True,
            "recovery_hint": "Check your input parameters and try again."
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle any unhandled exceptions"""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again.",
            "recoverable": True,
            "recovery_hint": "If this persists, check the server logs for details."
        }
    )


# Include routers
app.include_router(shorts_router)
app.include_router(transcription_router)


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy", "app": settings.app_name}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "yshorts.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
