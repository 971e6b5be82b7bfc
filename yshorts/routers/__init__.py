"""Routers package initialization"""
from .shorts import router as shorts_router
from .transcription import router as transcription_router

__all__ = ["shorts_router", "transcription_router"]
