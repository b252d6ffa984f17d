"""
API Routers

FastAPI routers for the engine's HTTP and WebSocket surface.
"""

from breakout_engine.routers import engine_router

__all__ = ["engine_router"]
