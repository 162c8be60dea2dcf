"""API route modules."""

from stream_assets.api.routes import conversion, health, videos

__all__ = ["conversion", "health", "videos"]
