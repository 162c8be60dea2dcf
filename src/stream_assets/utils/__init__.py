"""Utility helpers."""

from stream_assets.utils.async_utils import run_async

__all__ = ["run_async"]
