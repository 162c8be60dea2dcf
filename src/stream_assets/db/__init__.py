"""Database layer."""

from stream_assets.db.models import (
    AccountModel,
    AssetModel,
    Base,
    BucketModel,
    PlaylistItemModel,
    PlaylistModel,
)
from stream_assets.db.session import get_session, get_session_context, init_db

__all__ = [
    "Base",
    "get_session",
    "get_session_context",
    "init_db",
    # Models
    "AccountModel",
    "AssetModel",
    "BucketModel",
    "PlaylistItemModel",
    "PlaylistModel",
]
