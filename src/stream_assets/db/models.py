"""SQLAlchemy ORM models."""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    true,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class AccountModel(Base):
    """Streaming account (plan limits live here)."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    bitrate_limit_kbps: Mapped[int | None] = mapped_column(Integer, nullable=True)
    storage_limit_mb: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    buckets: Mapped[list["BucketModel"]] = relationship(
        "BucketModel", back_populates="account", cascade="all, delete-orphan"
    )

    @property
    def login(self) -> str:
        """Remote directory name of the account (local part of the email)."""
        return self.email.split("@")[0] if self.email else f"user_{self.id}"


class BucketModel(Base):
    """Storage folder scoping one quota allotment."""

    __tablename__ = "buckets"
    __table_args__ = (UniqueConstraint("account_id", "name", name="uq_buckets_account_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    allotted_mb: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    used_mb: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    server_id: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    account: Mapped["AccountModel"] = relationship("AccountModel", back_populates="buckets")


class AssetModel(Base):
    """Stored video, either an upload or the product of a conversion."""

    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    bitrate_kbps: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    container_format: Mapped[str | None] = mapped_column(String(100), nullable=True)
    codec: Mapped[str | None] = mapped_column(String(50), nullable=True)
    width: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    height: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    is_normalized_container: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=false()
    )
    compatible: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=true())
    incompatibility_reasons: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    bucket: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    server_id: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    source_asset_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("assets.id", ondelete="SET NULL"), nullable=True, index=True
    )
    applied_quality: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # Per-asset conversion guard
    conversion_status: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default="not_started", index=True
    )
    conversion_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    converted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    conversion_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    source: Mapped["AssetModel | None"] = relationship(
        "AssetModel", remote_side="AssetModel.id", foreign_keys=[source_asset_id]
    )


class PlaylistModel(Base):
    """Named ordered collection of assets for playback."""

    __tablename__ = "playlists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    items: Mapped[list["PlaylistItemModel"]] = relationship(
        "PlaylistItemModel", back_populates="playlist", cascade="all, delete-orphan"
    )


class PlaylistItemModel(Base):
    """Reference from a playlist to an asset."""

    __tablename__ = "playlist_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    playlist_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("playlists.id", ondelete="CASCADE"), index=True
    )
    asset_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    playlist: Mapped["PlaylistModel"] = relationship("PlaylistModel", back_populates="items")
