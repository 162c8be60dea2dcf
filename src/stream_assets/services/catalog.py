"""Asset catalog: persistence of asset, bucket and playlist rows.

The catalog is the only place that knows the table layout. Incompatibility
reasons are serialized to JSON here and nowhere else.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from stream_assets.db.models import AccountModel, AssetModel, BucketModel, PlaylistItemModel
from stream_assets.domain.enums import ConversionStatus
from stream_assets.domain.models import IncompatibilityReason
from stream_assets.logging import get_logger

logger = get_logger(__name__)


def serialize_reasons(
    reasons: list[IncompatibilityReason] | tuple[IncompatibilityReason, ...],
) -> list[dict[str, Any]]:
    return [reason.to_dict() for reason in reasons]


def deserialize_reasons(data: list[dict[str, Any]] | None) -> list[IncompatibilityReason]:
    return [IncompatibilityReason.from_dict(item) for item in data or [] if isinstance(item, dict)]


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class AssetCatalog:
    """Repository for assets and the buckets/accounts they belong to."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # -------------------------------------------------------------------------
    # Accounts and buckets
    # -------------------------------------------------------------------------

    def get_account(self, account_id: int) -> AccountModel | None:
        return self.session.get(AccountModel, account_id)

    def get_bucket(self, bucket_id: int, account_id: int) -> BucketModel | None:
        """Bucket by id, only if owned by ``account_id``."""
        return self.session.execute(
            select(BucketModel).where(
                BucketModel.id == bucket_id,
                BucketModel.account_id == account_id,
            )
        ).scalar_one_or_none()

    def get_bucket_by_name(self, account_id: int, name: str) -> BucketModel | None:
        return self.session.execute(
            select(BucketModel).where(
                BucketModel.account_id == account_id,
                BucketModel.name == name,
            )
        ).scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Assets
    # -------------------------------------------------------------------------

    def get_owned(self, asset_id: int, account_id: int) -> AssetModel | None:
        """Asset by id, only if owned by ``account_id``."""
        return self.session.execute(
            select(AssetModel).where(
                AssetModel.id == asset_id,
                AssetModel.account_id == account_id,
            )
        ).scalar_one_or_none()

    def list_by_owner(self, account_id: int, bucket_name: str | None = None) -> list[AssetModel]:
        """Assets of an account, newest first, optionally limited to one bucket."""
        query = select(AssetModel).where(AssetModel.account_id == account_id)
        if bucket_name is not None:
            query = query.where(AssetModel.bucket == bucket_name)
        query = query.order_by(AssetModel.created_at.desc(), AssetModel.id.desc())
        return list(self.session.execute(query).scalars().all())

    def list_derived(self, asset_id: int) -> list[AssetModel]:
        """Assets produced by converting ``asset_id``."""
        return list(
            self.session.execute(
                select(AssetModel).where(AssetModel.source_asset_id == asset_id)
            )
            .scalars()
            .all()
        )

    def insert(self, asset: AssetModel) -> AssetModel:
        """Add a new asset and assign its id."""
        if asset.source_asset_id is not None:
            source = self.get_owned(asset.source_asset_id, asset.account_id)
            if source is None:
                raise ValueError(
                    f"Source asset {asset.source_asset_id} is not owned "
                    f"by account {asset.account_id}"
                )
        if not asset.compatible and not asset.incompatibility_reasons:
            raise ValueError("Incompatible assets must carry at least one reason")

        self.session.add(asset)
        self.session.flush()
        logger.debug("asset_inserted", asset_id=asset.id, path=asset.path)
        return asset

    def update(self, asset: AssetModel, **fields: Any) -> AssetModel:
        for key, value in fields.items():
            setattr(asset, key, value)
        self.session.flush()
        return asset

    def delete(self, asset: AssetModel) -> None:
        """Remove an asset row. Derived assets keep their rows, unlinked."""
        self.session.execute(
            update(AssetModel)
            .where(AssetModel.source_asset_id == asset.id)
            .values(source_asset_id=None),
            execution_options={"synchronize_session": False},
        )
        self.session.delete(asset)
        self.session.flush()

    def delete_playlist_references(self, asset_id: int) -> int:
        """Drop the asset from every playlist. Returns the number of entries removed."""
        result = self.session.execute(
            delete(PlaylistItemModel).where(PlaylistItemModel.asset_id == asset_id),
            execution_options={"synchronize_session": False},
        )
        return result.rowcount or 0

    # -------------------------------------------------------------------------
    # Conversion guard
    # -------------------------------------------------------------------------

    def begin_conversion(
        self, asset_id: int, ttl_seconds: int, now: datetime | None = None
    ) -> bool:
        """Mark ``asset_id`` as converting unless another conversion holds it.

        A single conditional UPDATE, so two concurrent requests cannot both win.
        A guard older than ``ttl_seconds`` is treated as abandoned.
        """
        now = now or datetime.now(UTC)
        cutoff = now - timedelta(seconds=ttl_seconds)
        result = self.session.execute(
            update(AssetModel)
            .where(
                AssetModel.id == asset_id,
                or_(
                    AssetModel.conversion_status != ConversionStatus.IN_PROGRESS.value,
                    AssetModel.conversion_started_at.is_(None),
                    AssetModel.conversion_started_at < cutoff,
                ),
            )
            .values(
                conversion_status=ConversionStatus.IN_PROGRESS.value,
                conversion_started_at=now,
                conversion_error=None,
            ),
            execution_options={"synchronize_session": False},
        )
        self.session.commit()
        return result.rowcount == 1

    def finish_conversion(
        self,
        asset: AssetModel,
        status: ConversionStatus,
        error: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Clear the guard, recording the terminal status."""
        self.session.refresh(asset)
        asset.conversion_status = status.value
        asset.conversion_error = error
        if status == ConversionStatus.COMPLETED:
            asset.converted_at = now or datetime.now(UTC)
        self.session.flush()
