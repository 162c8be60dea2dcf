"""Asset lifecycle outside conversion: upload registration, listing and deletion."""

import re
import time
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stream_assets.adapters.remote_exec.base import FileStat, RemoteExecutor
from stream_assets.db.models import AccountModel, AssetModel, BucketModel
from stream_assets.domain.errors import (
    AssetServiceError,
    NotFoundError,
    QuotaExceededError,
    RemoteExecutionError,
    ValidationError,
)
from stream_assets.domain.models import AccountContext, CompatibilityResult
from stream_assets.logging import get_logger
from stream_assets.services.catalog import AssetCatalog, deserialize_reasons, serialize_reasons
from stream_assets.services.commands import ProbeResult
from stream_assets.services.compatibility import classify, container_from_path
from stream_assets.services.policy import MediaPolicy
from stream_assets.services.quota import QuotaLedger, required_mb
from stream_assets.utils.media_probe import probe_local_file

logger = get_logger(__name__)


def account_context(account: AccountModel, policy: MediaPolicy) -> AccountContext:
    """Plan limits of an account, with defaults for unset values."""
    return AccountContext(
        id=account.id,
        login=account.login,
        bitrate_limit_kbps=account.bitrate_limit_kbps or policy.default_bitrate_limit_kbps,
        storage_limit_mb=account.storage_limit_mb or policy.default_storage_limit_mb,
    )


def sanitize_filename(original_name: str, timestamp_ms: int | None = None) -> str:
    """Stored file name: unsafe characters replaced, timestamp prefixed."""
    cleaned = re.sub(r"[^a-zA-Z0-9.-]", "_", original_name)
    cleaned = re.sub(r"_{2,}", "_", cleaned)
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"{stamp}_{cleaned}"


@dataclass(frozen=True)
class BucketAssetView:
    """An asset in a bucket listing, with freshly computed compatibility."""

    asset: AssetModel
    compatibility: CompatibilityResult
    stored_reasons: list[str]


class AssetService:
    """Registers uploads, lists bucket contents and deletes assets."""

    def __init__(
        self,
        session: Session,
        executor: RemoteExecutor,
        policy: MediaPolicy | None = None,
    ) -> None:
        self.session = session
        self.executor = executor
        self.policy = policy or MediaPolicy()
        self.catalog = AssetCatalog(session)
        self.ledger = QuotaLedger(session)

    def load_account(self, account_id: int) -> AccountContext:
        account = self.catalog.get_account(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account_context(account, self.policy)

    def resolve_bucket(self, account: AccountContext, bucket_id: int) -> BucketModel:
        bucket = self.catalog.get_bucket(bucket_id, account.id)
        if bucket is None:
            raise NotFoundError("Folder not found")
        return bucket

    def classify_asset(self, asset: AssetModel, account: AccountContext) -> CompatibilityResult:
        return classify(
            container_from_path(asset.name or asset.path),
            asset.bitrate_kbps or 0,
            account.bitrate_limit_kbps,
            canonical_container=self.policy.canonical_container,
        )

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    def list_bucket_assets(self, account: AccountContext, bucket_id: int) -> list[BucketAssetView]:
        """Assets of one bucket with compatibility recomputed for the current plan."""
        bucket = self.resolve_bucket(account, bucket_id)
        assets = self.catalog.list_by_owner(account.id, bucket.name)
        logger.info("bucket_assets_listed", bucket=bucket.name, count=len(assets))
        return [
            BucketAssetView(
                asset=asset,
                compatibility=self.classify_asset(asset, account),
                stored_reasons=[
                    r.message for r in deserialize_reasons(asset.incompatibility_reasons)
                ],
            )
            for asset in assets
        ]

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    async def ingest(
        self,
        account: AccountContext,
        bucket_id: int,
        local_path: Path,
        original_name: str | None = None,
        probe: ProbeResult | None = None,
        remove_local: bool = False,
    ) -> AssetModel:
        """Register a file already received on local disk and push it to the media host.

        Order: validate, probe, quota check, remote upload, catalog insert,
        quota commit. No remote call is issued when the quota check fails.
        """
        original_name = original_name or local_path.name
        extension = Path(original_name).suffix.lower()
        if extension not in self.policy.accepted_extensions:
            raise ValidationError(
                f"Unsupported file format: {extension or original_name}",
                details={"accepted": list(self.policy.accepted_extensions)},
            )
        if not local_path.is_file():
            raise ValidationError(f"File not found: {local_path}")

        size_bytes = local_path.stat().st_size
        bucket = self.resolve_bucket(account, bucket_id)
        needed_mb = required_mb(size_bytes)

        if self.policy.strict_quota:
            if not self.ledger.try_commit(bucket, needed_mb):
                self.session.rollback()
                self.session.refresh(bucket)
                raise QuotaExceededError(
                    required_mb=needed_mb,
                    available_mb=self.ledger.available_mb(bucket),
                    total_mb=bucket.allotted_mb,
                    used_mb=bucket.used_mb,
                )
            self.session.commit()
        else:
            self.ledger.ensure_capacity(bucket, needed_mb)

        try:
            asset = await self._store(account, bucket, local_path, original_name, size_bytes, probe)
        except Exception:
            if self.policy.strict_quota:
                self._release_reservation(bucket, needed_mb)
            raise

        if not self.policy.strict_quota:
            try:
                self.ledger.commit(bucket, needed_mb)
                self.session.commit()
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error("quota_commit_failed", bucket_id=bucket.id, error=str(e))
                raise AssetServiceError(f"Could not update folder quota: {e}") from e

        if remove_local:
            local_path.unlink(missing_ok=True)

        logger.info(
            "asset_ingested",
            asset_id=asset.id,
            bucket=bucket.name,
            size_mb=needed_mb,
            compatible=asset.compatible,
        )
        return asset

    def _release_reservation(self, bucket: BucketModel, needed_mb: int) -> None:
        try:
            self.ledger.release(bucket, needed_mb)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("quota_release_failed", bucket_id=bucket.id, error=str(e))

    async def _store(
        self,
        account: AccountContext,
        bucket: BucketModel,
        local_path: Path,
        original_name: str,
        size_bytes: int,
        probe: ProbeResult | None,
    ) -> AssetModel:
        media = probe or probe_local_file(local_path, self.policy.ffprobe_binary)
        extension = container_from_path(original_name)
        compatibility = classify(
            extension,
            media.bitrate,
            account.bitrate_limit_kbps,
            canonical_container=self.policy.canonical_container,
        )

        stored_name = sanitize_filename(original_name)
        relative_dir = f"{account.login}/{bucket.name}"
        relative_path = f"{relative_dir}/{stored_name}"

        try:
            await self.executor.ensure_directory(
                bucket.server_id, self.policy.remote_path(account.login)
            )
            await self.executor.ensure_directory(
                bucket.server_id, self.policy.remote_path(relative_dir)
            )
            await self.executor.upload_file(
                bucket.server_id, local_path, self.policy.remote_path(relative_path)
            )
        except AssetServiceError:
            raise
        except Exception as e:
            logger.error("upload_failed", path=relative_path, error=str(e))
            raise RemoteExecutionError(f"Upload to media host failed: {e}") from e

        asset = AssetModel(
            account_id=account.id,
            name=original_name,
            path=relative_path,
            size_bytes=size_bytes,
            duration_seconds=media.duration,
            bitrate_kbps=media.bitrate,
            container_format=media.format_name,
            codec=media.codec,
            width=media.width,
            height=media.height,
            is_normalized_container=extension == self.policy.canonical_container,
            compatible=compatibility.compatible,
            incompatibility_reasons=serialize_reasons(compatibility.reasons),
            bucket=bucket.name,
            server_id=bucket.server_id,
        )
        try:
            self.catalog.insert(asset)
            self.session.commit()
        except (SQLAlchemyError, ValueError) as e:
            self.session.rollback()
            logger.error("asset_insert_failed", path=relative_path, error=str(e))
            await self._discard_upload(bucket.server_id, relative_path)
            raise AssetServiceError(f"Could not record uploaded asset: {e}") from e
        return asset

    async def _discard_upload(self, server_id: int, relative_path: str) -> None:
        try:
            await self.executor.delete_file(server_id, self.policy.remote_path(relative_path))
        except Exception as e:
            logger.warning("upload_cleanup_failed", path=relative_path, error=str(e))

    async def check_remote_file(
        self, account: AccountContext, asset_id: int
    ) -> tuple[str, FileStat]:
        """Absolute media-host path of an asset and whether the file is there."""
        asset = self.catalog.get_owned(asset_id, account.id)
        if asset is None:
            raise NotFoundError("Video not found")
        remote_path = self.policy.remote_path(asset.path)
        try:
            stat = await self.executor.stat_file(asset.server_id, remote_path)
        except Exception as e:
            raise RemoteExecutionError(f"Could not check file on media host: {e}") from e
        logger.info("remote_file_checked", asset_id=asset_id, exists=stat.exists)
        return remote_path, stat

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    async def delete_asset(self, account: AccountContext, asset_id: int) -> int:
        """Delete an asset everywhere. Returns the megabytes released.

        Remote failures are logged and ignored so catalog and quota are still
        corrected.
        """
        asset = self.catalog.get_owned(asset_id, account.id)
        if asset is None:
            raise NotFoundError("Video not found")

        remote_path = self.policy.remote_path(asset.path)
        size_bytes = asset.size_bytes or 0

        if not size_bytes:
            try:
                stat = await self.executor.stat_file(asset.server_id, remote_path)
                size_bytes = stat.size_bytes if stat.exists else 0
            except Exception as e:
                logger.warning("remote_stat_failed", path=remote_path, error=str(e))

        try:
            deleted = await self.executor.delete_file(asset.server_id, remote_path)
            if not deleted:
                logger.warning("remote_file_missing", path=remote_path)
        except Exception as e:
            logger.warning("remote_delete_failed", path=remote_path, error=str(e))

        bucket_name = asset.bucket
        self.catalog.delete_playlist_references(asset.id)
        self.catalog.delete(asset)

        freed_mb = required_mb(size_bytes)
        bucket = self.catalog.get_bucket_by_name(account.id, bucket_name)
        if bucket is not None:
            self.ledger.release(bucket, freed_mb)
        else:
            logger.warning("bucket_missing_on_delete", bucket=bucket_name, asset_id=asset_id)
        self.session.commit()

        logger.info("asset_deleted", asset_id=asset_id, freed_mb=freed_mb, bucket=bucket_name)
        return freed_mb
