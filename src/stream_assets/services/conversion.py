"""Conversion orchestration.

Drives one conversion through Requested -> Validated -> Running -> Probed ->
Committed, or to Failed from any step after validation. The remote side is
reached only through a RemoteExecutor; the catalog and quota ledger share the
caller's database session.

Ordering guarantees:
    - validation and the quota check happen before any remote call
    - the catalog commit happens after the probe
    - the quota commit happens after the catalog commit
"""

import math
from collections.abc import Mapping
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stream_assets.adapters.remote_exec.base import RemoteExecutor
from stream_assets.db.models import AssetModel, BucketModel
from stream_assets.domain.enums import ConversionStatus, JobState, TranscodeOutcome
from stream_assets.domain.errors import (
    AssetServiceError,
    ConversionFailedError,
    ConversionInProgressError,
    NotFoundError,
    RemoteExecutionError,
    ValidationError,
)
from stream_assets.domain.models import (
    AccountContext,
    AssetView,
    ConversionJob,
    ConversionRequest,
    ConversionStatusView,
    ConvertedAssetSummary,
    QualityOption,
)
from stream_assets.logging import get_logger
from stream_assets.presets.quality import (
    CUSTOM_QUALITY,
    QUALITY_PRESETS,
    QualityPreset,
    build_custom_preset,
    get_quality_preset,
    quality_options,
)
from stream_assets.services.alerting import AlertingService, alert_conversion_failure
from stream_assets.services.assets import AssetService
from stream_assets.services.catalog import AssetCatalog, as_utc
from stream_assets.services.commands import (
    ProbeResult,
    build_probe_command,
    build_transcode_command,
    interpret_transcode_output,
    parse_probe_output,
)
from stream_assets.services.compatibility import classify, container_from_path
from stream_assets.services.policy import MediaPolicy
from stream_assets.services.quota import MIB, QuotaLedger, required_mb

logger = get_logger(__name__)


def estimate_output_mb(preset: QualityPreset, duration_seconds: int, audio_kbps: int) -> int:
    """Upper estimate of the converted file size, used for the quota pre-check."""
    total_kbps = preset.bitrate_kbps + audio_kbps
    size_bytes = total_kbps * 1000 / 8 * max(duration_seconds, 0)
    return max(math.ceil(size_bytes / MIB), 1)


class ConversionOrchestrator:
    """Validates, runs and records conversions for one account at a time."""

    def __init__(
        self,
        session: Session,
        executor: RemoteExecutor,
        presets: Mapping[str, QualityPreset] = QUALITY_PRESETS,
        policy: MediaPolicy | None = None,
        alerts: AlertingService | None = None,
    ) -> None:
        self.session = session
        self.executor = executor
        self.presets = presets
        self.policy = policy or MediaPolicy()
        self.alerts = alerts
        self.catalog = AssetCatalog(session)
        self.ledger = QuotaLedger(session)
        self.assets = AssetService(session, executor, self.policy)

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def quality_options(self, account: AccountContext) -> list[QualityOption]:
        return quality_options(account.bitrate_limit_kbps, self.presets)

    def list_convertible_assets(
        self, account: AccountContext, bucket_id: int | None = None
    ) -> list[AssetView]:
        """Assets of the account, each annotated with compatibility and quality options."""
        bucket_name = None
        if bucket_id is not None:
            bucket_name = self.assets.resolve_bucket(account, bucket_id).name

        options = self.quality_options(account)
        views = [
            self._asset_view(asset, account, options)
            for asset in self.catalog.list_by_owner(account.id, bucket_name)
        ]
        logger.info(
            "convertible_assets_listed",
            account_id=account.id,
            bucket=bucket_name,
            count=len(views),
            needing_conversion=sum(1 for view in views if view.needs_conversion),
        )
        return views

    def _asset_view(
        self, asset: AssetModel, account: AccountContext, options: list[QualityOption]
    ) -> AssetView:
        result = classify(
            container_from_path(asset.name or asset.path),
            asset.bitrate_kbps or 0,
            account.bitrate_limit_kbps,
            canonical_container=self.policy.canonical_container,
        )
        return AssetView(
            id=asset.id,
            name=asset.name,
            path=asset.path,
            bucket=asset.bucket,
            size_bytes=asset.size_bytes or 0,
            duration=asset.duration_seconds or 0,
            bitrate=asset.bitrate_kbps or 0,
            container_format=asset.container_format,
            codec=asset.codec,
            width=asset.width or 0,
            height=asset.height or 0,
            is_normalized_container=asset.is_normalized_container,
            compatible=result.compatible,
            needs_conversion=result.needs_conversion,
            incompatibility_reasons=result.messages,
            user_bitrate_limit=account.bitrate_limit_kbps,
            available_qualities=list(options),
            conversion_status=self._status_of(asset),
            source_asset_id=asset.source_asset_id,
            applied_quality=asset.applied_quality,
            created_at=as_utc(asset.created_at),
        )

    @staticmethod
    def _status_of(asset: AssetModel) -> ConversionStatus:
        # A derived asset is the product of a finished conversion
        if asset.source_asset_id is not None:
            return ConversionStatus.COMPLETED
        return ConversionStatus(asset.conversion_status or ConversionStatus.NOT_STARTED)

    def get_conversion_status(self, account: AccountContext, asset_id: int) -> ConversionStatusView:
        asset = self.catalog.get_owned(asset_id, account.id)
        if asset is None:
            raise NotFoundError("Video not found")
        return ConversionStatusView(
            id=asset.id,
            name=asset.name,
            status=self._status_of(asset),
            bitrate=asset.bitrate_kbps or 0,
            converted_at=as_utc(asset.converted_at),
            original_format=container_from_path(asset.name or asset.path) or None,
            applied_quality=asset.applied_quality,
        )

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    def resolve_preset(self, account: AccountContext, request: ConversionRequest) -> QualityPreset:
        """Requested -> Validated. Touches neither the catalog nor the remote host."""
        if request.asset_id is None:
            raise ValidationError("Video ID is required")

        if request.quality and request.quality != CUSTOM_QUALITY:
            preset = get_quality_preset(request.quality, self.presets)
            if preset is None:
                raise ValidationError(
                    f"Unknown quality '{request.quality}'",
                    details={"available": list(self.presets)},
                )
        elif request.custom_bitrate is not None and request.custom_resolution:
            preset = build_custom_preset(
                request.custom_bitrate, request.custom_resolution, crf=self.policy.custom_crf
            )
        else:
            raise ValidationError("Quality or custom bitrate and resolution are required")

        if preset.bitrate_kbps > account.bitrate_limit_kbps:
            raise ValidationError(
                f"Bitrate {preset.bitrate_kbps} kbps exceeds plan limit of "
                f"{account.bitrate_limit_kbps} kbps",
                details={
                    "requested": preset.bitrate_kbps,
                    "limit": account.bitrate_limit_kbps,
                },
            )
        return preset

    def _build_job(self, asset: AssetModel, preset: QualityPreset) -> ConversionJob:
        suffix = f"_{preset.bitrate_kbps}k" if preset.is_custom else f"_{preset.name}"
        output_relative = self.policy.converted_relative_path(asset.path, suffix)
        return ConversionJob(
            source_asset_id=asset.id,
            quality=preset.name,
            bitrate_kbps=preset.bitrate_kbps,
            resolution=preset.resolution,
            crf=preset.crf,
            input_path=self.policy.remote_path(asset.path),
            output_path=self.policy.remote_path(output_relative),
            output_relative_path=output_relative,
        )

    def _existing_output(self, asset: AssetModel, relative_path: str) -> AssetModel | None:
        """A derived asset of ``asset`` already stored at ``relative_path``."""
        for derived in self.catalog.list_derived(asset.id):
            if derived.path == relative_path:
                return derived
        return None

    async def request_conversion(
        self, account: AccountContext, request: ConversionRequest
    ) -> ConvertedAssetSummary:
        """Convert an asset to a preset or custom target and record the result.

        Raises:
            ValidationError: Bad request or bitrate over the plan (no side effects)
            NotFoundError: Asset or its bucket not owned by the account
            QuotaExceededError: Estimated output does not fit (no remote call)
            ConversionInProgressError: Another conversion holds this asset
            ConversionFailedError: The transcode failed (RemoteExecutionError
                when the gateway raised or its output was unrecognizable)
        """
        preset = self.resolve_preset(account, request)

        asset = self.catalog.get_owned(request.asset_id, account.id)
        if asset is None:
            raise NotFoundError("Video not found")
        bucket = self.catalog.get_bucket_by_name(account.id, asset.bucket)
        if bucket is None:
            raise NotFoundError("Folder not found")

        job = self._build_job(asset, preset)
        existing = self._existing_output(asset, job.output_relative_path)

        estimate_mb = estimate_output_mb(
            preset, asset.duration_seconds or 0, self.policy.transcode.audio_bitrate_kbps
        )
        if existing is not None:
            estimate_mb = max(estimate_mb - required_mb(existing.size_bytes or 0), 0)
        self.ledger.ensure_capacity(bucket, estimate_mb)

        if not self.catalog.begin_conversion(asset.id, self.policy.lock_ttl_seconds):
            raise ConversionInProgressError(
                "A conversion of this video is already in progress",
                details={"asset_id": asset.id},
            )

        logger.info(
            "conversion_started",
            asset_id=asset.id,
            quality=preset.name,
            bitrate_kbps=preset.bitrate_kbps,
            resolution=preset.resolution,
            output_path=job.output_relative_path,
        )

        try:
            probe = await self._run_remote(job, asset, preset)
            summary = self._commit(job, asset, bucket, existing, preset, probe)
        except AssetServiceError as e:
            await self._fail(account, job, asset, e, cleanup=existing is None)
            raise
        except Exception as e:
            error = RemoteExecutionError(f"Conversion failed: {e}")
            await self._fail(account, job, asset, error, cleanup=existing is None)
            raise error from e

        job.advance(JobState.COMMITTED)
        logger.info(
            "conversion_completed",
            asset_id=asset.id,
            converted_asset_id=summary.id,
            quality=preset.name,
            size_bytes=summary.size_bytes,
            bitrate=summary.bitrate,
            duration=summary.duration,
            probed=summary.probed,
        )
        return summary

    async def _run_remote(
        self, job: ConversionJob, asset: AssetModel, preset: QualityPreset
    ) -> tuple[int, ProbeResult | None]:
        """Validated -> Running -> Probed. Returns the output size and probe result."""
        job.advance(JobState.RUNNING)
        command = build_transcode_command(
            job.input_path, job.output_path, preset, self.policy.transcode
        )
        try:
            # No timeout: a long transcode is not a failure
            result = await self.executor.execute(asset.server_id, command, timeout=None)
        except Exception as e:
            raise RemoteExecutionError(f"Transcode command could not be run: {e}") from e

        outcome = interpret_transcode_output(result.stdout)
        if outcome == TranscodeOutcome.FAILURE:
            raise ConversionFailedError(
                "Video conversion failed", details={"stderr": result.stderr[-500:]}
            )
        if outcome == TranscodeOutcome.UNRECOGNIZED:
            raise RemoteExecutionError(
                "Transcode returned unrecognized output", details={"stdout": result.stdout[-500:]}
            )

        try:
            stat = await self.executor.stat_file(asset.server_id, job.output_path)
            probe_output = await self.executor.execute(
                asset.server_id,
                build_probe_command(job.output_path, self.policy.ffprobe_binary),
                timeout=self.policy.command_timeout,
            )
        except Exception as e:
            raise RemoteExecutionError(f"Inspecting converted file failed: {e}") from e

        probe = parse_probe_output(probe_output.stdout)
        if probe is None:
            logger.warning("probe_unavailable", output_path=job.output_path)
        job.advance(JobState.PROBED)
        return stat.size_bytes if stat.exists else 0, probe

    def _commit(
        self,
        job: ConversionJob,
        source: AssetModel,
        bucket: BucketModel,
        existing: AssetModel | None,
        preset: QualityPreset,
        remote: tuple[int, ProbeResult | None],
    ) -> ConvertedAssetSummary:
        """Probed -> Committed: catalog write, then quota."""
        size_bytes, probe = remote
        duration = (probe.duration if probe else 0) or source.duration_seconds or 0
        bitrate = (probe.bitrate if probe else 0) or preset.bitrate_kbps
        width, height = preset.width, preset.height
        if probe and probe.width and probe.height:
            width, height = probe.width, probe.height

        fields = dict(
            account_id=source.account_id,
            name=job.output_relative_path.rsplit("/", 1)[-1],
            path=job.output_relative_path,
            size_bytes=size_bytes,
            duration_seconds=duration,
            bitrate_kbps=bitrate,
            container_format=self.policy.canonical_container,
            codec=self.policy.canonical_codec,
            width=width,
            height=height,
            is_normalized_container=True,
            compatible=True,
            incompatibility_reasons=[],
            bucket=source.bucket,
            server_id=source.server_id,
            source_asset_id=source.id,
            applied_quality=preset.name,
            conversion_status=ConversionStatus.COMPLETED.value,
            converted_at=datetime.now(UTC),
        )

        previous_mb = 0
        try:
            if existing is not None:
                previous_mb = required_mb(existing.size_bytes or 0)
                converted = self.catalog.update(existing, **fields)
            else:
                converted = self.catalog.insert(AssetModel(**fields))
            self.catalog.finish_conversion(source, ConversionStatus.COMPLETED)
            self.session.commit()
        except (SQLAlchemyError, ValueError) as e:
            self.session.rollback()
            raise ConversionFailedError(f"Could not record converted video: {e}") from e

        new_mb = required_mb(size_bytes)
        try:
            if new_mb > previous_mb:
                self.ledger.commit(bucket, new_mb - previous_mb)
            elif new_mb < previous_mb:
                self.ledger.release(bucket, previous_mb - new_mb)
            self.session.commit()
        except SQLAlchemyError as e:
            # The catalog row stands; the counter is corrected by later deletions
            self.session.rollback()
            logger.error(
                "quota_commit_failed",
                bucket_id=bucket.id,
                delta_mb=new_mb - previous_mb,
                error=str(e),
            )

        return ConvertedAssetSummary(
            id=converted.id,
            source_asset_id=source.id,
            path=job.output_path,
            relative_path=job.output_relative_path,
            size_bytes=size_bytes,
            bitrate=bitrate,
            duration=duration,
            quality=preset.name,
            probed=probe is not None,
        )

    async def _fail(
        self,
        account: AccountContext,
        job: ConversionJob,
        source: AssetModel,
        error: AssetServiceError,
        cleanup: bool,
    ) -> None:
        """Any -> Failed: no catalog insert, no quota change, guard released."""
        self.session.rollback()
        job.advance(JobState.FAILED)
        logger.error(
            "conversion_failed",
            asset_id=job.source_asset_id,
            quality=job.quality,
            error_kind=str(error.kind),
            error=error.message,
        )

        try:
            self.catalog.finish_conversion(source, ConversionStatus.FAILED, error=error.message)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(
                "conversion_status_update_failed", asset_id=job.source_asset_id, error=str(e)
            )

        if cleanup and job.history[-1] in (JobState.RUNNING, JobState.PROBED):
            try:
                await self.executor.delete_file(source.server_id, job.output_path)
            except Exception as e:
                logger.warning("conversion_cleanup_failed", path=job.output_path, error=str(e))

        await alert_conversion_failure(
            account_id=account.id,
            asset_id=job.source_asset_id,
            quality=job.quality,
            error_kind=str(error.kind),
            error_message=error.message,
            service=self.alerts,
        )

    # -------------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------------

    async def remove_converted_asset(self, account: AccountContext, asset_id: int) -> int:
        """Delete an asset produced by a conversion. Returns the megabytes released."""
        asset = self.catalog.get_owned(asset_id, account.id)
        if asset is None:
            raise NotFoundError("Video not found")
        if asset.source_asset_id is None and asset.applied_quality is None:
            raise ValidationError("Video is not a converted video")
        return await self.assets.delete_asset(account, asset_id)
