"""Tests for the background conversion task."""

from collections.abc import Iterator
from contextlib import contextmanager
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from stream_assets.adapters.remote_exec.stub import StubRemoteExecutor
from stream_assets.db.models import AssetModel, BucketModel
from stream_assets.domain.models import AccountContext
from stream_assets.jobs.conversion_tasks import execute_conversion, run_conversion_task


@pytest.fixture
def task_env(db_session: Session, executor: StubRemoteExecutor) -> Iterator[None]:
    """Point the task at the test session and the stub media host."""

    @contextmanager
    def session_context() -> Iterator[Session]:
        yield db_session
        db_session.commit()

    with (
        patch(
            "stream_assets.jobs.conversion_tasks.get_session_context",
            side_effect=session_context,
        ),
        patch(
            "stream_assets.jobs.conversion_tasks.get_remote_executor",
            return_value=executor,
        ),
    ):
        yield


class TestExecuteConversion:
    """Test the task body outside of Celery."""

    def test_success(
        self,
        task_env,
        account: AccountContext,
        bucket: BucketModel,
        db_session: Session,
        make_asset,
    ) -> None:
        asset = make_asset()

        result = execute_conversion(account.id, asset.id, quality="media")

        assert result["success"] is True
        converted = result["converted"]
        assert converted["source_asset_id"] == asset.id
        assert converted["quality"] == "media"
        assert converted["relative_path"] == "alice/videos/movie_media.mp4"
        assert db_session.get(AssetModel, converted["id"]) is not None
        db_session.refresh(bucket)
        assert bucket.used_mb == 105

    def test_validation_error_is_returned(
        self, task_env, account: AccountContext, executor: StubRemoteExecutor, make_asset
    ) -> None:
        asset = make_asset()

        result = execute_conversion(account.id, asset.id, quality="ultra")

        assert result["success"] is False
        assert result["error"] == "validation_error"
        assert executor.calls == []

    def test_unknown_account(self, task_env, make_asset) -> None:
        asset = make_asset()

        result = execute_conversion(9999, asset.id, quality="media")

        assert result == {"success": False, "error": "not_found", "message": "Account not found"}

    def test_failed_transcode(
        self, task_env, account: AccountContext, executor: StubRemoteExecutor, make_asset
    ) -> None:
        asset = make_asset()
        executor.transcode_succeeds = False

        result = execute_conversion(account.id, asset.id, quality="baixa")

        assert result["success"] is False
        assert result["error"] == "conversion_failed"
        assert result["message"] == "Video conversion failed"


class TestConversionTask:
    """Test the Celery task wrapper."""

    def test_task_is_registered(self) -> None:
        assert run_conversion_task.name == "conversion.run_conversion"
        assert run_conversion_task.max_retries == 0

    def test_task_delegates_to_execute_conversion(self) -> None:
        payload = {"success": True, "converted": {"id": 7}}
        with patch(
            "stream_assets.jobs.conversion_tasks.execute_conversion", return_value=payload
        ) as execute:
            result = run_conversion_task.apply(args=(1, 2), kwargs={"quality": "alta"}).get()

        assert result == payload
        execute.assert_called_once_with(
            1, 2, quality="alta", custom_bitrate=None, custom_resolution=None
        )
