"""Tests for the conversion and video endpoints."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from stream_assets.adapters.remote_exec.stub import StubRemoteExecutor
from stream_assets.db.models import BucketModel
from stream_assets.domain.models import AccountContext


@pytest.fixture
def headers(account: AccountContext) -> dict[str, str]:
    return {"X-Account-Id": str(account.id)}


class TestConversionEndpoints:
    """Test the /api/v1/conversion endpoints."""

    def test_list_videos(self, test_client: TestClient, headers, make_asset) -> None:
        make_asset("movie.avi", bitrate=3000)

        response = test_client.get("/api/v1/conversion/videos", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["user_limits"] == {"bitrate": 2500, "storage": 1000}
        assert list(data["quality_presets"]) == ["baixa", "media", "alta", "fullhd"]
        video = data["videos"][0]
        assert video["needs_conversion"] is True
        assert video["conversion_status"] == "not_started"
        allowed = {q["quality"]: q["can_convert"] for q in video["available_qualities"]}
        assert allowed == {"baixa": True, "media": True, "alta": True, "fullhd": False}

    def test_missing_account_header(self, test_client: TestClient) -> None:
        response = test_client.get("/api/v1/conversion/videos")
        assert response.status_code == 422

    def test_unknown_account(self, test_client: TestClient) -> None:
        response = test_client.get("/api/v1/conversion/videos", headers={"X-Account-Id": "999"})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_unknown_folder(self, test_client: TestClient, headers) -> None:
        response = test_client.get(
            "/api/v1/conversion/videos", params={"folder_id": 9999}, headers=headers
        )
        assert response.status_code == 404

    def test_convert(self, test_client: TestClient, headers, make_asset) -> None:
        asset = make_asset()

        response = test_client.post(
            "/api/v1/conversion/convert",
            json={"video_id": asset.id, "quality": "media"},
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        converted = data["converted_video"]
        assert converted["bitrate"] == 1480
        assert converted["duration"] == 120
        assert converted["quality"] == "media"
        assert converted["source_asset_id"] == asset.id

    def test_convert_over_plan_limit(
        self,
        test_client: TestClient,
        headers,
        executor: StubRemoteExecutor,
        make_asset,
    ) -> None:
        asset = make_asset()

        response = test_client.post(
            "/api/v1/conversion/convert",
            json={"video_id": asset.id, "custom_bitrate": 3000, "custom_resolution": "1920x1080"},
            headers=headers,
        )

        assert response.status_code == 400
        data = response.json()
        assert data == {
            "success": False,
            "error": "validation_error",
            "message": "Bitrate 3000 kbps exceeds plan limit of 2500 kbps",
            "details": {"requested": 3000, "limit": 2500},
        }
        assert executor.calls == []

    def test_convert_failure(
        self,
        test_client: TestClient,
        headers,
        executor: StubRemoteExecutor,
        make_asset,
    ) -> None:
        asset = make_asset()
        executor.transcode_succeeds = False

        response = test_client.post(
            "/api/v1/conversion/convert",
            json={"video_id": asset.id, "quality": "media"},
            headers=headers,
        )

        assert response.status_code == 500
        assert response.json()["error"] == "conversion_failed"

    def test_status_and_qualities(self, test_client: TestClient, headers, make_asset) -> None:
        asset = make_asset()

        status_response = test_client.get(
            f"/api/v1/conversion/status/{asset.id}", headers=headers
        )
        qualities_response = test_client.get("/api/v1/conversion/qualities", headers=headers)

        assert status_response.status_code == 200
        status_body = status_response.json()["conversion_status"]
        assert status_body["status"] == "not_started"
        assert status_body["original_format"] == "avi"
        qualities = qualities_response.json()
        assert qualities["user_limit"] == 2500
        assert qualities["custom_allowed"] is True
        assert len(qualities["qualities"]) == 4

    def test_remove_conversion(self, test_client: TestClient, headers, make_asset) -> None:
        asset = make_asset()
        converted = test_client.post(
            "/api/v1/conversion/convert",
            json={"video_id": asset.id, "quality": "baixa"},
            headers=headers,
        ).json()["converted_video"]

        original = test_client.delete(f"/api/v1/conversion/{asset.id}", headers=headers)
        removed = test_client.delete(f"/api/v1/conversion/{converted['id']}", headers=headers)

        assert original.status_code == 400
        assert removed.status_code == 200
        assert removed.json()["freed_mb"] == 5

    def test_enqueue_conversion(self, test_client: TestClient, headers, make_asset) -> None:
        asset = make_asset()
        with patch("stream_assets.api.routes.conversion.run_conversion_task") as task:
            task.delay.return_value = MagicMock(id="task-123")

            response = test_client.post(
                "/api/v1/conversion/jobs",
                json={"video_id": asset.id, "quality": "alta"},
                headers=headers,
            )

        assert response.status_code == 202
        assert response.json()["task_id"] == "task-123"
        task.delay.assert_called_once()
        assert task.delay.call_args.kwargs["quality"] == "alta"

    def test_enqueue_rejects_invalid_request(
        self, test_client: TestClient, headers, make_asset
    ) -> None:
        asset = make_asset()
        with patch("stream_assets.api.routes.conversion.run_conversion_task") as task:
            response = test_client.post(
                "/api/v1/conversion/jobs",
                json={"video_id": asset.id, "quality": "fullhd"},
                headers=headers,
            )

        assert response.status_code == 400
        task.delay.assert_not_called()

    @pytest.mark.parametrize(
        ("state", "result", "expected"),
        [
            ("PENDING", None, "pending"),
            ("STARTED", None, "running"),
            ("SUCCESS", {"success": True, "converted": {"id": 5}}, "completed"),
            ("SUCCESS", {"success": False, "message": "Video conversion failed"}, "failed"),
            ("RETRY", None, "retry"),
        ],
    )
    def test_job_status(self, test_client: TestClient, state, result, expected) -> None:
        with patch("stream_assets.api.routes.conversion.AsyncResult") as async_result:
            async_result.return_value = MagicMock(state=state, result=result)

            response = test_client.get("/api/v1/conversion/jobs/task-123")

        assert response.status_code == 200
        assert response.json()["status"] == expected


class TestVideoEndpoints:
    """Test the /api/v1/videos endpoints."""

    def test_list_folder(
        self, test_client: TestClient, headers, bucket: BucketModel, make_asset
    ) -> None:
        make_asset("movie.avi", bitrate=3000)

        response = test_client.get(
            "/api/v1/videos", params={"folder_id": bucket.id}, headers=headers
        )

        assert response.status_code == 200
        video = response.json()[0]
        assert video["folder"] == "videos"
        assert video["user"] == "alice"
        assert video["can_use_in_playlist"] is False
        assert video["needs_conversion"] is True
        assert video["compatibility_reasons"] == [
            "container is not normalized format",
            "bitrate exceeds plan limit of 2500 kbps",
        ]

    def test_folder_required(self, test_client: TestClient, headers) -> None:
        assert test_client.get("/api/v1/videos", headers=headers).status_code == 422

    def test_remote_check(self, test_client: TestClient, headers, make_asset) -> None:
        asset = make_asset()

        response = test_client.get(f"/api/v1/videos/{asset.id}/remote", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["exists"] is True
        assert data["url"] == "/content/alice/videos/movie.avi"

    def test_delete(
        self,
        test_client: TestClient,
        headers,
        executor: StubRemoteExecutor,
        make_asset,
    ) -> None:
        asset = make_asset()

        response = test_client.delete(f"/api/v1/videos/{asset.id}", headers=headers)
        missing = test_client.delete(f"/api/v1/videos/{asset.id}", headers=headers)

        assert response.status_code == 200
        assert response.json()["freed_mb"] == 50
        assert "delete" in executor.operations()
        assert missing.status_code == 404
