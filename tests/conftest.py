"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/1"
os.environ["CELERY_BROKER_URL"] = "redis://localhost:6379/1"
os.environ["CELERY_RESULT_BACKEND"] = "redis://localhost:6379/1"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["REMOTE_EXEC_PROVIDER"] = "stub"
os.environ.pop("ALERT_DISCORD_WEBHOOK_URL", None)

from stream_assets.adapters.remote_exec.stub import StubRemoteExecutor  # noqa: E402
from stream_assets.db.models import AccountModel, AssetModel, Base, BucketModel  # noqa: E402
from stream_assets.domain.models import AccountContext  # noqa: E402
from stream_assets.services.alerting import AlertingService  # noqa: E402
from stream_assets.services.assets import AssetService  # noqa: E402
from stream_assets.services.catalog import serialize_reasons  # noqa: E402
from stream_assets.services.compatibility import classify, container_from_path  # noqa: E402
from stream_assets.services.conversion import ConversionOrchestrator  # noqa: E402
from stream_assets.services.policy import MediaPolicy  # noqa: E402

CONTENT_ROOT = "/usr/local/WowzaStreamingEngine/content"


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine: Engine) -> Generator[Session, None, None]:
    factory = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    session = factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def account_model(db_session: Session) -> AccountModel:
    account = AccountModel(
        email="alice@example.com", bitrate_limit_kbps=2500, storage_limit_mb=1000
    )
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture
def account(account_model: AccountModel) -> AccountContext:
    return AccountContext(
        id=account_model.id,
        login="alice",
        bitrate_limit_kbps=2500,
        storage_limit_mb=1000,
    )


@pytest.fixture
def bucket(db_session: Session, account_model: AccountModel) -> BucketModel:
    bucket = BucketModel(
        account_id=account_model.id, name="videos", allotted_mb=1000, used_mb=100, server_id=1
    )
    db_session.add(bucket)
    db_session.commit()
    return bucket


@pytest.fixture
def executor() -> StubRemoteExecutor:
    """Get a stub remote executor."""
    return StubRemoteExecutor()


@pytest.fixture
def policy() -> MediaPolicy:
    return MediaPolicy(content_root=CONTENT_ROOT)


@pytest.fixture
def make_asset(
    db_session: Session,
    account_model: AccountModel,
    bucket: BucketModel,
    executor: StubRemoteExecutor,
) -> Callable[..., AssetModel]:
    """Factory storing an asset row and its file on the stub media host."""

    def _make(name: str = "movie.avi", bitrate: int = 3000, **fields) -> AssetModel:
        result = classify(container_from_path(name), bitrate, 2500)
        values = dict(
            account_id=account_model.id,
            name=name,
            path=f"alice/{bucket.name}/{name}",
            size_bytes=50 * 1024 * 1024,
            duration_seconds=95,
            bitrate_kbps=bitrate,
            container_format=name.rsplit(".", 1)[-1],
            codec="h264",
            width=1920,
            height=1080,
            is_normalized_container=name.endswith(".mp4"),
            compatible=result.compatible,
            incompatibility_reasons=serialize_reasons(result.reasons),
            bucket=bucket.name,
            server_id=bucket.server_id,
        )
        values.update(fields)
        asset = AssetModel(**values)
        db_session.add(asset)
        db_session.commit()
        executor.add_file(asset.server_id, f"{CONTENT_ROOT}/{asset.path}", asset.size_bytes)
        return asset

    return _make


@pytest.fixture
def asset_service(
    db_session: Session, executor: StubRemoteExecutor, policy: MediaPolicy
) -> AssetService:
    return AssetService(db_session, executor, policy)


@pytest.fixture
def orchestrator(
    db_session: Session, executor: StubRemoteExecutor, policy: MediaPolicy
) -> ConversionOrchestrator:
    return ConversionOrchestrator(
        db_session, executor, policy=policy, alerts=AlertingService(webhook_url=None)
    )


@pytest.fixture
def test_client(
    db_session: Session, executor: StubRemoteExecutor, policy: MediaPolicy
) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app bound to the test database."""
    from stream_assets.api.deps import get_executor, get_media_policy
    from stream_assets.db.session import get_session
    from stream_assets.main import app

    def _session() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_executor] = lambda: executor
    app.dependency_overrides[get_media_policy] = lambda: policy

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
