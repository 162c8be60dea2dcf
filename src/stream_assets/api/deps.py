"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from stream_assets.adapters.remote_exec import RemoteExecutor, get_remote_executor
from stream_assets.config import settings
from stream_assets.db.session import get_session
from stream_assets.domain.models import AccountContext
from stream_assets.presets.quality import QUALITY_PRESETS
from stream_assets.services.assets import AssetService
from stream_assets.services.conversion import ConversionOrchestrator
from stream_assets.services.policy import MediaPolicy

# Database session dependency
SessionDep = Annotated[Session, Depends(get_session)]


def get_media_policy() -> MediaPolicy:
    """Get the media policy built from current settings."""
    return MediaPolicy.from_settings(settings)


PolicyDep = Annotated[MediaPolicy, Depends(get_media_policy)]


def get_executor() -> RemoteExecutor:
    """Get the configured remote executor."""
    return get_remote_executor()


ExecutorDep = Annotated[RemoteExecutor, Depends(get_executor)]


def get_asset_service(
    session: SessionDep, executor: ExecutorDep, policy: PolicyDep
) -> AssetService:
    return AssetService(session, executor, policy)


AssetServiceDep = Annotated[AssetService, Depends(get_asset_service)]


def get_orchestrator(
    session: SessionDep, executor: ExecutorDep, policy: PolicyDep
) -> ConversionOrchestrator:
    return ConversionOrchestrator(session, executor, presets=QUALITY_PRESETS, policy=policy)


OrchestratorDep = Annotated[ConversionOrchestrator, Depends(get_orchestrator)]


def get_current_account(
    service: AssetServiceDep,
    x_account_id: Annotated[int, Header(description="Caller account id")],
) -> AccountContext:
    """Resolve the calling account from the ``X-Account-Id`` header."""
    return service.load_account(x_account_id)


CurrentAccountDep = Annotated[AccountContext, Depends(get_current_account)]
