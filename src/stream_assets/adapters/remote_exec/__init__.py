"""Remote command execution adapters."""

from stream_assets.adapters.remote_exec.base import (
    CommandResult,
    FileStat,
    RemoteExecutor,
    RemoteExecutorError,
)
from stream_assets.adapters.remote_exec.ssh import SSHRemoteExecutor
from stream_assets.adapters.remote_exec.stub import RemoteCall, StubRemoteExecutor
from stream_assets.config import settings
from stream_assets.logging import get_logger

logger = get_logger(__name__)


def get_remote_executor() -> RemoteExecutor:
    """Get the configured remote executor."""
    provider = settings.remote_exec_provider.lower()

    if provider == "ssh":
        return SSHRemoteExecutor()
    if provider != "stub":
        logger.warning("unknown_remote_exec_provider", provider=provider, fallback="stub")
    return StubRemoteExecutor()


__all__ = [
    "CommandResult",
    "FileStat",
    "RemoteCall",
    "RemoteExecutor",
    "RemoteExecutorError",
    "SSHRemoteExecutor",
    "StubRemoteExecutor",
    "get_remote_executor",
]
