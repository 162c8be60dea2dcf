"""Base interface for remote command execution on media hosts."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


class RemoteExecutorError(Exception):
    """Raised by executors when the transport itself fails."""

    pass


@dataclass
class CommandResult:
    """Raw output of a remote command."""

    stdout: str
    stderr: str = ""
    exit_code: int = 0


@dataclass
class FileStat:
    """Existence and size of a remote file."""

    exists: bool
    size_bytes: int = 0


class RemoteExecutor(ABC):
    """Abstract base class for media host command execution.

    Implementations:
    - StubRemoteExecutor: In-memory media host for tests and development
    - SSHRemoteExecutor: Runs commands through the system ssh/scp clients

    Every operation is safe to retry at the caller's discretion.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    async def execute(
        self, server_id: int, command: str, timeout: float | None = None
    ) -> CommandResult:
        """Run a shell command on the host.

        Args:
            server_id: Media host identifier
            command: Shell command line
            timeout: Seconds to wait, or None to wait for completion

        Returns:
            CommandResult with raw stdout/stderr

        Raises:
            RemoteExecutorError: If the command could not be run
        """
        ...

    @abstractmethod
    async def stat_file(self, server_id: int, path: str) -> FileStat:
        """Report whether ``path`` exists and its size in bytes."""
        ...

    @abstractmethod
    async def delete_file(self, server_id: int, path: str) -> bool:
        """Delete ``path``. Returns False when it did not exist."""
        ...

    @abstractmethod
    async def upload_file(self, server_id: int, local_path: Path, remote_path: str) -> None:
        """Copy a local file to the host."""
        ...

    @abstractmethod
    async def ensure_directory(self, server_id: int, path: str) -> None:
        """Create ``path`` and its parents if missing."""
        ...

    async def health_check(self) -> bool:
        """Check if the executor can reach its hosts.

        Returns:
            True if operational, False otherwise
        """
        return True
