"""SSH remote executor using the system ssh/scp clients."""

import asyncio
from pathlib import Path

from stream_assets.adapters.remote_exec.base import (
    CommandResult,
    FileStat,
    RemoteExecutor,
    RemoteExecutorError,
)
from stream_assets.config import settings
from stream_assets.logging import get_logger
from stream_assets.services.commands import (
    DELETED,
    DIR_READY,
    build_delete_command,
    build_mkdir_command,
    build_stat_command,
    parse_stat_output,
)

logger = get_logger(__name__)


class SSHRemoteExecutor(RemoteExecutor):
    """Runs commands on media hosts over SSH.

    Hosts are resolved from the ``remote_hosts`` server-id map, falling back to
    ``remote_default_host``. Authentication is key based (BatchMode), so a
    missing key fails fast instead of prompting.
    """

    def __init__(
        self,
        hosts: dict[int, str] | None = None,
        default_host: str | None = None,
        user: str | None = None,
        port: int | None = None,
        identity_file: str | None = None,
        ssh_binary: str | None = None,
        scp_binary: str | None = None,
        command_timeout: float | None = None,
    ) -> None:
        self.hosts = hosts if hosts is not None else dict(settings.remote_hosts)
        self.default_host = default_host or settings.remote_default_host
        self.user = user or settings.ssh_user
        self.port = port or settings.ssh_port
        self.identity_file = identity_file or settings.ssh_identity_file
        self.ssh_binary = ssh_binary or settings.ssh_binary
        self.scp_binary = scp_binary or settings.scp_binary
        self.command_timeout = command_timeout or settings.remote_command_timeout

    @property
    def name(self) -> str:
        return "ssh"

    def _target(self, server_id: int) -> str:
        host = self.hosts.get(server_id, self.default_host)
        return f"{self.user}@{host}"

    def _common_options(self) -> list[str]:
        options = ["-o", "BatchMode=yes", "-o", "StrictHostKeyChecking=accept-new"]
        if self.identity_file:
            options.extend(["-i", self.identity_file])
        return options

    async def _run(self, args: list[str], timeout: float | None) -> CommandResult:
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise RemoteExecutorError(f"Cannot start {args[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise RemoteExecutorError(f"Remote command timed out after {timeout}s") from e

        # ssh itself exits 255 on connection/auth failures
        if process.returncode == 255:
            raise RemoteExecutorError(
                f"SSH transport failure: {stderr.decode(errors='replace').strip()}"
            )

        return CommandResult(
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            exit_code=process.returncode,
        )

    async def execute(
        self, server_id: int, command: str, timeout: float | None = None
    ) -> CommandResult:
        args = [
            self.ssh_binary,
            "-p", str(self.port),
            *self._common_options(),
            self._target(server_id),
            command,
        ]  # fmt: skip
        logger.debug("ssh_execute", server_id=server_id, command=command[:200])
        return await self._run(args, timeout)

    async def stat_file(self, server_id: int, path: str) -> FileStat:
        result = await self.execute(
            server_id, build_stat_command(path), timeout=self.command_timeout
        )
        size = parse_stat_output(result.stdout)
        if size is None:
            return FileStat(exists=False)
        return FileStat(exists=True, size_bytes=size)

    async def delete_file(self, server_id: int, path: str) -> bool:
        result = await self.execute(
            server_id, build_delete_command(path), timeout=self.command_timeout
        )
        return DELETED in result.stdout

    async def upload_file(self, server_id: int, local_path: Path, remote_path: str) -> None:
        args = [
            self.scp_binary,
            "-P", str(self.port),
            *self._common_options(),
            str(local_path),
            f"{self._target(server_id)}:{remote_path}",
        ]  # fmt: skip
        logger.info("ssh_upload_started", server_id=server_id, remote_path=remote_path)
        result = await self._run(args, timeout=None)
        if result.exit_code != 0:
            raise RemoteExecutorError(
                f"Upload failed with exit code {result.exit_code}: {result.stderr.strip()}"
            )

    async def ensure_directory(self, server_id: int, path: str) -> None:
        result = await self.execute(
            server_id, build_mkdir_command(path), timeout=self.command_timeout
        )
        if DIR_READY not in result.stdout:
            raise RemoteExecutorError(f"Could not create {path}: {result.stderr.strip()}")

    async def health_check(self) -> bool:
        """Check that the default host answers."""
        try:
            result = await self.execute(0, "echo ok", timeout=10)
        except RemoteExecutorError as e:
            logger.warning("ssh_health_check_failed", error=str(e))
            return False
        return "ok" in result.stdout
