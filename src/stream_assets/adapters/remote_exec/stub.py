"""Stub remote executor: an in-memory media host for testing."""

import json
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from stream_assets.adapters.remote_exec.base import (
    CommandResult,
    FileStat,
    RemoteExecutor,
    RemoteExecutorError,
)
from stream_assets.logging import get_logger
from stream_assets.services.commands import (
    CONVERSION_ERROR,
    CONVERSION_SUCCESS,
    DIR_READY,
    NO_PROBE,
    NOT_FOUND,
)

logger = get_logger(__name__)


@dataclass
class RemoteCall:
    """One recorded gateway invocation."""

    operation: str
    server_id: int
    target: str


@dataclass
class StubRemoteExecutor(RemoteExecutor):
    """Simulates a media host without SSH or ffmpeg.

    Understands the transcode, probe, stat, delete and mkdir commands issued by
    this package. Outcomes are scripted through the attributes below, and every
    call is appended to ``calls``.
    """

    files: dict[tuple[int, str], int] = field(default_factory=dict)
    directories: set[tuple[int, str]] = field(default_factory=set)
    transcode_succeeds: bool = True
    output_size_bytes: int = 5_000_000
    probe_duration: float = 120.0
    probe_bit_rate: int = 1_480_000
    probe_width: int = 1280
    probe_height: int = 720
    probe_payload: str | None = None
    fail_operations: set[str] = field(default_factory=set)
    calls: list[RemoteCall] = field(default_factory=list)

    @property
    def name(self) -> str:
        return "stub"

    def add_file(self, server_id: int, path: str, size_bytes: int) -> None:
        self.files[(server_id, path)] = size_bytes

    def has_file(self, server_id: int, path: str) -> bool:
        return (server_id, path) in self.files

    def operations(self) -> list[str]:
        return [call.operation for call in self.calls]

    def _record(self, operation: str, server_id: int, target: str) -> None:
        self.calls.append(RemoteCall(operation=operation, server_id=server_id, target=target))
        if operation in self.fail_operations:
            raise RemoteExecutorError(f"Simulated {operation} failure on server {server_id}")

    async def execute(
        self, server_id: int, command: str, timeout: float | None = None
    ) -> CommandResult:
        tokens = shlex.split(command)
        program = Path(tokens[0]).name if tokens else ""

        if program == "ffmpeg":
            self._record("transcode", server_id, command)
            return self._transcode(server_id, tokens)
        if program == "ffprobe":
            self._record("probe", server_id, command)
            return self._probe(server_id, tokens)
        if program == "stat":
            self._record("stat", server_id, command)
            size = self.files.get((server_id, tokens[2]))
            return CommandResult(stdout=NOT_FOUND if size is None else str(size))
        if program == "mkdir":
            self._record("mkdir", server_id, command)
            self.directories.add((server_id, tokens[2]))
            return CommandResult(stdout=DIR_READY)

        self._record("execute", server_id, command)
        return CommandResult(stdout="", stderr=f"stub: unsupported command {program!r}")

    def _transcode(self, server_id: int, tokens: list[str]) -> CommandResult:
        if not self.transcode_succeeds:
            return CommandResult(stdout=CONVERSION_ERROR)
        # Output path is the argument right before the overwrite flag
        output_path = tokens[tokens.index("-y") - 1]
        self.files[(server_id, output_path)] = self.output_size_bytes
        logger.debug("stub_transcode_completed", output_path=output_path)
        return CommandResult(stdout=CONVERSION_SUCCESS)

    def _probe(self, server_id: int, tokens: list[str]) -> CommandResult:
        if self.probe_payload is not None:
            return CommandResult(stdout=self.probe_payload)
        path = tokens[tokens.index("2>/dev/null") - 1]
        if (server_id, path) not in self.files:
            return CommandResult(stdout=NO_PROBE)
        payload = {
            "format": {
                "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
                "duration": str(self.probe_duration),
                "bit_rate": str(self.probe_bit_rate),
                "size": str(self.files[(server_id, path)]),
            },
            "streams": [
                {
                    "codec_type": "video",
                    "codec_name": "h264",
                    "width": self.probe_width,
                    "height": self.probe_height,
                },
                {"codec_type": "audio", "codec_name": "aac"},
            ],
        }
        return CommandResult(stdout=json.dumps(payload))

    async def stat_file(self, server_id: int, path: str) -> FileStat:
        self._record("stat", server_id, path)
        size = self.files.get((server_id, path))
        return FileStat(exists=size is not None, size_bytes=size or 0)

    async def delete_file(self, server_id: int, path: str) -> bool:
        self._record("delete", server_id, path)
        existed = self.files.pop((server_id, path), None) is not None
        return existed

    async def upload_file(self, server_id: int, local_path: Path, remote_path: str) -> None:
        self._record("upload", server_id, remote_path)
        self.files[(server_id, remote_path)] = local_path.stat().st_size

    async def ensure_directory(self, server_id: int, path: str) -> None:
        self._record("mkdir", server_id, path)
        self.directories.add((server_id, path))

    async def health_check(self) -> bool:
        """Stub executor is always healthy."""
        return True

