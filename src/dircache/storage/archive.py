"""Archive backend wrapping the ``tar`` executable.

Bundles are created and extracted by a single ``tar`` invocation each.
While the process runs its stdout and stderr are forwarded line by line
to the logger, so nothing is lost and large outputs are never buffered
in memory.
"""

import asyncio
import logging
import shlex
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from dircache.cache.validation import ArchiveToolError

logger = logging.getLogger(__name__)

LogFn = Callable[[str], None]

CHUNK_SIZE = 64 * 1024


def _emit(raw: bytes, log: LogFn) -> None:
    line = raw.decode(errors="replace").rstrip()
    if line:
        log(line)


async def _drain(stream: Optional[asyncio.StreamReader], log: LogFn) -> None:
    """Forward every line of ``stream`` to ``log`` until EOF.

    Lines longer than CHUNK_SIZE are forwarded in pieces instead of
    being buffered whole.
    """
    if stream is None:
        return
    pending = b""
    while True:
        chunk = await stream.read(CHUNK_SIZE)
        if not chunk:
            break
        *lines, pending = (pending + chunk).split(b"\n")
        for raw in lines:
            _emit(raw, log)
        if len(pending) >= CHUNK_SIZE:
            _emit(pending, log)
            pending = b""
    _emit(pending, log)


async def run_streaming(
    cmd: Sequence[str],
    on_stdout: Optional[LogFn] = None,
    on_stderr: Optional[LogFn] = None,
) -> int:
    """Run ``cmd`` and stream its output while waiting for it to exit.

    Args:
        cmd: Program and arguments
        on_stdout: Receives each stdout line (logger.info if None)
        on_stderr: Receives each stderr line (logger.warning if None)

    Returns:
        Exit status of the process

    Raises:
        ArchiveToolError: If the program cannot be started
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ArchiveToolError(f"Cannot run {cmd[0]}: {e}") from e

    _, _, returncode = await asyncio.gather(
        _drain(process.stdout, on_stdout or logger.info),
        _drain(process.stderr, on_stderr or logger.warning),
        process.wait(),
    )
    return returncode


class TarArchiver:
    """Creates and extracts compressed tar bundles.

    Members are stored relative to the base directory given to ``pack``;
    absolute members (paths outside the base directory) keep their
    absolute names so they are restored in place.

    Examples:
        >>> archiver = TarArchiver(compress_program="pigz")
        >>> archiver._compression_args()
        ['-I', 'pigz']
    """

    def __init__(self, executable: str = "tar", compress_program: Optional[str] = None):
        """Initialize the archiver.

        Args:
            executable: tar executable to run
            compress_program: Program for ``tar -I``; gzip (``-z``) if None
        """
        self.executable = executable
        self.compress_program = compress_program

    def _compression_args(self) -> List[str]:
        if self.compress_program:
            return ["-I", self.compress_program]
        return ["-z"]

    async def _run(self, cmd: List[str], action: str) -> None:
        logger.debug(f"Tar command: {shlex.join(cmd)}")
        returncode = await run_streaming(cmd)
        if returncode != 0:
            raise ArchiveToolError(
                f"tar {action} failed with exit status {returncode}",
                returncode=returncode,
            )

    async def pack(
        self,
        paths: Sequence[str],
        base_dir: Union[str, Path],
        destination: Union[str, Path],
    ) -> None:
        """Archive ``paths`` (files or directories) into ``destination``.

        Args:
            paths: Entries relative to ``base_dir`` (or absolute)
            base_dir: Directory the relative entries are taken from
            destination: Bundle file to write

        Raises:
            ArchiveToolError: If tar fails
        """
        cmd = [
            self.executable,
            *self._compression_args(),
            "-c",
            "-P",
            "-f",
            str(destination),
            "-C",
            str(base_dir),
            "--",
            *paths,
        ]
        await self._run(cmd, "create")

    async def unpack(
        self, source: Union[str, Path], destination_dir: Union[str, Path]
    ) -> None:
        """Extract ``source`` into ``destination_dir`` (which may already exist).

        Raises:
            ArchiveToolError: If tar fails
        """
        cmd = [
            self.executable,
            *self._compression_args(),
            "-x",
            "-P",
            "-f",
            str(source),
            "-C",
            str(destination_dir),
        ]
        await self._run(cmd, "extract")

    async def list_members(self, source: Union[str, Path]) -> List[str]:
        """Return the member names stored in ``source``.

        Raises:
            ArchiveToolError: If tar fails
        """
        members: List[str] = []
        cmd = [self.executable, *self._compression_args(), "-t", "-P", "-f", str(source)]
        returncode = await run_streaming(cmd, on_stdout=members.append)
        if returncode != 0:
            raise ArchiveToolError(
                f"tar list failed with exit status {returncode}",
                returncode=returncode,
            )
        return members
