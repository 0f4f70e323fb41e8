from __future__ import annotations
import asyncio
import os
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

import structlog

from ..core.errors import SpawnError
from ..core.models import CapturedProcess

log = structlog.get_logger(__name__)

# (line, is_error) -> None
LineHandler = Callable[[str, bool], Awaitable[None]]

_READ_SIZE = 64 * 1024


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class ProcessRunner:
    """
    Spawns child processes with cwd pinned to a job workspace.

    Two shapes:
      - stream_lines: hand every stdout/stderr line to a callback as it arrives
      - run_captured: wait for exit, then return the full stdout/stderr
    Neither applies a timeout.
    """

    def __init__(self, env: Optional[Dict[str, str]] = None):
        self.env = env or {}

    async def _spawn(self, cmd: List[str], cwd: Path) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd),
                env={**os.environ, **self.env},
            )
        except OSError as e:
            raise SpawnError(cmd, e.strerror or str(e)) from e

    async def stream_lines(self, cmd: List[str], cwd: Path, on_line: LineHandler) -> int:
        proc = await self._spawn(cmd, cwd)
        log.debug("process_started", cmd=cmd, pid=proc.pid)

        async def pump(stream: asyncio.StreamReader, is_error: bool) -> None:
            # no per-line limit: split raw blocks ourselves, keep the partial tail
            tail = b""
            while True:
                block = await stream.read(_READ_SIZE)
                if not block:
                    break
                *lines, tail = (tail + block).split(b"\n")
                for raw in lines:
                    await on_line(_decode(raw).rstrip("\r"), is_error)
            if tail:
                await on_line(_decode(tail).rstrip("\r"), is_error)

        pumps = [
            asyncio.ensure_future(pump(proc.stdout, False)),
            asyncio.ensure_future(pump(proc.stderr, True)),
        ]
        try:
            await asyncio.gather(*pumps)
            rc = await proc.wait()
        finally:
            for t in pumps:
                t.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)
            if proc.returncode is None:
                log.warning("process_killed", cmd=cmd, pid=proc.pid)
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()
        log.debug("process_exited", cmd=cmd, returncode=rc)
        return rc

    async def run_captured(self, cmd: List[str], cwd: Path) -> CapturedProcess:
        proc = await self._spawn(cmd, cwd)
        log.debug("process_started", cmd=cmd, pid=proc.pid)
        out, err = await proc.communicate()
        log.debug("process_exited", cmd=cmd, returncode=proc.returncode)
        return CapturedProcess(returncode=proc.returncode, stdout=_decode(out), stderr=_decode(err))
