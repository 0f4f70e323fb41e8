from __future__ import annotations
import asyncio
from enum import Enum
from typing import AsyncIterator, Iterable, List, Union

import structlog

from ..core.errors import DeliveryError
from ..core.models import ExecutionOutput, OutputChunk

log = structlog.get_logger(__name__)

COMPILE_OK_TEXT = "✅ Compilation successful. Running..."
COMPILE_FAILED_TEXT = "❌ Compilation failed."


class Phase(str, Enum):
    COMPILING = "COMPILING"
    COMPILE_FAILED = "COMPILE_FAILED"
    COMPILE_SUCCEEDED = "COMPILE_SUCCEEDED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    DONE = "DONE"


_ALLOWED = {
    Phase.COMPILING: {Phase.COMPILE_FAILED, Phase.COMPILE_SUCCEEDED},
    Phase.COMPILE_SUCCEEDED: {Phase.RUNNING},
    Phase.RUNNING: {Phase.COMPLETED},
    Phase.COMPILE_FAILED: {Phase.DONE},
    Phase.COMPLETED: {Phase.DONE},
    Phase.FAILED: {Phase.DONE},
}


class _End:
    pass


_END = _End()


def _trim(block: str) -> str:
    return block[:-1] if block.endswith("\n") else block


class OutputMultiplexer:
    """
    Ordered, bounded stream of OutputChunks for one job.

    The producer (the job pipeline) reports stage events; each event becomes
    zero or more chunks in a fixed order: compile summary first, then stdout,
    then stderr. The consumer iterates `stream()` until the end marker.
    A full queue suspends the producer. Once the consumer is gone, sends are
    dropped and the producer keeps going.
    """

    def __init__(self, job_id: str, capacity: int = 100, forward_diagnostics: bool = False):
        self.job_id = job_id
        self.forward_diagnostics = forward_diagnostics
        self.phase = Phase.COMPILING
        self._queue: "asyncio.Queue[Union[OutputChunk, _End]]" = asyncio.Queue(maxsize=capacity)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    # ---- producer side ----

    def _advance(self, to: Phase) -> None:
        if to is Phase.FAILED:
            ok = self.phase is not Phase.DONE
        else:
            ok = to in _ALLOWED.get(self.phase, set())
        if not ok:
            raise RuntimeError(f"job {self.job_id}: illegal transition {self.phase.value} -> {to.value}")
        self.phase = to

    async def _send(self, item: Union[OutputChunk, _End]) -> None:
        if self._closed:
            raise DeliveryError(f"job {self.job_id}: consumer is gone")
        await self._queue.put(item)

    async def emit(self, chunk: OutputChunk) -> None:
        try:
            await self._send(chunk)
        except DeliveryError:
            log.debug("chunk_dropped", job_id=self.job_id, is_error=chunk.is_error)

    async def _emit_diagnostics(self, diagnostics: Iterable[str]) -> None:
        if not self.forward_diagnostics:
            return
        for line in diagnostics:
            await self.emit(OutputChunk(line, is_error=True))

    async def compile_succeeded(self, diagnostics: Iterable[str] = ()) -> None:
        self._advance(Phase.COMPILE_SUCCEEDED)
        await self.emit(OutputChunk(COMPILE_OK_TEXT))
        await self._emit_diagnostics(diagnostics)

    async def compile_failed(self, diagnostics: Iterable[str] = ()) -> None:
        self._advance(Phase.COMPILE_FAILED)
        await self.emit(OutputChunk(COMPILE_FAILED_TEXT, is_error=True))
        await self._emit_diagnostics(diagnostics)

    def execution_started(self) -> None:
        self._advance(Phase.RUNNING)

    async def execution_output(self, output: ExecutionOutput) -> None:
        self._advance(Phase.COMPLETED)
        # empty streams produce nothing
        if output.stdout:
            await self.emit(OutputChunk(_trim(output.stdout)))
        if output.stderr:
            await self.emit(OutputChunk(_trim(output.stderr), is_error=True))

    async def internal_failure(self, message: str) -> None:
        self._advance(Phase.FAILED)
        await self.emit(OutputChunk(message, is_error=True))

    async def finish(self) -> None:
        self._advance(Phase.DONE)
        try:
            await self._send(_END)
        except DeliveryError:
            pass

    # ---- consumer side ----

    async def stream(self) -> AsyncIterator[OutputChunk]:
        try:
            while True:
                item = await self._queue.get()
                if isinstance(item, _End):
                    return
                yield item
        finally:
            self.close()

    def close(self) -> None:
        """Detach the consumer; frees the queue so a suspended producer resumes."""
        if self._closed:
            return
        self._closed = True
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            dropped += 1
        if self.phase is not Phase.DONE:
            log.info("consumer_detached", job_id=self.job_id, phase=self.phase.value, dropped=dropped)

    async def collect(self) -> List[OutputChunk]:
        return [chunk async for chunk in self.stream()]
