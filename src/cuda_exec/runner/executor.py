from __future__ import annotations
from pathlib import Path
from typing import Optional

import structlog

from ..core.errors import ExecutionError, SpawnError
from ..core.models import ExecutionOutput
from .process import ProcessRunner

log = structlog.get_logger(__name__)


class ExecuteStage:
    def __init__(self, runner: Optional[ProcessRunner] = None):
        self.runner = runner or ProcessRunner()

    async def _capture(self, binary_path: Path, workspace: Path) -> ExecutionOutput:
        try:
            res = await self.runner.run_captured([str(binary_path)], workspace)
        except SpawnError as e:
            raise ExecutionError(str(e)) from e
        except OSError as e:
            raise ExecutionError(f"cannot read output: {e}") from e
        return ExecutionOutput(stdout=res.stdout, stderr=res.stderr, returncode=res.returncode)

    async def run(self, binary_path: Path, workspace: Path) -> ExecutionOutput:
        """Run the compiled binary to completion. Failures yield empty output."""
        try:
            out = await self._capture(binary_path, workspace)
        except ExecutionError as e:
            log.warning("execution_failed", binary=str(binary_path), error=str(e))
            return ExecutionOutput()
        log.info("execution_finished", binary=str(binary_path), returncode=out.returncode)
        return out
