from __future__ import annotations
from pathlib import Path
from typing import List, Optional

import structlog

from ..core.errors import CompileError, SpawnError
from ..core.models import CompileFailure, CompileOutcome, CompileSuccess
from ..core.utils import binary_name_for
from .process import ProcessRunner

log = structlog.get_logger(__name__)


class CompileStage:
    def __init__(self, compiler: str = "nvcc", runner: Optional[ProcessRunner] = None):
        self.compiler = compiler
        self.runner = runner or ProcessRunner()

    def command(self, source: Path, flags: List[str], binary: Path) -> List[str]:
        # flags go through untouched, in order
        return [self.compiler, str(source), *flags, "-o", str(binary)]

    async def compile(
        self,
        workspace: Path,
        source_file_name: str,
        source_code: str,
        flags: List[str],
    ) -> CompileOutcome:
        """
        Write the source into the workspace and build it there.
        Spawn errors and non-zero exits both come back as CompileFailure.
        """
        source = workspace / source_file_name
        binary = workspace / binary_name_for(source_file_name)
        try:
            source.write_text(source_code, encoding="utf-8")
        except OSError as e:
            return CompileFailure(error=CompileError(f"cannot write source: {e}"))

        diagnostics: List[str] = []

        async def collect(line: str, is_error: bool) -> None:
            diagnostics.append(line)
            log.debug("compiler_output", line=line, stream="stderr" if is_error else "stdout")

        cmd = self.command(source, flags, binary)
        try:
            rc = await self.runner.stream_lines(cmd, workspace, collect)
        except SpawnError as e:
            log.warning("compiler_spawn_failed", compiler=self.compiler, error=e.reason)
            return CompileFailure(error=CompileError(str(e)), diagnostics=diagnostics)
        except (OSError, ValueError) as e:
            log.warning("compiler_output_unreadable", compiler=self.compiler, error=str(e))
            return CompileFailure(error=CompileError(f"cannot read compiler output: {e}"), diagnostics=diagnostics)

        if rc != 0:
            log.info("compile_failed", returncode=rc, workspace=str(workspace))
            return CompileFailure(
                error=CompileError(f"{self.compiler} exited with {rc}", returncode=rc),
                diagnostics=diagnostics,
            )
        return CompileSuccess(binary_path=binary, diagnostics=diagnostics)
