from __future__ import annotations

import structlog

from ..core.errors import WorkspaceError
from ..core.models import CompileFailure, Job, JobState
from ..runner.compiler import CompileStage
from ..runner.executor import ExecuteStage
from .multiplexer import OutputMultiplexer
from .workspace import WorkspaceManager

log = structlog.get_logger(__name__)

INTERNAL_ERROR_TEXT = "Internal error: job could not be completed."
WORKSPACE_ERROR_TEXT = "Internal error: could not create job workspace."


class JobPipeline:
    """
    Runs one job: workspace -> compile -> run -> cleanup.

    Each stage gets a single attempt. Whatever branch is taken, the workspace
    is removed and the job reaches CLEANED_UP before the stream is finished.
    """

    def __init__(self, workspaces: WorkspaceManager, compiler: CompileStage, executor: ExecuteStage):
        self.workspaces = workspaces
        self.compiler = compiler
        self.executor = executor

    async def _compile_and_run(self, job: Job, mux: OutputMultiplexer) -> None:
        try:
            job.workspace_path = self.workspaces.create(job.job_id)
        except WorkspaceError as e:
            log.error("workspace_create_failed", job_id=job.job_id, error=str(e))
            job.state = JobState.FAILED
            await mux.internal_failure(WORKSPACE_ERROR_TEXT)
            return
        job.state = JobState.WORKSPACE_READY

        job.state = JobState.COMPILING
        outcome = await self.compiler.compile(
            job.workspace_path, job.source_file_name, job.source_code, job.compiler_flags
        )
        if isinstance(outcome, CompileFailure):
            job.state = JobState.COMPILE_FAILED
            log.info("job_compile_failed", job_id=job.job_id, reason=outcome.error.reason)
            await mux.compile_failed(outcome.diagnostics)
            return
        await mux.compile_succeeded(outcome.diagnostics)

        job.state = JobState.RUNNING
        mux.execution_started()
        output = await self.executor.run(outcome.binary_path, job.workspace_path)
        await mux.execution_output(output)
        job.state = JobState.COMPLETED

    async def run(self, job: Job, mux: OutputMultiplexer) -> None:
        log.info("job_started", job_id=job.job_id, file=job.source_file_name, flags=job.compiler_flags)
        try:
            await self._compile_and_run(job, mux)
        except Exception:
            log.exception("job_crashed", job_id=job.job_id, state=job.state.value)
            job.state = JobState.FAILED
            await mux.internal_failure(INTERNAL_ERROR_TEXT)
        finally:
            if job.workspace_path is not None:
                self.workspaces.destroy(job.workspace_path)
            final = job.state
            job.state = JobState.CLEANED_UP
            log.info("job_finished", job_id=job.job_id, outcome=final.value)
            await mux.finish()
