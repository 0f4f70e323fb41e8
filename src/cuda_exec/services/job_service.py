from __future__ import annotations
import asyncio
from typing import List, Optional, Set

import structlog

from ..core.models import Job
from ..core.utils import new_job_id
from ..runner.compiler import CompileStage
from ..runner.executor import ExecuteStage
from ..runner.process import ProcessRunner
from ..settings import Settings
from .multiplexer import OutputMultiplexer
from .pipeline import JobPipeline
from .workspace import WorkspaceManager

log = structlog.get_logger(__name__)


class JobService:
    """
    Accepts submissions: builds the Job, starts its pipeline as its own task
    and hands back the output stream right away.
    """

    def __init__(self, settings: Settings, pipeline: Optional[JobPipeline] = None):
        self.settings = settings
        if pipeline is None:
            runner = ProcessRunner()
            pipeline = JobPipeline(
                workspaces=WorkspaceManager(settings.scratch_root),
                compiler=CompileStage(settings.compiler, runner),
                executor=ExecuteStage(runner),
            )
        self.pipeline = pipeline
        # strong refs so running tasks are not garbage collected
        self._tasks: Set["asyncio.Task[None]"] = set()

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    def submit(self, source_code: str, file_name: str, compiler_flags: List[str]) -> OutputMultiplexer:
        job = Job(
            job_id=new_job_id(),
            source_file_name=file_name,
            source_code=source_code,
            compiler_flags=list(compiler_flags),
        )
        mux = OutputMultiplexer(
            job.job_id,
            capacity=self.settings.channel_capacity,
            forward_diagnostics=self.settings.forward_compiler_diagnostics,
        )
        task = asyncio.create_task(self.pipeline.run(job, mux), name=f"job-{job.job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        log.info("job_accepted", job_id=job.job_id, file=file_name)
        return mux

    def _on_done(self, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            log.warning("job_task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            log.error("job_task_crashed", task=task.get_name(), error=repr(exc))
