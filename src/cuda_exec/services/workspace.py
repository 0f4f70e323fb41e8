from __future__ import annotations
import shutil
from pathlib import Path

import structlog

from ..core.errors import WorkspaceError

log = structlog.get_logger(__name__)


class WorkspaceManager:
    """
    One scratch directory per job, laid out as:
      <scratch_root>/
        └─ <job_id>/
             ├─ <source file>
             └─ <binary>.out
    Job ids are unique, so sibling workspaces never collide and need no locking.
    """

    def __init__(self, scratch_root: Path):
        # keep the root absolute so every job path is too
        self.scratch_root = scratch_root if scratch_root.is_absolute() else scratch_root.resolve()
        self.scratch_root.mkdir(parents=True, exist_ok=True)

    def path_for(self, job_id: str) -> Path:
        return self.scratch_root / job_id

    def create(self, job_id: str) -> Path:
        p = self.path_for(job_id)
        try:
            p.mkdir()
        except OSError as e:
            raise WorkspaceError(p, e.strerror or str(e)) from e
        log.debug("workspace_created", job_id=job_id, workspace=str(p))
        return p

    def destroy(self, workspace: Path) -> None:
        """Remove a workspace. Missing directories are fine, failures are only logged."""
        if not workspace.exists():
            return
        try:
            shutil.rmtree(workspace)
        except OSError as e:
            log.warning("workspace_leaked", workspace=str(workspace), error=str(e))
            return
        log.debug("workspace_removed", workspace=str(workspace))
