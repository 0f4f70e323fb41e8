from __future__ import annotations
from pathlib import Path
from typing import List, Optional


class CudaExecError(Exception):
    """Base class for every error raised by the host pipeline."""


class WorkspaceError(CudaExecError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"workspace {path}: {reason}")
        self.path = path
        self.reason = reason


class SpawnError(CudaExecError):
    """A child process could not be started."""

    def __init__(self, cmd: List[str], reason: str):
        super().__init__(f"cannot spawn {cmd[0] if cmd else '<empty>'}: {reason}")
        self.cmd = cmd
        self.reason = reason


class CompileError(CudaExecError):
    """
    Compiler could not be spawned or exited non-zero.
    `returncode` is None when the process never ran.
    """

    def __init__(self, reason: str, returncode: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.returncode = returncode


class ExecutionError(CudaExecError):
    pass


class DeliveryError(CudaExecError):
    pass
