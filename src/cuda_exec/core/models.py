from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from .errors import CompileError


class JobState(str, Enum):
    CREATED = "CREATED"
    WORKSPACE_READY = "WORKSPACE_READY"
    COMPILING = "COMPILING"
    COMPILE_FAILED = "COMPILE_FAILED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CLEANED_UP = "CLEANED_UP"


@dataclass
class Job:
    job_id: str
    source_file_name: str
    source_code: str
    compiler_flags: List[str] = field(default_factory=list)
    workspace_path: Optional[Path] = None  # scratch_root/<job_id> once created
    state: JobState = JobState.CREATED


@dataclass(frozen=True)
class OutputChunk:
    text: str
    is_error: bool = False

    def to_wire(self) -> dict:
        return {"output": self.text, "is_error": self.is_error}


@dataclass
class CompileSuccess:
    binary_path: Path
    diagnostics: List[str] = field(default_factory=list)


@dataclass
class CompileFailure:
    error: CompileError
    diagnostics: List[str] = field(default_factory=list)


CompileOutcome = Union[CompileSuccess, CompileFailure]


@dataclass
class CapturedProcess:
    returncode: int
    stdout: str
    stderr: str


@dataclass
class ExecutionOutput:
    stdout: str = ""
    stderr: str = ""
    returncode: Optional[int] = None
