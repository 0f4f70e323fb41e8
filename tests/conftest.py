from __future__ import annotations
import stat
from pathlib import Path

import pytest

from cuda_exec.runner.compiler import CompileStage
from cuda_exec.runner.executor import ExecuteStage
from cuda_exec.services.pipeline import JobPipeline
from cuda_exec.services.workspace import WorkspaceManager
from cuda_exec.settings import Settings

# Stands in for nvcc: records its argv and cwd, rejects sources containing
# SYNTAX_ERROR, otherwise "compiles" by copying the source (a shell script)
# to the -o path and marking it executable.
FAKE_NVCC = """#!/bin/sh
src="$1"
printf '%s\\n' "$@" > compiler_args.txt
pwd > compiler_cwd.txt
shift
out=""
while [ $# -gt 0 ]; do
  if [ "$1" = "-o" ]; then out="$2"; shift; fi
  shift
done
echo "fake-nvcc: building $src"
if grep -q SYNTAX_ERROR "$src"; then
  echo "$src(1): error: expected a ';'" >&2
  exit 2
fi
cp "$src" "$out" && chmod +x "$out"
"""

HELLO = "#!/bin/sh\necho hello\n"
BOTH_STREAMS = "#!/bin/sh\necho 'to stdout'\necho 'to stderr' >&2\n"
SILENT = "#!/bin/sh\nexit 0\n"
BROKEN = "#!/bin/sh\nSYNTAX_ERROR\n"
LONG_LINE = 70000
LONG_LINE_NVCC = f"""#!/bin/sh
printf "%0{LONG_LINE}d\\n" 0 >&2
exit 1
"""


@pytest.fixture
def anyio_backend():
    return "asyncio"


def write_script(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_nvcc(tmp_path: Path) -> Path:
    return write_script(tmp_path / "bin" / "fake-nvcc", FAKE_NVCC)


@pytest.fixture
def long_line_nvcc(tmp_path: Path) -> Path:
    # one diagnostic line well past asyncio's 64 KiB readline limit
    return write_script(tmp_path / "bin" / "long-line-nvcc", LONG_LINE_NVCC)


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    return tmp_path / "jobs"


@pytest.fixture
def settings(scratch_root: Path, fake_nvcc: Path) -> Settings:
    return Settings(scratch_root=scratch_root, compiler=str(fake_nvcc), channel_capacity=100)


@pytest.fixture
def workspaces(scratch_root: Path) -> WorkspaceManager:
    return WorkspaceManager(scratch_root)


@pytest.fixture
def pipeline(workspaces: WorkspaceManager, fake_nvcc: Path) -> JobPipeline:
    return JobPipeline(workspaces, CompileStage(str(fake_nvcc)), ExecuteStage())
