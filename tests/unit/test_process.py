from __future__ import annotations
import asyncio
import os
from pathlib import Path

import pytest

from cuda_exec.core.errors import SpawnError
from cuda_exec.runner.process import ProcessRunner

pytestmark = pytest.mark.anyio


async def test_stream_lines_tags_streams_and_returns_exit_code(tmp_path: Path):
    seen = []

    async def on_line(line: str, is_error: bool) -> None:
        seen.append((line, is_error))

    rc = await ProcessRunner().stream_lines(
        ["sh", "-c", "echo one; echo two; echo bad >&2; exit 3"], tmp_path, on_line
    )
    assert rc == 3
    assert [l for l, e in seen if not e] == ["one", "two"]
    assert [l for l, e in seen if e] == ["bad"]


async def test_run_captured_snapshots_both_streams(tmp_path: Path):
    res = await ProcessRunner().run_captured(["sh", "-c", "printf 'a\\nb\\n'; printf 'e' >&2"], tmp_path)
    assert res.returncode == 0
    assert res.stdout == "a\nb\n"
    assert res.stderr == "e"


async def test_children_run_inside_given_directory(tmp_path: Path):
    res = await ProcessRunner().run_captured(["pwd"], tmp_path)
    assert os.path.realpath(res.stdout.strip()) == os.path.realpath(tmp_path)


async def test_missing_executable_raises_spawn_error(tmp_path: Path):
    with pytest.raises(SpawnError):
        await ProcessRunner().run_captured([str(tmp_path / "nope")], tmp_path)


async def test_extra_env_is_passed(tmp_path: Path):
    res = await ProcessRunner(env={"CUDA_EXEC_PROBE": "42"}).run_captured(
        ["sh", "-c", "echo $CUDA_EXEC_PROBE"], tmp_path
    )
    assert res.stdout == "42\n"


async def test_stream_lines_has_no_line_length_limit(tmp_path: Path):
    seen = []

    async def on_line(line: str, is_error: bool) -> None:
        seen.append((len(line), is_error))

    rc = await ProcessRunner().stream_lines(
        ["sh", "-c", "printf '%070000d\\n' 0 >&2; printf 'tail-without-newline'"], tmp_path, on_line
    )
    assert rc == 0
    assert (70000, True) in seen
    assert (len("tail-without-newline"), False) in seen


class RecordingRunner(ProcessRunner):
    def __init__(self):
        super().__init__()
        self.procs = []

    async def _spawn(self, cmd, cwd):
        proc = await super()._spawn(cmd, cwd)
        self.procs.append(proc)
        return proc


async def test_failing_handler_kills_and_reaps_child(tmp_path: Path):
    runner = RecordingRunner()

    async def on_line(line: str, is_error: bool) -> None:
        raise RuntimeError("handler broke")

    with pytest.raises(RuntimeError):
        await asyncio.wait_for(
            runner.stream_lines(["sh", "-c", "echo first; exec sleep 30"], tmp_path, on_line), timeout=10
        )
    (proc,) = runner.procs
    assert proc.returncode is not None
