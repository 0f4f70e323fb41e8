from __future__ import annotations
import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import BROKEN, HELLO
from cuda_exec.api import ChunkStreamResponse, create_app
from cuda_exec.services.multiplexer import COMPILE_FAILED_TEXT, COMPILE_OK_TEXT, OutputMultiplexer
from cuda_exec.settings import Settings


@pytest.fixture
def client(settings: Settings):
    with TestClient(create_app(settings)) as c:
        yield c


def post_lines(client: TestClient, body: dict) -> list:
    with client.stream("POST", "/execute", json=body) as r:
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("application/x-ndjson")
        return [json.loads(line) for line in r.iter_lines() if line]


def test_health(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "active_jobs": 0}


def test_execute_streams_chunks(client: TestClient, scratch_root: Path):
    lines = post_lines(client, {"source_code": HELLO, "file_name": "hello.cu", "compiler_flags": ["-O2"]})
    assert lines == [
        {"output": COMPILE_OK_TEXT, "is_error": False},
        {"output": "hello", "is_error": False},
    ]
    assert list(scratch_root.iterdir()) == []


def test_execute_compile_failure(client: TestClient):
    lines = post_lines(client, {"source_code": BROKEN, "file_name": "bad.cu"})
    assert lines == [{"output": COMPILE_FAILED_TEXT, "is_error": True}]


@pytest.mark.parametrize("name", ["../escape.cu", "dir/k.cu", "..", ""])
def test_execute_rejects_path_like_file_names(client: TestClient, name: str):
    r = client.post("/execute", json={"source_code": HELLO, "file_name": name})
    assert r.status_code == 422


def test_execute_requires_source(client: TestClient):
    r = client.post("/execute", json={"file_name": "k.cu"})
    assert r.status_code == 422


@pytest.mark.anyio
async def test_stream_response_closes_mux_when_body_never_starts():
    mux = OutputMultiplexer("j", capacity=1)
    response = ChunkStreamResponse(mux)

    async def receive():
        return {"type": "http.disconnect"}

    async def send(message):
        raise OSError("client went away")

    with pytest.raises(Exception):
        await response({"type": "http", "asgi": {"spec_version": "2.4"}}, receive, send)
    assert mux.closed
