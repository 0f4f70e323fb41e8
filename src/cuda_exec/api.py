from __future__ import annotations
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, field_validator

from .core.utils import is_bare_file_name
from .services.job_service import JobService
from .services.multiplexer import OutputMultiplexer
from .settings import Settings, load_settings

NDJSON = "application/x-ndjson"


# --------- Schemas ---------
class ComputeRequest(BaseModel):
    source_code: str
    file_name: str
    compiler_flags: List[str] = Field(default_factory=list)

    @field_validator("file_name")
    @classmethod
    def _bare_name(cls, v: str) -> str:
        if not is_bare_file_name(v):
            raise ValueError("file_name must be a plain file name")
        return v


class ComputeResponse(BaseModel):
    output: str
    is_error: bool


class HealthRes(BaseModel):
    ok: bool
    active_jobs: int


async def _ndjson(mux: OutputMultiplexer) -> AsyncIterator[bytes]:
    try:
        async for chunk in mux.stream():
            yield (ComputeResponse(**chunk.to_wire()).model_dump_json() + "\n").encode("utf-8")
    finally:
        # client gone or stream done; later chunks are dropped
        mux.close()


class ChunkStreamResponse(StreamingResponse):
    """NDJSON stream of a job's chunks; the multiplexer is closed however the response ends."""

    def __init__(self, mux: OutputMultiplexer):
        super().__init__(_ndjson(mux), media_type=NDJSON)
        self.mux = mux

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            # also covers a disconnect before the body iterator ever started
            self.mux.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="CUDA Exec Host")
    app.state.settings = settings
    app.state.jobs = JobService(settings)

    # --------- Endpoints ---------
    @app.get("/health", response_model=HealthRes)
    def health(request: Request):
        return HealthRes(ok=True, active_jobs=request.app.state.jobs.active_jobs)

    @app.post("/execute")
    async def execute_code(req: ComputeRequest, request: Request):
        svc: JobService = request.app.state.jobs
        mux = svc.submit(req.source_code, req.file_name, req.compiler_flags)
        return ChunkStreamResponse(mux)

    return app
