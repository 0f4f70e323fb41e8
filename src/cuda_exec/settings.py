from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ---- workspace / toolchain ----
    scratch_root: Path = Path("/tmp/cuda-exec/jobs")
    compiler: str = "nvcc"

    # ---- streaming ----
    channel_capacity: int = 100
    forward_compiler_diagnostics: bool = False

    # ---- server ----
    host: str = "127.0.0.1"
    port: int = 50051
    log_level: str = "info"

    # env prefix CUDA_EXEC_*
    model_config = SettingsConfigDict(env_prefix="CUDA_EXEC_", extra="ignore")


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {}
    return data if isinstance(data, dict) else {}


def load_settings() -> Settings:
    # 0) base from env CUDA_EXEC_*
    s = Settings()

    # 1) conf/host.yaml (or CUDA_EXEC_CONF); env vars win over the file
    data = _read_yaml(Path(os.environ.get("CUDA_EXEC_CONF", "conf/host.yaml")))
    server = data.get("server") or {}
    if not isinstance(server, dict):
        server = {}

    update: Dict[str, Any] = {}
    if "scratch_root" in data:
        update["scratch_root"] = Path(str(data["scratch_root"]))
    if "compiler" in data:
        update["compiler"] = str(data["compiler"])
    if "channel_capacity" in data:
        update["channel_capacity"] = int(data["channel_capacity"])
    if "forward_compiler_diagnostics" in data:
        update["forward_compiler_diagnostics"] = bool(data["forward_compiler_diagnostics"])
    for key in ("host", "log_level"):
        if key in server:
            update[key] = str(server[key])
    if "port" in server:
        update["port"] = int(server["port"])

    # pydantic-settings matches env names case-insensitively, so do the same here
    env_names = {name.upper() for name in os.environ}
    overridden = {k for k in update if f"CUDA_EXEC_{k.upper()}" in env_names}
    for k in overridden:
        update.pop(k)

    return s.model_copy(update=update)
