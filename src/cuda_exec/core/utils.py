from __future__ import annotations
import uuid
from pathlib import PurePosixPath, PureWindowsPath


def new_job_id() -> str:
    return uuid.uuid4().hex


def is_bare_file_name(name: str) -> bool:
    # "kernel.cu" ok; "../x.cu", "a/b.cu", "C:\\x.cu" not
    if not name or name in (".", ".."):
        return False
    return PurePosixPath(name).name == name and PureWindowsPath(name).name == name


def binary_name_for(source_file_name: str) -> str:
    stem = PurePosixPath(source_file_name).stem or "a"
    name = f"{stem}.out"
    if name == source_file_name:
        name = f"{stem}.bin.out"
    return name
