"""
Command line client: sends a source file to a host and prints what comes back.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterator, List, Optional

import requests

DEFAULT_SERVER = "http://127.0.0.1:50051"

RED = "\033[31m"
CYAN = "\033[36m"
YELLOW = "\033[33m"
GREEN = "\033[32m"
BOLD = "\033[1m"
RESET = "\033[0m"


def paint(text: str, *codes: str, enabled: bool = True) -> str:
    if not enabled or not codes:
        return text
    return "".join(codes) + text + RESET


def iter_chunks(server: str, source_code: str, file_name: str, flags: List[str]) -> Iterator[dict]:
    """Yield `{"output", "is_error"}` dicts as the host streams them."""
    url = server.rstrip("/") + "/execute"
    body = {"source_code": source_code, "file_name": file_name, "compiler_flags": flags}
    with requests.post(url, json=body, stream=True) as resp:
        resp.raise_for_status()
        for line in resp.iter_lines(decode_unicode=True):
            if line:
                yield json.loads(line)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Remote CUDA Executor Client")
    p.add_argument("file", type=Path, help="Path to the .cu file")
    p.add_argument("-s", "--server", default=DEFAULT_SERVER,
                   help=f"Remote host address (default {DEFAULT_SERVER})")
    # values start with '-', so pass them as --flag=-arch=sm_80
    p.add_argument("-f", "--flag", dest="flags", action="append", default=[],
                   help="Extra flag for nvcc, repeatable (e.g. --flag=-arch=sm_80)")
    p.add_argument("--no-color", action="store_true", help="Disable colored output")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    color = not args.no_color

    try:
        source_code = args.file.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Could not read file {args.file}: {e}", file=sys.stderr)
        return 1
    file_name = args.file.name

    print(f"{paint('🚀', BOLD, enabled=color)} Connecting to host at {paint(args.server, CYAN, enabled=color)}...")
    print(f"{paint('📤', BOLD, enabled=color)} Sending {paint(file_name, YELLOW, enabled=color)} to remote GPU...")

    try:
        for chunk in iter_chunks(args.server, source_code, file_name, args.flags):
            if chunk.get("is_error"):
                print(paint(chunk.get("output", ""), RED, enabled=color), file=sys.stderr)
            else:
                print(chunk.get("output", ""))
    except requests.RequestException as e:
        print(f"Request to {args.server} failed: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Malformed response from {args.server}: {e}", file=sys.stderr)
        return 1

    print(f"\n{paint('✅', BOLD, GREEN, enabled=color)} Execution finished.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
