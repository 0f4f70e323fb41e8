"""
Host entry point: serves the execute API with uvicorn.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import uvicorn

from .api import create_app
from .logging import setup_logging
from .settings import load_settings


def main(argv=None) -> int:
    s = load_settings()
    parser = argparse.ArgumentParser(description="Remote CUDA compile-and-run host")
    parser.add_argument("--host", type=str, default=s.host, help="Host address to bind to")
    parser.add_argument("--port", type=int, default=s.port, help="Port number to bind to")
    parser.add_argument("--log-level", type=str, default=s.log_level,
                        choices=["debug", "info", "warning", "error", "critical"],
                        help="Log level")
    parser.add_argument("--scratch-root", type=str, default=str(s.scratch_root),
                        help="Directory that holds per-job workspaces")
    args = parser.parse_args(argv)

    s = s.model_copy(update={
        "host": args.host,
        "port": args.port,
        "log_level": args.log_level,
        "scratch_root": Path(args.scratch_root),
    })
    log = setup_logging(s.log_level)
    log.info("host_starting", host=s.host, port=s.port, compiler=s.compiler,
             scratch_root=str(s.scratch_root))

    try:
        uvicorn.run(create_app(s), host=s.host, port=s.port, log_level=s.log_level)
    except KeyboardInterrupt:
        log.info("host_stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
