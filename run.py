#!/usr/bin/env python3
"""Run the Verdict API server.

Usage:
    python run.py [--host HOST] [--port PORT] [--reload] [--workers N] [--storage sql|memory]

Configuration comes from VERDICT_* environment variables; VERDICT_JWT_SECRET
is required. ``--storage memory`` runs without PostgreSQL, which also forces a
single worker since in-memory state is per process.
"""

import argparse
import os

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Run the Verdict API server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Auto-reload on code changes")
    parser.add_argument("--workers", type=int, default=1, help="Worker processes (default: 1)")
    parser.add_argument(
        "--storage",
        choices=["sql", "memory"],
        help="Override VERDICT_STORAGE_BACKEND for this run",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        default="info",
        help="Uvicorn log level (default: info)",
    )
    args = parser.parse_args()

    if args.storage:
        os.environ["VERDICT_STORAGE_BACKEND"] = args.storage
    storage = os.environ.get("VERDICT_STORAGE_BACKEND", "sql")
    workers = 1 if args.reload or storage == "memory" else args.workers

    print(f"Verdict API ({storage} storage) at http://{args.host}:{args.port}  docs: /docs")

    uvicorn.run(
        "verdict.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=workers,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
