"""CLI entry point for the auditflow API server."""

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="auditflow-server",
        description="auditflow API server: queued website audits with webhook callbacks",
    )
    parser.add_argument("--host", help="Bind host (default: AUDITFLOW_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Bind port (default: AUDITFLOW_PORT or 3000)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, console logs",
    )
    parser.add_argument("--concurrency", type=int, help="Audit worker count (default: from settings)")
    args = parser.parse_args(argv)

    if args.local:
        os.environ["AUDITFLOW_LOCAL_MODE"] = "1"
    if args.concurrency is not None:
        os.environ["AUDITFLOW_QUEUE_CONCURRENCY"] = str(args.concurrency)

    import uvicorn

    from auditflow.config import settings

    uvicorn.run(
        "auditflow.main:app",
        host=settings.host if args.host is None else args.host,
        port=settings.port if args.port is None else args.port,
    )


if __name__ == "__main__":
    main()
