"""``agencyflow-server``: run the approvals API under uvicorn."""

import argparse
import os


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agencyflow-server",
        description="Serve the AgencyFlow approvals and stage-transition API.",
    )
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--log-level", choices=("debug", "info", "warning", "error"))
    parser.add_argument("--reload", action="store_true", help="restart on source changes")
    parser.add_argument(
        "--local",
        action="store_true",
        help="use the local SQLite file and human-readable logs",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    # Settings are read at import of agencyflow.main, so the env goes first.
    if args.local:
        os.environ["AGENCYFLOW_LOCAL_MODE"] = "1"
        os.environ.setdefault("AGENCYFLOW_JSON_LOGS", "0")
    if args.log_level:
        os.environ["AGENCYFLOW_LOG_LEVEL"] = args.log_level

    import uvicorn

    uvicorn.run("agencyflow.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
