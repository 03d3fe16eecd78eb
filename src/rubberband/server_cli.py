"""CLI entry point for the Rubberband API server."""

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="rubberband-server",
        description="Rubberband OS API server: tenant signup, onboarding and account deletion",
    )
    parser.add_argument("--host", default=None, help="Bind host (default: RUBBERBAND_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: RUBBERBAND_PORT or 8080)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database and the built-in identity service",
    )
    args = parser.parse_args(argv)

    if args.local:
        os.environ["RUBBERBAND_LOCAL_MODE"] = "1"
        os.environ["RUBBERBAND_LOCAL"] = "1"

    # Settings are read after the environment is final
    from rubberband.config import settings
    import uvicorn

    uvicorn.run("rubberband.main:app", host=args.host or settings.host, port=args.port or settings.port)


if __name__ == "__main__":
    main()
