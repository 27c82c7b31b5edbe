"""discord-slash-router CLI (serve a route table, inspect derived commands)."""

from __future__ import annotations

import argparse
import importlib
import sys
from typing import Any

import msgspec

from . import __version__
from .logging import setup_logging
from .registry import CommandRegistry
from .router import Router
from .routes import normalize_routes
from .settings import RouterSettings


def load_routes(target: str) -> Any:
    """Import ``module:attribute`` and return the route table it names."""
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"expected 'module:attribute', got {target!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attribute)
    except AttributeError:
        raise ValueError(f"{module_name!r} has no attribute {attribute!r}") from None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="discord-slash-router")
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug logging.",
    )

    sub = parser.add_subparsers(dest="cmd", required=True)

    serve = sub.add_parser("serve", help="Serve routes and the interaction endpoint")
    serve.add_argument("routes", help="Route table to serve, as module:attribute")
    serve.add_argument("--host", default="127.0.0.1", help="Bind host (default: %(default)s)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: %(default)s)")
    serve.add_argument(
        "--serve-only",
        action="store_true",
        default=None,
        help="Do not register commands with Discord on startup.",
    )

    commands = sub.add_parser(
        "commands",
        help="Print the slash command schemas derived from a route table",
    )
    commands.add_argument("routes", help="Route table, as module:attribute")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(debug=bool(args.debug))

    try:
        routes = load_routes(args.routes)
    except (ImportError, ValueError) as exc:
        parser.error(str(exc))

    if args.cmd == "commands":
        registry = CommandRegistry(normalize_routes(routes))
        sys.stdout.write(
            msgspec.json.format(msgspec.json.encode(list(registry.commands))).decode()
            + "\n"
        )
        raise SystemExit(0)

    if args.cmd == "serve":
        import uvicorn

        from .asgi import create_app

        overrides: dict[str, Any] = {}
        if args.serve_only is not None:
            overrides["serve_only"] = True
        router = Router(routes, RouterSettings(**overrides))
        uvicorn.run(create_app(router), host=args.host, port=args.port)
        raise SystemExit(0)

    parser.error(f"unknown command: {args.cmd}")


if __name__ == "__main__":  # pragma: no cover
    main(sys.argv[1:])
