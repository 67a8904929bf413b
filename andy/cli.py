#!/usr/bin/env python3
"""
Andy CLI.

    COMMAND     WHAT IT DOES
    -------     ----------------------------------------
    serve       Start the HTTP API (uvicorn)
    ask         Run one message through the full pipeline
    flash       Show the effective config, secrets redacted
"""

import argparse
import asyncio
import json
import sys

from andy import __version__


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_serve(args):
    """Start the Andy API server."""
    import uvicorn
    from andy.config import get_config

    cfg = get_config()
    host = args.host or cfg["server"]["host"]
    port = args.port or cfg["server"]["port"]

    print(f"  Andy v{__version__} on {host}:{port}")
    print(f"  Providers: {', '.join(cfg.get('providers', {}))}")
    print()

    uvicorn.run(
        "andy.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def cmd_ask(args):
    """One-shot pipeline run, printing the structured response."""
    from andy.config import get_config
    from andy.errors import AppError
    from andy.orchestrator import ChatOrchestrator
    from andy.storage.backends import store_from_config

    cfg = get_config()

    async def _run():
        orchestrator = ChatOrchestrator.from_config(cfg, store=store_from_config(cfg))
        return await orchestrator.process_message(args.user, " ".join(args.message))

    try:
        response = asyncio.run(_run())
    except AppError as e:
        print(f"  ✗  [{e.code}] {e.message}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(response.to_dict(), indent=2))
        return
    print(f"[{response.source}] {response.content}")
    for action in response.actions:
        print(f"  → {action.type}: {action.payload}")


def cmd_flash(args):
    """Print the effective configuration with API keys masked."""
    import yaml
    from andy.config import get_config, redact

    print(yaml.safe_dump(redact(get_config()), sort_keys=False, allow_unicode=True))


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="andy",
        description="Andy — conversational finance and tax assistant",
    )
    parser.add_argument("--version", action="version", version=f"andy {__version__}")
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("serve", help="Start the HTTP API")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)
    p.add_argument("--reload", action="store_true", help="Auto-reload on code change")
    p.set_defaults(func=cmd_serve)

    p = sub.add_parser("ask", help="Run one message through the pipeline")
    p.add_argument("message", nargs="+")
    p.add_argument("--user", default="cli", help="User id (default: cli)")
    p.add_argument("--json", action="store_true", help="Print the raw response JSON")
    p.set_defaults(func=cmd_ask)

    p = sub.add_parser("flash", help="Show effective config")
    p.set_defaults(func=cmd_flash)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
