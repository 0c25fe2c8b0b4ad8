"""AgentHaus CLI - serve the API, manage the schema and drive the scheduler."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence

from agenthaus import __version__


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agenthaus",
        description="AgentHaus agent platform CLI",
    )
    parser.add_argument("--version", action="version", version=f"agenthaus {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=False)

    serve = subparsers.add_parser("serve", help="Run the HTTP API under uvicorn")
    serve.add_argument("--host", type=str, default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")
    serve.set_defaults(func=serve_main)

    init_db = subparsers.add_parser("init-db", help="Create database tables")
    init_db.set_defaults(func=init_db_main)

    tick = subparsers.add_parser("tick", help="Run one scheduler pass and print the summary")
    tick.set_defaults(func=tick_main)

    pairing = subparsers.add_parser("pairing-code", help="Issue (or show) an agent's pairing code")
    pairing.add_argument("agent_id", type=str, help="Agent id")
    pairing.set_defaults(func=pairing_code_main)

    return parser


def serve_main(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("agenthaus.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def init_db_main(args: argparse.Namespace) -> int:
    from agenthaus.db.database import init_models

    asyncio.run(init_models())
    print("✓ Database tables created")
    return 0


def tick_main(args: argparse.Namespace) -> int:
    from agenthaus.core.config import settings
    from agenthaus.services.container import get_platform

    async def run() -> dict:
        platform = get_platform()
        summary = await platform.scheduler.tick()
        result = summary.to_dict()
        result["pruned_messages"] = await platform.sessions.prune_expired(settings.SESSION_MESSAGE_RETENTION_DAYS)
        return result

    print(json.dumps(asyncio.run(run()), indent=2))
    return 0


def pairing_code_main(args: argparse.Namespace) -> int:
    from agenthaus.services.container import get_platform

    code = asyncio.run(get_platform().pairing.get_or_create(args.agent_id))
    state = "new" if code.is_new else "existing"
    print(f"{code.code} ({state}, expires {code.expires_at:%Y-%m-%d %H:%M} UTC)")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
