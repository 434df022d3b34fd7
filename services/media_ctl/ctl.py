from __future__ import annotations

import argparse
import asyncio
import json
import sys

from services.media_tools.schemas import TOOLS, TOOLS_BY_NAME
from shared.config import MediaGateConfig
from shared.proc_rpc import ProcClient

TOOLS_BINARY = "mediagate-tools"


async def _call_service(op: str, payload: dict) -> dict:
    cli = ProcClient(TOOLS_BINARY)
    try:
        _, frame = await cli.request(op, payload)
    finally:
        await cli.close()
    return frame


def cmd_tools(args) -> None:
    for tool in TOOLS:
        print(f"{tool.name:<14} {tool.description}")


def cmd_call(args) -> None:
    try:
        arguments = json.loads(args.json)
    except json.JSONDecodeError as exc:
        print(f"invalid --json: {exc}", file=sys.stderr)
        sys.exit(2)
    frame = asyncio.run(_call_service("tools.call", {"name": args.tool, "arguments": arguments}))
    if not frame.get("ok"):
        print(f"{frame.get('error_type', 'error')}: {frame.get('error')}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(frame["result"], indent=2))
    if frame["result"].get("isError"):
        sys.exit(1)


def cmd_config(args) -> None:
    print(json.dumps(MediaGateConfig.load().redacted(), indent=2))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mediagate-ctl")
    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser("tools").set_defaults(func=cmd_tools)
    sub.add_parser("config").set_defaults(func=cmd_config)

    cl = sub.add_parser("call")
    cl.add_argument("tool", choices=sorted(TOOLS_BY_NAME))
    cl.add_argument("--json", default="{}")
    cl.set_defaults(func=cmd_call)
    return p


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
