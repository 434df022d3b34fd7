from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from shared import logging_utils
from shared.errors import ProtocolError
from shared.protocol import decode_frame, encode_frame, error_response, ok_response

Handler = Callable[[dict[str, Any], Callable[[str, dict[str, Any]], Awaitable[None]], str], Awaitable[dict[str, Any]]]

_LOG = logging_utils.get_logger("service")


class NDJSONService:
    def __init__(self, *, name: str, kind: str, version: str, ops: dict[str, Handler]):
        self.name = name
        self.kind = kind
        self.version = version
        self.ops = dict(ops)
        self.ops.setdefault("meta", self._meta)
        self.ops.setdefault("health", self._health)

    async def _meta(self, payload: dict, emit_event, req_id: str) -> dict:
        return {"name": self.name, "kind": self.kind, "version": self.version, "ops": sorted(self.ops.keys())}

    async def _health(self, payload: dict, emit_event, req_id: str) -> dict:
        return {"status": "ok"}

    async def dispatch(self, req: dict[str, Any], emit: Callable[[str, str, dict], Awaitable[None]]) -> dict[str, Any]:
        req_id = req.get("id", "")
        op = req.get("op")
        payload = req.get("payload") or {}
        handler = self.ops.get(op)
        if not handler:
            return error_response(req_id, f"unknown op: {op}", "unknown_op")
        try:
            result = await handler(payload, lambda e, p: emit(req_id, e, p), req_id)
        except Exception as exc:  # noqa: BLE001
            _LOG.exception("op %s failed", op)
            return error_response(req_id, str(exc), exc.__class__.__name__)
        return ok_response(req_id, result or {})

    async def run_stdio(self) -> None:
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        await asyncio.get_running_loop().connect_read_pipe(lambda: protocol, sys.stdin)
        stdout = sys.stdout.buffer

        def write(frame: dict) -> None:
            stdout.write(encode_frame(frame))
            stdout.flush()

        async def emit(req_id: str, event_name: str, payload: dict) -> None:
            write({"id": req_id, "event": event_name, "payload": payload})

        async def serve(req: dict) -> None:
            write(await self.dispatch(req, emit))

        pending: set[asyncio.Task] = set()
        while True:
            line = await reader.readline()
            if not line:
                break
            if not line.strip():
                continue
            try:
                req = decode_frame(line)
            except ProtocolError as exc:
                write(error_response("", str(exc), "protocol_error"))
                continue
            # requests run concurrently; responses are matched by id
            task = asyncio.create_task(serve(req))
            pending.add(task)
            task.add_done_callback(pending.discard)
        if pending:
            await asyncio.gather(*pending)
