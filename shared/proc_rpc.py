from __future__ import annotations

import asyncio
import shutil
import sys
import uuid
from pathlib import Path

from shared.errors import ProtocolError, ServiceCrashedError
from shared.protocol import decode_frame, encode_frame

STDERR_TAIL_BYTES = 4096


def resolve_binary(binary: str) -> str:
    """Prefer the console script installed next to the running interpreter."""
    local = Path(sys.executable).parent / binary
    if local.exists():
        return str(local)
    return shutil.which(binary) or binary


class ProcClient:
    """Talks to one NDJSON service subprocess, one request at a time."""

    def __init__(self, binary: str, *, env=None):
        self.binary = resolve_binary(binary)
        self.env = env
        self.proc: asyncio.subprocess.Process | None = None

    async def _ensure_started(self) -> asyncio.subprocess.Process:
        if self.proc is None or self.proc.returncode is not None:
            self.proc = await asyncio.create_subprocess_exec(
                self.binary,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.env,
            )
        return self.proc

    async def _crashed(self, proc: asyncio.subprocess.Process) -> ServiceCrashedError:
        assert proc.stderr
        tail = (await proc.stderr.read())[-STDERR_TAIL_BYTES:]
        code = await proc.wait()
        return ServiceCrashedError(f"{self.binary} exited with {code}:\n" + tail.decode("utf-8", errors="replace").rstrip())

    async def request(self, op: str, payload: dict) -> tuple[list[dict], dict]:
        proc = await self._ensure_started()
        assert proc.stdin and proc.stdout
        req_id = str(uuid.uuid4())
        proc.stdin.write(encode_frame({"id": req_id, "op": op, "payload": payload}))
        await proc.stdin.drain()

        events: list[dict] = []
        async for line in proc.stdout:
            frame = decode_frame(line)
            if frame.get("id") != req_id:
                raise ProtocolError(f"response for {frame.get('id')!r}, expected {req_id}")
            if "event" not in frame:
                return events, frame
            events.append(frame)
        raise await self._crashed(proc)

    async def close(self) -> None:
        proc = self.proc
        if proc is None or proc.returncode is not None:
            return
        assert proc.stdin
        proc.stdin.close()
        try:
            await asyncio.wait_for(proc.communicate(), timeout=5)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
