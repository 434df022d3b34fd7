from __future__ import annotations

import json
from typing import Any

from shared.errors import ProtocolError

VERSION = "1.0.0"


def encode_frame(frame: dict) -> bytes:
    return (json.dumps(frame, separators=(",", ":"), ensure_ascii=False) + "\n").encode("utf-8")


def decode_frame(line: bytes | str) -> dict[str, Any]:
    text = line.decode("utf-8") if isinstance(line, (bytes, bytearray)) else line
    try:
        frame = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"invalid frame: {exc}") from exc
    if not isinstance(frame, dict):
        raise ProtocolError("frame must be a JSON object")
    return frame


def ok_response(req_id: str, result: dict[str, Any]) -> dict[str, Any]:
    return {"id": req_id, "ok": True, "result": result}


def error_response(req_id: str, error: str, error_type: str = "error", details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"id": req_id, "ok": False, "error": error, "error_type": error_type, "details": details or {}}
