from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass

import requests

from shared import logging_utils
from shared.config import INLINE_LIMIT_BYTES
from shared.errors import MaterializationError

_LOG = logging_utils.get_logger("materialize")

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class MaterializedContent:
    uri: str
    mime_type: str
    inline: str | None = None

    @property
    def is_inline(self) -> bool:
        return self.inline is not None


class ContentMaterializer:
    """Decides whether a generated artifact travels inline or as a URI.

    Artifacts strictly smaller than ``limit_bytes`` are downloaded and
    base64-encoded; anything at or above the limit is returned by reference.
    The download stops as soon as the limit is reached.
    """

    def __init__(self, *, limit_bytes: int = INLINE_LIMIT_BYTES, timeout: float = 60.0):
        self.limit_bytes = limit_bytes
        self.timeout = timeout

    def _fetch(self, uri: str) -> bytes | None:
        buf = bytearray()
        try:
            with requests.get(uri, stream=True, timeout=self.timeout) as resp:
                resp.raise_for_status()
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    buf.extend(chunk)
                    if len(buf) >= self.limit_bytes:
                        return None
        except requests.RequestException as exc:
            logging_utils.error(_LOG, "artifact download failed", uri=uri, error=str(exc))
            raise MaterializationError(uri, str(exc)) from exc
        return bytes(buf)

    def materialize_sync(self, uri: str, mime_type: str) -> MaterializedContent:
        data = self._fetch(uri)
        if data is None:
            logging_utils.info(_LOG, "artifact too large for inline delivery", uri=uri, limit=self.limit_bytes)
            return MaterializedContent(uri=uri, mime_type=mime_type)
        return MaterializedContent(uri=uri, mime_type=mime_type, inline=base64.b64encode(data).decode("ascii"))

    async def materialize(self, uri: str, mime_type: str) -> MaterializedContent:
        return await asyncio.to_thread(self.materialize_sync, uri, mime_type)
