from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, ClassVar, Union

import backoff
import requests

from shared import logging_utils

_LOG = logging_utils.get_logger("generation")

_TRANSIENT = (requests.ConnectionError, requests.Timeout)


@dataclass(frozen=True)
class Text2Image:
    prompt: str

    kind: ClassVar[str] = "text2image"
    result_field: ClassVar[str] = "imageUrl"

    def body(self) -> dict[str, Any]:
        return {"prompt": self.prompt}


@dataclass(frozen=True)
class Image2Image:
    input_image_url: str
    prompt: str

    kind: ClassVar[str] = "image2image"
    result_field: ClassVar[str] = "imageUrl"

    def body(self) -> dict[str, Any]:
        return {"inputImageUrl": self.input_image_url, "prompt": self.prompt}


@dataclass(frozen=True)
class Text2Video:
    prompt: str
    image_urls: tuple[str, ...] | None = None
    duration: float | None = None

    kind: ClassVar[str] = "text2video"
    result_field: ClassVar[str] = "url"

    def body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"prompt": self.prompt}
        if self.image_urls is not None:
            body["imageUrls"] = list(self.image_urls)
        if self.duration is not None:
            body["duration"] = self.duration
        return body


GenerationRequest = Union[Text2Image, Image2Image, Text2Video]


@dataclass(frozen=True)
class GenerationResult:
    success: bool
    primary_uri: str | None = None
    message: str | None = None


class GenerationClient:
    """Thin client for the generation backend, bound to one access grant.

    Every failure (HTTP status, network, bad JSON) comes back as an
    unsuccessful ``GenerationResult``; nothing is raised to the caller.
    """

    def __init__(self, base_uri: str, token: str, *, timeout: float = 60.0, max_retries: int = 0, retry_factor: float = 0.5):
        self.base_uri = base_uri.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.max_retries = max(0, int(max_retries))
        self.retry_factor = retry_factor

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {self.token}"}

    def _post(self, url: str, body: dict[str, Any]) -> requests.Response:
        def send() -> requests.Response:
            return requests.post(url, json=body, headers=self._headers(), timeout=self.timeout)

        if not self.max_retries:
            return send()
        retrying = backoff.on_exception(
            backoff.expo,
            _TRANSIENT,
            max_tries=self.max_retries + 1,
            factor=self.retry_factor,
            logger=_LOG,
        )
        return retrying(send)()

    def _generate_sync(self, request: GenerationRequest) -> GenerationResult:
        url = f"{self.base_uri}/api/generate/{request.kind}"
        try:
            resp = self._post(url, request.body())
            if not resp.ok:
                logging_utils.warning(_LOG, "generation request rejected", kind=request.kind, status=resp.status_code)
                return GenerationResult(False, message=f"HTTP error! status: {resp.status_code}")
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logging_utils.error(_LOG, "generation request failed", kind=request.kind, error=str(exc))
            return GenerationResult(False, message=str(exc))

        primary = data.get(request.result_field) if isinstance(data, dict) else None
        return GenerationResult(True, primary_uri=primary or None)

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        return await asyncio.to_thread(self._generate_sync, request)

    async def generate_text2image(self, prompt: str) -> GenerationResult:
        return await self.generate(Text2Image(prompt))

    async def generate_image2image(self, input_image_url: str, prompt: str) -> GenerationResult:
        return await self.generate(Image2Image(input_image_url, prompt))

    async def generate_text2video(self, prompt: str, image_urls: list[str] | None = None, duration: float | None = None) -> GenerationResult:
        urls = tuple(image_urls) if image_urls is not None else None
        return await self.generate(Text2Video(prompt, urls, duration))
