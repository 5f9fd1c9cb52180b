"""HTTP client for the remote image generator.

One call to :meth:`GenerationClient.generate` performs exactly one generation
attempt: a ``POST`` of ``{"prompt", "negative_prompt"?}`` to the configured
endpoint, followed (when the response points at a URL) by a ``GET`` of the
image bytes.  There is no retry here; callers decide whether to try again.

Response Shapes
---------------
Generators wrap their result differently.  The client probes the JSON body
with an ordered list of extractor functions and the first match wins:

1. ``images[0].url``
2. ``image.url``
3. ``output[0]`` as a direct URL string, ``output[0].url`` or
   ``output[0].image.url``
4. the same three locations nested under a ``response`` wrapper
5. no URL anywhere: the same locations again, looking for a base64 payload
   (``base64`` preferred over ``data``)

Each extractor is a small function returning ``None`` when its location does
not match, so the priority order lives in one list (:data:`URL_EXTRACTORS`
and :data:`BASE64_EXTRACTORS`) and every shape can be tested in isolation.
"""

from __future__ import annotations

import base64
import binascii
import io
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx
from PIL import Image

from .errors import (
    DownloadFailedError,
    InvalidImageDataError,
    RequestError,
    ResponseShapeError,
    ServerError,
)

logger = logging.getLogger(__name__)

NO_RESPONSE_BODY = "<no response body>"

Extractor = Callable[[dict], "str | None"]


# ---------------------------------------------------------------------------
# Response probing.
# ---------------------------------------------------------------------------


def _first(value: Any) -> Any:
    """Return the first element of a non-empty list, else ``None``."""
    if isinstance(value, list) and value:
        return value[0]
    return None


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _string(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _url_of(node: Any) -> str | None:
    return _string(_as_dict(node).get("url"))


def _base64_of(node: Any) -> str | None:
    node = _as_dict(node)
    return _string(node.get("base64")) or _string(node.get("data"))


def _output_url(payload: dict) -> str | None:
    entry = _first(payload.get("output"))
    if isinstance(entry, str):
        return _string(entry)
    return _url_of(entry) or _url_of(_as_dict(entry).get("image"))


def _output_base64(payload: dict) -> str | None:
    entry = _as_dict(_first(payload.get("output")))
    return _base64_of(entry) or _base64_of(entry.get("image"))


def _nested(extractor: Extractor) -> Extractor:
    """Apply ``extractor`` to the ``response`` wrapper instead of the top level."""

    def extract(payload: dict) -> str | None:
        return extractor(_as_dict(payload.get("response")))

    extract.__name__ = f"response_{extractor.__name__}"
    return extract


def images_url(payload: dict) -> str | None:
    return _url_of(_first(payload.get("images")))


def image_url(payload: dict) -> str | None:
    return _url_of(payload.get("image"))


def output_url(payload: dict) -> str | None:
    return _output_url(payload)


def images_base64(payload: dict) -> str | None:
    return _base64_of(_first(payload.get("images")))


def image_base64(payload: dict) -> str | None:
    return _base64_of(payload.get("image"))


def output_base64(payload: dict) -> str | None:
    return _output_base64(payload)


URL_EXTRACTORS: list[Extractor] = [
    images_url,
    image_url,
    output_url,
    _nested(images_url),
    _nested(image_url),
    _nested(output_url),
]

BASE64_EXTRACTORS: list[Extractor] = [
    images_base64,
    image_base64,
    output_base64,
    _nested(images_base64),
    _nested(image_base64),
    _nested(output_base64),
]


@dataclass(frozen=True)
class ImageReference:
    """Where the generated image lives: a URL to fetch or an inline base64 payload."""

    kind: str  # "url" or "base64"
    value: str
    source: str


def find_image_reference(payload: Any) -> ImageReference | None:
    """Probe ``payload`` for an image reference, URLs first, then base64."""
    if not isinstance(payload, dict):
        return None

    for kind, extractors in (("url", URL_EXTRACTORS), ("base64", BASE64_EXTRACTORS)):
        for extractor in extractors:
            value = extractor(payload)
            if value is not None:
                logger.debug(f"Image {kind} found via {extractor.__name__}")
                return ImageReference(kind=kind, value=value, source=extractor.__name__)
    return None


# ---------------------------------------------------------------------------
# Image decoding.
# ---------------------------------------------------------------------------


def decode_image(data: bytes) -> Image.Image:
    """Decode raw bytes into a fully loaded PIL image.

    Raises:
        ValueError: If the bytes are not a decodable image.
    """
    if not data:
        raise ValueError("empty image data")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, Image.DecompressionBombError) as e:
        raise ValueError(f"undecodable image data: {e}") from e
    return image


def decode_base64(value: str) -> bytes:
    """Decode a base64 payload, accepting an optional ``data:`` URI prefix."""
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    return base64.b64decode(value, validate=True)


def authorization_header_value(api_key: str) -> str:
    """Build the ``Authorization`` header for a raw API key.

    Keys that already carry a ``Key``, ``Basic``, or ``Bearer`` scheme are sent
    as-is; bare keys get the ``Key`` scheme, including keys containing a colon.
    """
    trimmed = api_key.strip()
    lowered = trimmed.lower()
    if lowered.startswith(("basic ", "key ", "bearer ")):
        return trimmed
    return f"Key {trimmed}"


# ---------------------------------------------------------------------------
# Client.
# ---------------------------------------------------------------------------


class GenerationClient:
    """Single-attempt client for the remote image generator.

    Args:
        endpoint: URL receiving the generation ``POST``.
        api_key: Raw API key (see :func:`authorization_header_value`).
        timeout: Timeout in seconds for both the generation and download calls.
        http_client: Optional shared ``httpx.AsyncClient``.  When omitted, a
            short-lived client is created per call.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        *,
        timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": authorization_header_value(api_key),
        }
        self._http_client = http_client

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._http_client is not None:
                return await self._http_client.request(method, url, timeout=self.timeout, **kwargs)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"Generator request {method} {url} failed: {e!r}")
            raise RequestError(f"Request to {url} failed: {e}") from e

    async def generate(self, prompt: str, negative_prompt: str | None = None) -> Image.Image:
        """Generate one image for ``prompt``.

        Args:
            prompt: Positive prompt text.
            negative_prompt: Optional negative prompt; omitted from the body
                when empty.

        Returns:
            The decoded PIL image.

        Raises:
            RequestError: Transport failure or timeout.
            ServerError: Non-2xx status from the generator.
            ResponseShapeError: 2xx body without any image reference.
            DownloadFailedError: The referenced URL did not yield an image.
            InvalidImageDataError: The inline base64 payload is not an image.
        """
        body: dict[str, str] = {"prompt": prompt}
        if negative_prompt:
            body["negative_prompt"] = negative_prompt

        logger.info(f"Requesting generation from {self.endpoint}")
        response = await self._send("POST", self.endpoint, json=body, headers=self._headers)
        raw_text = response.text

        if not response.is_success:
            raise ServerError(response.status_code, raw_text or NO_RESPONSE_BODY)

        try:
            payload = json.loads(raw_text) if raw_text else None
        except ValueError:
            payload = None

        reference = find_image_reference(payload)
        if reference is None:
            raise ResponseShapeError(raw_text or NO_RESPONSE_BODY)

        if reference.kind == "url":
            return await self.download_image(reference.value)

        try:
            return decode_image(decode_base64(reference.value))
        except (binascii.Error, ValueError) as e:
            raise InvalidImageDataError(f"Inline image payload is invalid: {e}") from e

    async def download_image(self, url: str) -> Image.Image:
        """Fetch ``url`` and decode the bytes as an image.

        Raises:
            RequestError: Transport failure while downloading.
            DownloadFailedError: Non-2xx status or undecodable bytes.
        """
        response = await self._send("GET", url)
        if not response.is_success:
            raise DownloadFailedError(f"Image download returned HTTP {response.status_code}")
        try:
            return decode_image(response.content)
        except ValueError as e:
            raise DownloadFailedError(f"Downloaded bytes are not an image: {e}") from e
