"""Tests for brainrot.core.generation_client — remote generator client.

HTTP traffic is served by ``httpx.MockTransport`` handlers so no network
access occurs.  Tests cover:
- Request body and Authorization header.
- Every response shape, in priority order.
- Error mapping: server, shape, decode, download, and transport failures.
"""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from brainrot.core.errors import (
    DecodeError,
    DownloadFailedError,
    InvalidImageDataError,
    RequestError,
    ResponseShapeError,
    ServerError,
)
from brainrot.core.generation_client import (
    BASE64_EXTRACTORS,
    URL_EXTRACTORS,
    GenerationClient,
    authorization_header_value,
    find_image_reference,
)

ENDPOINT = "https://generator.test/run"
IMAGE_URL = "https://cdn.test/image.png"


def make_client(handler) -> GenerationClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GenerationClient(ENDPOINT, "abc:def", http_client=http_client)


def serving(payload, png: bytes, recorded: list | None = None):
    """Handler answering the POST with ``payload`` and the image GET with ``png``."""

    def handler(request: httpx.Request) -> httpx.Response:
        if recorded is not None:
            recorded.append(request)
        if request.method == "POST":
            if isinstance(payload, (dict, list)):
                return httpx.Response(200, json=payload)
            return httpx.Response(200, text=payload)
        return httpx.Response(200, content=png, headers={"Content-Type": "image/png"})

    return handler


# ---------------------------------------------------------------------------
# Response probing.
# ---------------------------------------------------------------------------


class TestFindImageReference:
    """Test the ordered extractor lists."""

    def test_images_url(self):
        ref = find_image_reference({"images": [{"url": "http://x"}]})
        assert ref.kind == "url"
        assert ref.value == "http://x"

    def test_image_url(self):
        assert find_image_reference({"image": {"url": "http://single"}}).value == "http://single"

    def test_output_direct_string(self):
        assert find_image_reference({"output": ["http://out"]}).value == "http://out"

    def test_output_nested_image_url(self):
        payload = {"output": [{"image": {"url": "http://nested"}}]}
        assert find_image_reference(payload).value == "http://nested"

    def test_response_wrapper(self):
        payload = {"response": {"output": [{"url": "http://wrapped"}]}}
        ref = find_image_reference(payload)
        assert ref.value == "http://wrapped"
        assert ref.source == "response_output_url"

    def test_priority_images_before_image(self):
        payload = {"image": {"url": "http://second"}, "images": [{"url": "http://first"}]}
        assert find_image_reference(payload).value == "http://first"

    def test_url_anywhere_beats_base64_earlier(self):
        """A URL nested under ``response`` wins over a top-level base64 payload."""
        payload = {"images": [{"base64": "AAAA"}], "response": {"image": {"url": "http://u"}}}
        ref = find_image_reference(payload)
        assert ref.kind == "url"
        assert ref.value == "http://u"

    def test_output_nested_base64(self):
        ref = find_image_reference({"output": [{"image": {"base64": "QUJD"}}]})
        assert ref.kind == "base64"
        assert ref.value == "QUJD"

    def test_base64_preferred_over_data(self):
        ref = find_image_reference({"images": [{"data": "DATA", "base64": "B64"}]})
        assert ref.value == "B64"

    def test_data_field_used_when_no_base64(self):
        assert find_image_reference({"image": {"data": "DATA"}}).value == "DATA"

    @pytest.mark.parametrize("payload", [{}, [], None, "text", {"images": []}, {"output": [{}]}])
    def test_no_match(self, payload):
        assert find_image_reference(payload) is None

    def test_extractor_lists_cover_six_locations(self):
        assert len(URL_EXTRACTORS) == 6
        assert len(BASE64_EXTRACTORS) == 6


class TestAuthorizationHeader:
    def test_bare_key_gets_key_scheme(self):
        assert authorization_header_value(" abc:def \n") == "Key abc:def"

    @pytest.mark.parametrize("value", ["Key abc", "key abc", "Basic xyz", "Bearer tok"])
    def test_existing_scheme_is_kept(self, value):
        assert authorization_header_value(value) == value


# ---------------------------------------------------------------------------
# Full generate() calls.
# ---------------------------------------------------------------------------


class TestGenerate:
    @pytest.mark.asyncio
    async def test_request_body_and_headers(self, png_bytes):
        recorded: list[httpx.Request] = []
        client = make_client(serving({"images": [{"url": IMAGE_URL}]}, png_bytes, recorded))

        await client.generate("a prompt", "bad things")

        post = recorded[0]
        assert post.method == "POST"
        assert str(post.url) == ENDPOINT
        assert post.headers["Authorization"] == "Key abc:def"
        assert json.loads(post.content) == {"prompt": "a prompt", "negative_prompt": "bad things"}

    @pytest.mark.asyncio
    async def test_empty_negative_prompt_is_omitted(self, png_bytes):
        recorded: list[httpx.Request] = []
        client = make_client(serving({"images": [{"url": IMAGE_URL}]}, png_bytes, recorded))

        await client.generate("a prompt", "")

        assert json.loads(recorded[0].content) == {"prompt": "a prompt"}

    @pytest.mark.asyncio
    async def test_url_is_downloaded(self, png_bytes):
        recorded: list[httpx.Request] = []
        client = make_client(serving({"images": [{"url": IMAGE_URL}]}, png_bytes, recorded))

        image = await client.generate("prompt")

        assert image.size == (8, 8)
        assert recorded[1].method == "GET"
        assert str(recorded[1].url) == IMAGE_URL

    @pytest.mark.asyncio
    async def test_base64_payload_is_decoded(self, png_bytes):
        encoded = base64.b64encode(png_bytes).decode()
        recorded: list[httpx.Request] = []
        client = make_client(
            serving({"output": [{"image": {"base64": encoded}}]}, b"", recorded)
        )

        image = await client.generate("prompt")

        assert image.size == (8, 8)
        assert len(recorded) == 1  # no download

    @pytest.mark.asyncio
    async def test_data_uri_base64_is_decoded(self, png_bytes):
        encoded = "data:image/png;base64," + base64.b64encode(png_bytes).decode()
        client = make_client(serving({"image": {"data": encoded}}, b""))

        image = await client.generate("prompt")

        assert image.size == (8, 8)

    @pytest.mark.asyncio
    async def test_empty_body_raises_shape_error_with_raw_body(self):
        client = make_client(serving("{}", b""))

        with pytest.raises(ResponseShapeError) as excinfo:
            await client.generate("prompt")

        assert excinfo.value.raw_response == "{}"

    @pytest.mark.asyncio
    async def test_non_json_body_raises_shape_error(self):
        client = make_client(serving("<html>ok</html>", b""))

        with pytest.raises(ResponseShapeError) as excinfo:
            await client.generate("prompt")

        assert excinfo.value.raw_response == "<html>ok</html>"

    @pytest.mark.asyncio
    async def test_server_error_carries_status_and_body(self):
        def handler(request):
            return httpx.Response(401, text="invalid key")

        client = make_client(handler)

        with pytest.raises(ServerError) as excinfo:
            await client.generate("prompt")

        assert excinfo.value.status_code == 401
        assert excinfo.value.message == "invalid key"

    @pytest.mark.asyncio
    async def test_undecodable_download_raises_download_failed(self):
        client = make_client(serving({"images": [{"url": IMAGE_URL}]}, b"not an image"))

        with pytest.raises(DownloadFailedError) as excinfo:
            await client.generate("prompt")

        assert isinstance(excinfo.value, DecodeError)
        assert excinfo.value.reason == "download_failed"

    @pytest.mark.asyncio
    async def test_download_http_error_raises_download_failed(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"image": {"url": IMAGE_URL}})
            return httpx.Response(404)

        client = make_client(handler)

        with pytest.raises(DownloadFailedError):
            await client.generate("prompt")

    @pytest.mark.asyncio
    async def test_invalid_base64_image_raises_invalid_image_data(self):
        encoded = base64.b64encode(b"definitely not a png").decode()
        client = make_client(serving({"images": [{"base64": encoded}]}, b""))

        with pytest.raises(InvalidImageDataError) as excinfo:
            await client.generate("prompt")

        assert excinfo.value.reason == "invalid_image_data"

    @pytest.mark.asyncio
    async def test_malformed_base64_raises_invalid_image_data(self):
        client = make_client(serving({"images": [{"base64": "!!not base64!!"}]}, b""))

        with pytest.raises(InvalidImageDataError):
            await client.generate("prompt")

    @pytest.mark.asyncio
    async def test_transport_failure_raises_request_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = make_client(handler)

        with pytest.raises(RequestError) as excinfo:
            await client.generate("prompt")

        assert isinstance(excinfo.value.__cause__, httpx.ConnectTimeout)
