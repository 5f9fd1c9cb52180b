"""Shared pytest fixtures for Brainrot Generator tests."""

import io
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from brainrot.api.main import create_app
from brainrot.core.config import BrainrotConfig
from brainrot.core.content_store import ContentStore
from brainrot.core.errors import GenerationError
from brainrot.core.quota_store import InMemoryQuotaStore
from brainrot.core.selection import AspectRatio, GenerationSelection, Mood, Outfit
from brainrot.core.usage_ledger import UsageLedger


def make_png_bytes(color: str = "red", size: tuple[int, int] = (8, 8)) -> bytes:
    """Encode a small solid-color PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class StubGenerationClient:
    """Generation client double returning a fixed image or raising a fixed error."""

    def __init__(self, image: Image.Image | None = None, error: GenerationError | None = None):
        self.image = image if image is not None else Image.new("RGB", (8, 8), "blue")
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def generate(self, prompt: str, negative_prompt: str | None = None) -> Image.Image:
        self.calls.append((prompt, negative_prompt))
        if self.error is not None:
            raise self.error
        return self.image


class FailingQuotaStore(InMemoryQuotaStore):
    """In-memory quota store whose writes can be switched to fail."""

    def __init__(self, documents=None):
        super().__init__(documents)
        self.fail_increment = False
        self.fail_set = False
        self.fail_get = False

    async def get(self, user_id):
        if self.fail_get:
            raise ConnectionError("quota store unreachable")
        return await super().get(user_id)

    async def set(self, user_id, fields, *, merge=True):
        if self.fail_set:
            raise ConnectionError("quota store write rejected")
        await super().set(user_id, fields, merge=merge)

    async def increment(self, user_id, field, amount=1, extra=None):
        if self.fail_increment:
            raise ConnectionError("quota store increment rejected")
        await super().increment(user_id, field, amount, extra)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> BrainrotConfig:
    """Create a test configuration rooted in the temporary directory."""
    return BrainrotConfig(
        data_dir=temp_dir / "data",
        generator_endpoint="https://generator.test/run",
        generator_api_key="test-key",
        quota_store_url=None,
        _env_file=None,
    )


@pytest.fixture
def png_bytes() -> bytes:
    return make_png_bytes()


@pytest.fixture
def sample_image() -> Image.Image:
    return Image.new("RGB", (8, 8), "green")


@pytest.fixture
def content_store(test_config: BrainrotConfig) -> ContentStore:
    return ContentStore(test_config.images_dir, test_config.index_path)


@pytest.fixture
def quota_store() -> FailingQuotaStore:
    return FailingQuotaStore()


@pytest.fixture
def stub_client() -> StubGenerationClient:
    return StubGenerationClient()


@pytest.fixture
def shark_barista_selection() -> GenerationSelection:
    """Selection used by the end-to-end scenario."""
    return GenerationSelection(
        keywords=("Shark", "Barista"),
        mood=Mood.CAFE_GOSSIP,
        outfit=Outfit.VINTAGE,
        aspect_ratio=AspectRatio.SQUARE,
        accent_strength=0.8,
    )


@pytest.fixture
def make_stub_client():
    """Factory for :class:`StubGenerationClient` instances."""
    return StubGenerationClient


@pytest.fixture
def make_png():
    """Factory for small solid-color PNG bytes."""
    return make_png_bytes


@pytest.fixture
def test_client(
    test_config: BrainrotConfig,
    stub_client: StubGenerationClient,
    quota_store: FailingQuotaStore,
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the stub generator and in-memory quota store.

    Entering the client runs the application lifespan; leaving it drains
    pending credit settlements.
    """
    app = create_app(test_config, client=stub_client, ledger=UsageLedger(quota_store))
    with TestClient(app) as client:
        yield client
