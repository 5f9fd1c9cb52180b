"""Brainrot Generator — FastAPI Application.

This module is the application boundary: it builds every collaborator once
(generation client, content store, usage ledger, orchestrator) from
:class:`~brainrot.core.config.BrainrotConfig` and exposes them through a small
REST API.

Endpoints
---------
========  ================================  ====================================
Method    Path                              Purpose
========  ================================  ====================================
POST      ``/api/prompt/compose``           Preview the composed prompt
POST      ``/api/generate``                 Run one generation attempt
GET       ``/api/gallery``                  Paginated gallery listing
GET       ``/api/gallery/{id}``             Single gallery entry
GET       ``/api/gallery/{id}/image``       PNG bytes of an entry
POST      ``/api/gallery/{id}/favorite``    Toggle favorite status
DELETE    ``/api/gallery/{id}``             Delete image and gallery entry
GET       ``/api/usage``                    Current quota
POST      ``/api/usage/configure``          Configure the ledger for a user
POST      ``/api/usage/subscription``       Apply a purchased plan
POST      ``/api/usage/reset``              Reset to the free tier
========  ================================  ====================================

Usage
-----
CLI (installed entry point)::

    brainrot

Direct invocation::

    python -m brainrot.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse

from brainrot import __version__
from brainrot.api.gallery_view import (
    filter_gallery_entries,
    gallery_entry,
    paginate_gallery_entries,
)
from brainrot.api.models import (
    ConfigureRequest,
    SelectionRequest,
    SubscriptionRequest,
    UsageResponse,
)
from brainrot.core.config import BrainrotConfig, config
from brainrot.core.content_store import ContentStore, GeneratedImage
from brainrot.core.errors import (
    BrainrotError,
    GenerationError,
    LedgerNotConfiguredError,
    LedgerSyncError,
    MissingKeywordsError,
    QuotaExceededError,
    StorageError,
)
from brainrot.core.generation_client import GenerationClient
from brainrot.core.orchestrator import GenerationOrchestrator
from brainrot.core.prompt_composer import PromptComposer
from brainrot.core.quota_store import HttpQuotaStore, QuotaStoreBase
from brainrot.core.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match decides the status.
_ERROR_STATUS: list[tuple[type[BrainrotError], int]] = [
    (MissingKeywordsError, 400),
    (QuotaExceededError, 402),
    (LedgerNotConfiguredError, 409),
    (GenerationError, 502),
    (LedgerSyncError, 503),
    (StorageError, 500),
]


def status_for(error: BrainrotError) -> int:
    """Map a domain error to its HTTP status code."""
    return next((status for kind, status in _ERROR_STATUS if isinstance(error, kind)), 500)


# ---------------------------------------------------------------------------
# Application lifecycle: collaborator setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build collaborators on startup and release them on shutdown.

    Collaborators already placed on ``app.state`` (tests inject stubs this
    way) are kept; everything else is built from ``app.state.settings``.
    """
    settings: BrainrotConfig = app.state.settings
    state = app.state
    http_client = httpx.AsyncClient(timeout=settings.request_timeout)

    if getattr(state, "client", None) is None:
        state.client = GenerationClient(
            settings.generator_endpoint,
            settings.generator_api_key,
            timeout=settings.request_timeout,
            http_client=http_client,
        )
    if getattr(state, "store", None) is None:
        state.store = ContentStore(settings.images_dir, settings.index_path)
    if getattr(state, "ledger", None) is None:
        quota_store: QuotaStoreBase | None = None
        if settings.quota_store_url:
            quota_store = HttpQuotaStore(
                settings.quota_store_url,
                token=settings.quota_store_token,
                poll_interval=settings.quota_poll_interval,
                http_client=http_client,
            )
        state.ledger = UsageLedger(quota_store, free_tier_credits=settings.free_tier_credits)

    state.composer = PromptComposer()
    state.orchestrator = GenerationOrchestrator(
        state.client, state.store, state.ledger, composer=state.composer
    )
    logger.info("Brainrot Generator collaborators initialised.")

    yield

    await state.orchestrator.drain()
    state.ledger.close()
    await http_client.aclose()
    logger.info("Brainrot Generator shut down.")


async def handle_brainrot_error(request: Request, exc: BrainrotError) -> JSONResponse:
    return JSONResponse(
        status_code=status_for(exc),
        content={
            "detail": exc.user_message,
            "error": type(exc).__name__,
            "message": str(exc),
        },
    )


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/api")


def _find_image(request: Request, image_id: str) -> GeneratedImage:
    image = request.app.state.store.get(image_id)
    if image is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return image


def _usage(request: Request) -> UsageResponse:
    ledger: UsageLedger = request.app.state.ledger
    return UsageResponse.from_quota(
        ledger.quota,
        user_id=ledger.user_id,
        state=ledger.state.value,
        last_error=str(ledger.last_error) if ledger.last_error else None,
    )


@router.post("/prompt/compose")
async def compose_prompt(req: SelectionRequest, request: Request) -> dict:
    """Preview the composed prompt without generating an image."""
    composed = request.app.state.composer.compose(req.to_selection())
    return {
        "positive_prompt": composed.positive_text,
        "negative_prompt": composed.negative_text,
        "title": composed.display_title,
        "summary": composed.summary_text,
    }


@router.post("/generate")
async def generate_image(req: SelectionRequest, request: Request) -> dict:
    """Run one generation attempt.

    Credit settlement continues in the background after the response; its
    outcome is visible through ``GET /api/usage``.

    Raises:
        BrainrotError: Mapped to a status code by :func:`status_for`.
    """
    orchestrator: GenerationOrchestrator = request.app.state.orchestrator
    attempt = await orchestrator.run(req.to_selection())
    if attempt.error is not None:
        raise attempt.error

    return {
        "success": True,
        "stage": attempt.stage.value,
        "image": gallery_entry(request.app.state.store, attempt.image),
        "prompt": attempt.prompt.positive_text,
    }


@router.get("/gallery")
async def get_gallery(
    request: Request,
    page: int = 1,
    per_page: int = 20,
    favorites_only: bool = False,
) -> dict:
    """Return a paginated listing of gallery images, newest first."""
    store: ContentStore = request.app.state.store
    entries = [gallery_entry(store, image) for image in store.gallery]
    entries = filter_gallery_entries(entries, favorites_only=favorites_only)
    return paginate_gallery_entries(entries, page, max(per_page, 1))


@router.get("/gallery/{image_id}")
async def get_image(image_id: str, request: Request) -> dict:
    return gallery_entry(request.app.state.store, _find_image(request, image_id))


@router.get("/gallery/{image_id}/image")
async def get_image_file(image_id: str, request: Request) -> FileResponse:
    image = _find_image(request, image_id)
    return FileResponse(request.app.state.store.image_path(image), media_type="image/png")


@router.post("/gallery/{image_id}/favorite")
async def toggle_favorite(image_id: str, request: Request) -> dict:
    image = _find_image(request, image_id)
    is_favorite = request.app.state.store.toggle_favorite(image)
    return {"success": True, "id": image_id, "is_favorite": is_favorite}


@router.delete("/gallery/{image_id}")
async def delete_image(image_id: str, request: Request) -> dict:
    image = _find_image(request, image_id)
    request.app.state.store.delete(image)
    return {"success": True, "deleted": image_id}


@router.get("/usage")
async def get_usage(request: Request) -> UsageResponse:
    return _usage(request)


@router.post("/usage/configure")
async def configure_usage(req: ConfigureRequest, request: Request) -> UsageResponse:
    await request.app.state.ledger.configure(req.user_id)
    return _usage(request)


@router.post("/usage/subscription")
async def apply_subscription(req: SubscriptionRequest, request: Request) -> UsageResponse:
    """Apply a completed plan purchase to the ledger."""
    try:
        plan = req.resolve_plan()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await request.app.state.ledger.apply_subscription(plan)
    return _usage(request)


@router.post("/usage/reset")
async def reset_usage(request: Request) -> UsageResponse:
    await request.app.state.ledger.reset_to_free_tier()
    return _usage(request)


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    settings: BrainrotConfig | None = None,
    *,
    client: GenerationClient | None = None,
    store: ContentStore | None = None,
    ledger: UsageLedger | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration; defaults to the global ``config``.
        client: Optional pre-built generation client.
        store: Optional pre-built content store.
        ledger: Optional pre-built usage ledger.
    """
    application = FastAPI(
        title="Brainrot Generator",
        description="Keyword mashups rendered by a remote image generator.",
        version=__version__,
        lifespan=lifespan,
    )
    application.state.settings = settings or config
    application.state.client = client
    application.state.store = store
    application.state.ledger = ledger
    application.add_exception_handler(BrainrotError, handle_brainrot_error)
    application.include_router(router)
    return application


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Host, port and log level come from ``BRAINROT_SERVER_HOST``,
    ``BRAINROT_SERVER_PORT`` and ``BRAINROT_LOG_LEVEL``.  Registered as the
    ``brainrot`` console script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "brainrot.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
