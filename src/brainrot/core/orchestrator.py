"""Generation lifecycle coordination.

One call to :meth:`GenerationOrchestrator.run` drives a single attempt
through::

    IDLE -> REQUESTED -> GENERATING -> PERSISTING -> CREDIT_SETTLING -> DONE

Any failure returns the attempt to ``IDLE`` with the originating error and the
stage it failed in.  Nothing is persisted and no credit is consumed unless the
remote generation succeeded, and no credit is consumed unless the image was
saved.  Credit settlement runs as a background task: the caller gets the
saved image right away, and a settlement failure is reported as a secondary
error on the attempt without touching the saved image.

The orchestrator does not serialize concurrent attempts; callers are expected
to run one attempt at a time per session.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from .content_store import ContentStore, GeneratedImage
from .errors import BrainrotError, MissingKeywordsError, QuotaExceededError
from .generation_client import GenerationClient
from .prompt_composer import PromptComposer
from .selection import ComposedPrompt, GenerationSelection
from .usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


class GenerationStage(str, Enum):
    IDLE = "idle"
    REQUESTED = "requested"
    GENERATING = "generating"
    PERSISTING = "persisting"
    CREDIT_SETTLING = "credit_settling"
    DONE = "done"


@dataclass
class GenerationAttempt:
    """State of one generation attempt.

    Attributes:
        selection: The user's input.
        stage: Current stage; ``IDLE`` after a failure.
        history: Every stage entered, in order.
        prompt: The composed prompt, once composed.
        image: The saved image when the attempt is ``DONE``.
        error: The error that sent the attempt back to ``IDLE``.
        failed_stage: Stage in which ``error`` occurred.
        credit_error: Secondary error from credit settlement, if any.
    """

    selection: GenerationSelection
    stage: GenerationStage = GenerationStage.IDLE
    history: list[GenerationStage] = field(default_factory=list)
    prompt: ComposedPrompt | None = None
    image: GeneratedImage | None = None
    error: BrainrotError | None = None
    failed_stage: GenerationStage | None = None
    credit_error: BrainrotError | None = None
    credit_task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.stage is GenerationStage.DONE

    async def wait_for_credit(self) -> BrainrotError | None:
        """Wait for background credit settlement and return its error, if any."""
        if self.credit_task is not None:
            await self.credit_task
        return self.credit_error


class GenerationOrchestrator:
    """Coordinate composer, client, content store, and usage ledger.

    Args:
        client: Remote generator client.
        store: Gallery store receiving successful results.
        ledger: Usage ledger gating and charging generations.
        composer: Prompt composer; a default one is created when omitted.
        on_stage_change: Optional callback receiving the attempt after every
            stage transition.
    """

    def __init__(
        self,
        client: GenerationClient,
        store: ContentStore,
        ledger: UsageLedger,
        composer: PromptComposer | None = None,
        on_stage_change: Callable[[GenerationAttempt], None] | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.ledger = ledger
        self.composer = composer or PromptComposer()
        self.on_stage_change = on_stage_change
        self._settlements: set[asyncio.Task] = set()

    def _enter(self, attempt: GenerationAttempt, stage: GenerationStage) -> None:
        attempt.stage = stage
        attempt.history.append(stage)
        if self.on_stage_change is not None:
            self.on_stage_change(attempt)

    def _fail(self, attempt: GenerationAttempt, error: BrainrotError) -> GenerationAttempt:
        attempt.failed_stage = attempt.stage
        attempt.error = error
        logger.warning(f"Generation failed during {attempt.failed_stage.value}: {error}")
        self._enter(attempt, GenerationStage.IDLE)
        return attempt

    async def run(self, selection: GenerationSelection) -> GenerationAttempt:
        """Run one generation attempt.

        Domain failures are returned on the attempt (``stage`` is ``IDLE`` and
        ``error`` is set) rather than raised.  Cancellation propagates.
        """
        attempt = GenerationAttempt(selection=selection)
        self._enter(attempt, GenerationStage.REQUESTED)

        if not selection.has_keywords:
            return self._fail(attempt, MissingKeywordsError("No keywords supplied"))
        # The UI gates on this too, but quota may have changed since.
        if not self.ledger.can_generate:
            quota = self.ledger.quota
            return self._fail(
                attempt, QuotaExceededError(f"Quota exhausted ({quota.used}/{quota.total})")
            )

        attempt.prompt = self.composer.compose(selection)

        self._enter(attempt, GenerationStage.GENERATING)
        try:
            image = await self.client.generate(
                attempt.prompt.positive_text, attempt.prompt.negative_text
            )
        except BrainrotError as e:
            return self._fail(attempt, e)

        self._enter(attempt, GenerationStage.PERSISTING)
        try:
            attempt.image = self.store.save_generation(
                image, attempt.prompt.display_title, attempt.prompt.summary_text
            )
        except BrainrotError as e:
            return self._fail(attempt, e)

        self._enter(attempt, GenerationStage.CREDIT_SETTLING)
        task = asyncio.get_running_loop().create_task(self._settle_credit(attempt))
        self._settlements.add(task)
        task.add_done_callback(self._settlements.discard)
        attempt.credit_task = task

        self._enter(attempt, GenerationStage.DONE)
        logger.info(f"Generation done: {attempt.image.id} ({attempt.prompt.display_title})")
        return attempt

    async def generate(self, selection: GenerationSelection) -> GeneratedImage:
        """Run an attempt and return the saved image, raising its error on failure."""
        attempt = await self.run(selection)
        if attempt.error is not None:
            raise attempt.error
        return attempt.image

    async def drain(self) -> None:
        """Wait for every pending credit settlement."""
        if self._settlements:
            await asyncio.gather(*list(self._settlements))

    async def _settle_credit(self, attempt: GenerationAttempt) -> None:
        try:
            await self.ledger.consume_credit_if_available()
        except BrainrotError as e:
            attempt.credit_error = e
            logger.error(f"Credit settlement failed for {attempt.image.id}: {e}")
