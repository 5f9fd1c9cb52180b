"""Core generation lifecycle for Brainrot Generator.

Components, leaf-first:

- **PromptComposer** (prompt_composer.py): pure selection -> prompt rendering
- **GenerationClient** (generation_client.py): one HTTP call to the remote
  generator, tolerant of several response shapes
- **ContentStore** (content_store.py): JSON index + PNG files for the gallery,
  favorites, and last-generated pointer
- **UsageLedger** (usage_ledger.py): per-user quota synced with a remote
  document store (quota_store.py)
- **GenerationOrchestrator** (orchestrator.py): runs one attempt through
  generate -> persist -> settle credit

Each component is constructed once at the application boundary and passed to
the orchestrator explicitly.
"""

from brainrot.core.config import BrainrotConfig, config
from brainrot.core.content_store import ContentStore, GeneratedImage
from brainrot.core.generation_client import GenerationClient
from brainrot.core.orchestrator import GenerationAttempt, GenerationOrchestrator, GenerationStage
from brainrot.core.prompt_composer import PromptComposer
from brainrot.core.quota_store import HttpQuotaStore, InMemoryQuotaStore, QuotaStoreBase
from brainrot.core.selection import (
    AspectRatio,
    ComposedPrompt,
    Gender,
    GenerationSelection,
    Mood,
    Outfit,
)
from brainrot.core.subscription import SubscriptionPlan
from brainrot.core.usage_ledger import LedgerState, UsageLedger, UsageQuota

__all__ = [
    "AspectRatio",
    "BrainrotConfig",
    "ComposedPrompt",
    "ContentStore",
    "Gender",
    "GeneratedImage",
    "GenerationAttempt",
    "GenerationClient",
    "GenerationOrchestrator",
    "GenerationSelection",
    "GenerationStage",
    "HttpQuotaStore",
    "InMemoryQuotaStore",
    "LedgerState",
    "Mood",
    "Outfit",
    "PromptComposer",
    "QuotaStoreBase",
    "SubscriptionPlan",
    "UsageLedger",
    "UsageQuota",
    "config",
]
