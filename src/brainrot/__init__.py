"""Brainrot Generator - keyword mashups rendered by a remote image generator."""

__version__ = "0.1.0"

from brainrot.core.orchestrator import GenerationOrchestrator
from brainrot.core.prompt_composer import PromptComposer
from brainrot.core.selection import GenerationSelection

__all__ = [
    "GenerationOrchestrator",
    "GenerationSelection",
    "PromptComposer",
]
