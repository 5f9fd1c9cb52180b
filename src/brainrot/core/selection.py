"""Structured generation inputs and the derived prompt value objects."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class Gender(str, Enum):
    """Gender / vibe of the fused character."""

    MALE = "Male"
    FEMALE = "Female"
    MIXED = "Mixed"
    CHAOS = "Chaos"


class Mood(str, Enum):
    """Scene mood."""

    ROMANTIC = "Romantic"
    MAFIA_DRAMA = "Mafia Drama"
    CAFE_GOSSIP = "Cafe Gossip"
    TIKTOK_ROT = "Tiktok-Rot"


class Outfit(str, Enum):
    """Outfit style."""

    VINTAGE = "Vintage"
    MODERN = "Modern"
    MEME_CORE = "Meme-Core"


class AspectRatio(str, Enum):
    """Fixed aspect ratio labels offered to the user."""

    SQUARE = "1:1"
    FOUR_THREE = "4:3"
    TWO_THREE = "2:3"
    THREE_TWO = "3:2"
    SIXTEEN_NINE = "16:9"


def normalize_keywords(keywords) -> tuple[str, ...]:
    """Trim, drop empty entries, and dedupe case-sensitively keeping first occurrence."""
    normalized: list[str] = []
    for keyword in keywords:
        cleaned = str(keyword).strip()
        if cleaned and cleaned not in normalized:
            normalized.append(cleaned)
    return tuple(normalized)


def parse_keywords(text: str) -> tuple[str, ...]:
    """Split free-text input into keywords.

    Commas and any whitespace separate keywords, mirroring the keyword input
    box: ``"shark, barista  cat"`` becomes ``("shark", "barista", "cat")``.
    """
    return normalize_keywords(re.split(r"[,\s]+", text))


@dataclass(frozen=True)
class GenerationSelection:
    """Everything the user picked before pressing generate.

    Keywords are normalized on construction (trimmed, empties dropped,
    case-sensitive dedupe).  ``accent_strength`` must lie in ``[0, 1]``.
    """

    keywords: tuple[str, ...] = ()
    gender: Gender = Gender.MALE
    mood: Mood = Mood.ROMANTIC
    accent_strength: float = 0.45
    outfit: Outfit = Outfit.VINTAGE
    aspect_ratio: AspectRatio = AspectRatio.SQUARE

    def __post_init__(self):
        # Frozen dataclass: normalized values are written through object.__setattr__
        object.__setattr__(self, "keywords", normalize_keywords(self.keywords))
        object.__setattr__(self, "gender", Gender(self.gender))
        object.__setattr__(self, "mood", Mood(self.mood))
        object.__setattr__(self, "outfit", Outfit(self.outfit))
        object.__setattr__(self, "aspect_ratio", AspectRatio(self.aspect_ratio))

        strength = float(self.accent_strength)
        if not 0.0 <= strength <= 1.0:
            raise ValueError(f"Accent strength must be 0-1, got {strength}")
        object.__setattr__(self, "accent_strength", strength)

    @property
    def has_keywords(self) -> bool:
        return bool(self.keywords)


@dataclass(frozen=True)
class ComposedPrompt:
    """Deterministic text rendering of a :class:`GenerationSelection`."""

    positive_text: str
    negative_text: str
    display_title: str
    summary_text: str
    keywords: tuple[str, ...] = field(default=())
