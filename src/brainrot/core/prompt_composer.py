"""Prompt composition for the Brainrot Generator.

Turns a structured :class:`~brainrot.core.selection.GenerationSelection` into
the positive and negative prompt strings sent to the remote generator, plus
the title and summary shown next to the result.

Prompt Structure
----------------
::

    [Fused character phrase] fused into one surreal Italian brainrot creature,
    [gender phrase], [mood phrase], wearing [outfit phrase],
    with [accent descriptor] Italian flair, [style boilerplate],
    composed for a [aspect] aspect ratio.

The composer is pure: no I/O, no state, and identical selections always
produce identical output.  The negative prompt is a fixed constant.

Usage
-----
::

    composed = PromptComposer().compose(
        GenerationSelection(keywords=("Shark", "Barista"), accent_strength=0.8)
    )
"""

from __future__ import annotations

from string import capwords

from .selection import (
    AspectRatio,
    ComposedPrompt,
    Gender,
    GenerationSelection,
    Mood,
    Outfit,
)

# ---------------------------------------------------------------------------
# Fixed text.
# ---------------------------------------------------------------------------

DEFAULT_CHARACTER = "Tralalero Tralala"
DEFAULT_TITLE = "Brainrot Original"

NEGATIVE_PROMPT = (
    "blurry, low quality, low resolution, distorted anatomy, extra limbs, "
    "deformed hands, watermark, signature, text, logo, cropped, duplicate, "
    "jpeg artifacts, nsfw"
)

_STYLE_BOILERPLATE = (
    "glossy 3D cartoon render, exaggerated proportions, bold saturated colors, "
    "dramatic studio lighting, absurd internet meme energy, highly detailed"
)

_GENDER_PHRASES: dict[Gender, str] = {
    Gender.MALE: "with a distinctly masculine swagger",
    Gender.FEMALE: "with a distinctly feminine elegance",
    Gender.MIXED: "with a playful mix of masculine and feminine traits",
    Gender.CHAOS: "with completely unhinged, genre-defying chaos energy",
}

_MOOD_PHRASES: dict[Mood, str] = {
    Mood.ROMANTIC: "in a dreamy romantic scene at sunset by the Amalfi coast",
    Mood.MAFIA_DRAMA: "in a tense mafia drama scene inside a smoky Sicilian back room",
    Mood.CAFE_GOSSIP: "in a cafe gossip scene sipping espresso at a tiny Roman sidewalk table",
    Mood.TIKTOK_ROT: "in a frantic TikTok-rot scene with ring lights and viral dance poses",
}

_OUTFIT_PHRASES: dict[Outfit, str] = {
    Outfit.VINTAGE: "a vintage 1950s Italian tailored suit",
    Outfit.MODERN: "a modern Milan streetwear outfit",
    Outfit.MEME_CORE: "a ridiculous meme-core costume",
}


def fuse_keywords(keywords) -> str:
    """Join keywords into the fused-character phrase.

    ``["A"]`` -> ``"A"``, ``["A", "B"]`` -> ``"A and B"``,
    ``["A", "B", "C"]`` -> ``"A, B, and C"``.  An empty list (after trimming)
    falls back to :data:`DEFAULT_CHARACTER`.
    """
    cleaned = [keyword.strip() for keyword in keywords if keyword.strip()]
    if not cleaned:
        return DEFAULT_CHARACTER
    if len(cleaned) == 1:
        return cleaned[0]
    if len(cleaned) == 2:
        return f"{cleaned[0]} and {cleaned[1]}"
    return f"{', '.join(cleaned[:-1])}, and {cleaned[-1]}"


def accent_descriptor(strength: float) -> str:
    """Map accent strength to its descriptor.

    ``< 0.3`` is mild, ``[0.3, 0.7)`` is balanced, ``>= 0.7`` is over the top.
    """
    if strength < 0.3:
        return "mild"
    if strength < 0.7:
        return "balanced"
    return "over the top"


def display_title(keywords) -> str:
    """Comma-joined, title-cased keyword list, or the default title."""
    cleaned = [keyword.strip() for keyword in keywords if keyword.strip()]
    if not cleaned:
        return DEFAULT_TITLE
    return ", ".join(capwords(keyword) for keyword in cleaned)


def summary_text(mood: Mood, outfit: Outfit, aspect_ratio: AspectRatio) -> str:
    return f"{mood.value} mood · {outfit.value} outfit · {aspect_ratio.value}"


class PromptComposer:
    """Render a :class:`GenerationSelection` into a :class:`ComposedPrompt`."""

    negative_prompt = NEGATIVE_PROMPT

    def compose(self, selection: GenerationSelection) -> ComposedPrompt:
        """Compose the full prompt for ``selection``.

        Args:
            selection: The user's structured choices.

        Returns:
            The positive/negative prompt pair with display title and summary.
        """
        fused = fuse_keywords(selection.keywords)
        accent = accent_descriptor(selection.accent_strength)

        parts = [
            f"{fused} fused into one surreal Italian brainrot creature",
            _GENDER_PHRASES[selection.gender],
            _MOOD_PHRASES[selection.mood],
            f"wearing {_OUTFIT_PHRASES[selection.outfit]}",
            f"with {accent} Italian accent flair",
            _STYLE_BOILERPLATE,
            f"composed for a {selection.aspect_ratio.value} aspect ratio",
        ]

        return ComposedPrompt(
            positive_text=", ".join(parts) + ".",
            negative_text=self.negative_prompt,
            display_title=display_title(selection.keywords),
            summary_text=summary_text(selection.mood, selection.outfit, selection.aspect_ratio),
            keywords=selection.keywords,
        )
