"""Tests for brainrot.core.selection — generation inputs."""

from __future__ import annotations

import dataclasses

import pytest

from brainrot.core.selection import (
    AspectRatio,
    GenerationSelection,
    Mood,
    Outfit,
    normalize_keywords,
    parse_keywords,
)


class TestKeywordNormalization:
    def test_trims_and_drops_empty(self):
        assert normalize_keywords([" Shark ", "", "  "]) == ("Shark",)

    def test_dedupes_case_sensitively_keeping_first(self):
        assert normalize_keywords(["Shark", "shark", "Shark"]) == ("Shark", "shark")

    def test_parse_splits_on_commas_and_whitespace(self):
        assert parse_keywords("shark, barista  cat,,dog") == ("shark", "barista", "cat", "dog")

    def test_parse_empty_input(self):
        assert parse_keywords("  , ") == ()


class TestGenerationSelection:
    def test_defaults(self):
        selection = GenerationSelection()
        assert selection.keywords == ()
        assert selection.mood is Mood.ROMANTIC
        assert selection.outfit is Outfit.VINTAGE
        assert selection.aspect_ratio is AspectRatio.SQUARE
        assert selection.has_keywords is False

    def test_keywords_normalized_on_construction(self):
        selection = GenerationSelection(keywords=[" Shark", "Shark", "Barista "])
        assert selection.keywords == ("Shark", "Barista")

    def test_accepts_option_values(self):
        selection = GenerationSelection(mood="Cafe Gossip", aspect_ratio="16:9")
        assert selection.mood is Mood.CAFE_GOSSIP
        assert selection.aspect_ratio is AspectRatio.SIXTEEN_NINE

    def test_unknown_option_raises(self):
        with pytest.raises(ValueError):
            GenerationSelection(outfit="Pajamas")

    @pytest.mark.parametrize("strength", [-0.01, 1.01])
    def test_accent_strength_out_of_range_raises(self, strength):
        with pytest.raises(ValueError):
            GenerationSelection(accent_strength=strength)

    def test_is_immutable(self):
        selection = GenerationSelection(keywords=("Shark",))
        with pytest.raises(dataclasses.FrozenInstanceError):
            selection.keywords = ("Cat",)
