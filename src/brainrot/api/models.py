"""Pydantic request and response models for the Brainrot Generator API.

Models
------
SelectionRequest
    Payload for ``POST /api/generate`` and ``POST /api/prompt/compose``.
ConfigureRequest
    Payload for ``POST /api/usage/configure``.
SubscriptionRequest
    Payload for ``POST /api/usage/subscription`` (purchase confirmation).
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from brainrot.core.selection import (
    AspectRatio,
    Gender,
    GenerationSelection,
    Mood,
    Outfit,
    parse_keywords,
)
from brainrot.core.subscription import SubscriptionPlan
from brainrot.core.usage_ledger import UsageQuota


class SelectionRequest(BaseModel):
    """Request body describing the user's generation choices.

    Attributes:
        keywords: Keywords to fuse, in the order entered. A single string is
            split on commas and whitespace, like the keyword input box.
        gender: Gender / vibe option.
        mood: Mood option.
        accent_strength: Accent intensity in ``[0, 1]``.
        outfit: Outfit option.
        aspect_ratio: Aspect ratio label.
    """

    keywords: list[str] = Field(
        default_factory=list,
        description="Keywords to fuse (trimmed and deduplicated).",
    )
    gender: Gender = Field(default=Gender.MALE, description="Gender / vibe option.")
    mood: Mood = Field(default=Mood.ROMANTIC, description="Mood option.")
    accent_strength: float = Field(
        default=0.45,
        ge=0.0,
        le=1.0,
        description="Accent intensity between 0 and 1.",
    )
    outfit: Outfit = Field(default=Outfit.VINTAGE, description="Outfit option.")
    aspect_ratio: AspectRatio = Field(default=AspectRatio.SQUARE, description="Aspect ratio label.")

    @field_validator("keywords", mode="before")
    @classmethod
    def _split_free_text(cls, value):
        if isinstance(value, str):
            return list(parse_keywords(value))
        return value

    def to_selection(self) -> GenerationSelection:
        return GenerationSelection(
            keywords=tuple(self.keywords),
            gender=self.gender,
            mood=self.mood,
            accent_strength=self.accent_strength,
            outfit=self.outfit,
            aspect_ratio=self.aspect_ratio,
        )


class ConfigureRequest(BaseModel):
    """Request body for ``POST /api/usage/configure``.

    Attributes:
        user_id: Stable opaque user identifier from the identity provider.
    """

    user_id: str = Field(..., min_length=1, description="Stable user identifier.")


class SubscriptionRequest(BaseModel):
    """Request body for ``POST /api/usage/subscription``.

    Exactly one of ``plan`` or ``product_id`` must be given.
    """

    plan: SubscriptionPlan | None = Field(default=None, description="Plan name.")
    product_id: str | None = Field(default=None, description="Store product identifier.")

    @model_validator(mode="after")
    def _exactly_one(self) -> SubscriptionRequest:
        if (self.plan is None) == (self.product_id is None):
            raise ValueError("Provide exactly one of 'plan' or 'product_id'")
        return self

    def resolve_plan(self) -> SubscriptionPlan:
        if self.plan is not None:
            return self.plan
        return SubscriptionPlan.from_product_id(self.product_id)


class UsageResponse(BaseModel):
    """Current quota snapshot."""

    user_id: str | None
    state: str
    total: int
    used: int
    remaining: int
    can_generate: bool
    subscription_type: str
    last_error: str | None = None

    @classmethod
    def from_quota(
        cls, quota: UsageQuota, *, user_id: str | None, state: str, last_error: str | None
    ) -> UsageResponse:
        return cls(
            user_id=user_id,
            state=state,
            total=quota.total,
            used=quota.used,
            remaining=quota.remaining,
            can_generate=quota.can_generate,
            subscription_type=quota.subscription_type,
            last_error=last_error,
        )
