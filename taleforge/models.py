"""Core domain models.

Every call into the client layer receives fresh instances of these types.
Pydantic is used for validation and serialisation at every data boundary;
the JSON wire names are camelCase, Python attribute names are snake_case.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models exchanged with the UI: camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Provider configuration
# ---------------------------------------------------------------------------

class ManagedConfig(WireModel):
    """The vendor SDK backend. Credentials come from the process, not the call."""

    kind: Literal["managed"] = "managed"


class OpenAICompatibleConfig(WireModel):
    """A remote OpenAI-compatible endpoint (e.g. OpenRouter)."""

    kind: Literal["openai-compatible"] = "openai-compatible"
    endpoint: str
    api_key: str
    model: str


class LocalOpenAIConfig(WireModel):
    """A local OpenAI-compatible endpoint (e.g. KoboldCpp). No auth, no model."""

    kind: Literal["openai-compatible-local"] = "openai-compatible-local"
    endpoint: str


ProviderConfig = Annotated[
    Union[ManagedConfig, OpenAICompatibleConfig, LocalOpenAIConfig],
    Field(discriminator="kind"),
]


class ImageGenConfig(WireModel):
    """Selects the image backend. The alternate backend is a Hugging Face style endpoint."""

    use_alternate_backend: bool = False
    api_key: str = ""
    endpoint: str = ""


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

class ImagePart(WireModel):
    mime_type: str
    base64_data: str


class PromptEnvelope(WireModel):
    """Rendered prompt for one request. Images go before text on the wire."""

    system_text: str
    user_text: str
    image_parts: tuple[ImagePart, ...] = ()


# ---------------------------------------------------------------------------
# Lore
# ---------------------------------------------------------------------------

LoreType = Literal["Character", "Race", "Faction", "Location", "Custom"]


class LoreItem(WireModel):
    """A user-authored world-building entity. Read-only to this package."""

    id: str
    type: LoreType
    name: str = ""
    description: str = ""
    custom_type_name: str | None = None
    image: ImagePart | None = None

    def type_label(self, custom_fallback: str = "Custom") -> str:
        """Human label for the item type; custom items use their own type name."""
        if self.type == "Custom":
            return self.custom_type_name or custom_fallback
        return self.type


class GeneratedImage(WireModel):
    mime_type: str
    base64_data: str


class ModelInfo(WireModel):
    id: str
    context_length: int = 0


# ---------------------------------------------------------------------------
# World generation options
# ---------------------------------------------------------------------------

SupportingCharacterCategory = Literal[
    "Friend", "Rival", "Enemy", "Neutral", "LoveInterest", "Family", "Recurring",
]


class SupportingCharacter(WireModel):
    id: str = ""
    category: SupportingCharacterCategory
    type: str | None = None
    slider_value: int = Field(default=50, ge=0, le=100)
    description: str = ""


class WorldGenOptions(WireModel):
    """Option bag for full world generation.

    The first block is used by both modes; the rest only by deep mode.
    Any option left as None (or empty) is omitted from the prompt.
    """

    presets: list[str] = Field(default_factory=list)
    tone: Literal["Grounded", "Balanced", "Wild"] | None = None
    vibes: list[str] = Field(default_factory=list)
    magic_scale: int | None = Field(default=None, ge=0, le=10)
    tech_scale: int | None = Field(default=None, ge=0, le=10)
    conflict: str | None = None
    setting: str | None = None
    faction_count: int | None = None
    race_count: int | None = None
    mc_role: str | None = None
    antagonist_shape: str | None = None
    generate_names: bool = True

    subgenre: str | None = None
    primary_biome: str | None = None
    travel_constraint: str | None = None
    scarce_resource: str | None = None
    resource_controller: str | None = None
    polity: str | None = None
    justice_style: str | None = None
    taboos: str | None = None
    virtues: str | None = None
    lingua: str | None = None
    religion_presence: str | None = None
    miracle_test: str | None = None
    medicine_type: str | None = None
    medicine_constraint: str | None = None
    tensions: list[str] = Field(default_factory=list)
    mc_scar: str | None = None
    mc_need: str | None = None
    mc_secret: str | None = None
    mc_line: str | None = None
    supporting_characters: list[SupportingCharacter] = Field(default_factory=list)
    antagonist_future: str | None = None
    antagonist_line: str | None = None
    antagonist_doom_clock: str | None = None
    travel_range: str | None = None
    supply_pain: str | None = None
    message_speed: str | None = None
    combat_feel: str | None = None
    important_injuries: str | None = None
    visual_anchors: str | None = None
    hard_no_gos: str | None = None
    soft_limits: str | None = None


WorldMode = Literal["fast", "deep"]
