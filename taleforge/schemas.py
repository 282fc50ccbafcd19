"""Response shapes for structured operations and the coercion that enforces them.

The deep world shape extends the fast one: every fast entity gains a set of
optional enrichment fields, and the world gains allies, a rival and the
detailed sections. Required-field checks are shared through inheritance.

Providers with native schema support receive the shape class directly; the
rest get `schema_hint(shape)` in their system text. Either way the text that
comes back goes through `coerce` before anyone sees it.
"""

from __future__ import annotations

import json
import logging
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from taleforge.errors import ProviderContractError

logger = logging.getLogger(__name__)

IMPORT_FAILED_NAME = "Import Failed"
IDEAS_FALLBACK = "The AI couldn't generate ideas in the expected format. Please try again."


class Shape(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


ShapeT = TypeVar("ShapeT", bound=Shape)


# ---------------------------------------------------------------------------
# Small shapes
# ---------------------------------------------------------------------------

class IdeaList(Shape):
    ideas: list[str]


class ImportedCharacter(Shape):
    name: str
    description: str

    @property
    def failed(self) -> bool:
        return self.name.strip() == IMPORT_FAILED_NAME


# ---------------------------------------------------------------------------
# Fast world shape
# ---------------------------------------------------------------------------

class Faction(Shape):
    name: str
    goal: str
    method: str
    resource: str
    flaw: str


class Race(Shape):
    name: str
    hallmark: str
    limitation: str
    quirk: str


class MainCharacter(Shape):
    name: str
    desire: str
    fear: str
    edge: str
    problem: str


class Antagonist(Shape):
    name: str
    motive: str
    leverage: str
    weakness: str


class GeneratedWorldData(Shape):
    world_name: str
    premise: str
    factions: list[Faction]
    races: list[Race]
    main_character: MainCharacter
    antagonist: Antagonist
    starter_hooks: list[str]


# ---------------------------------------------------------------------------
# Deep world shape: fast shape plus optional enrichment
# ---------------------------------------------------------------------------

class DeepFaction(Faction):
    leader_archetype: str | None = None
    leverage: str | None = None
    fracture_risk: str | None = None


class DeepRace(Race):
    physiology_quirk: str | None = None
    social_role: str | None = None
    prejudice: str | None = None
    gift: str | None = None


class DeepMainCharacter(MainCharacter):
    scar: str | None = None
    need: str | None = None
    secret: str | None = None
    line_in_sand: str | None = None


class DeepAntagonist(Antagonist):
    desired_future: str | None = None
    line_they_wont_cross: str | None = None
    doom_clock: str | None = None


class Ally(Shape):
    name: str
    role: str
    edge: str


class Rival(Shape):
    name: str
    obsession: str
    blind_spot: str


class DetailedSections(Shape):
    macro: str | None = None
    magic_tech: str | None = None
    geography: str | None = None
    economy: str | None = None
    law_and_order: str | None = None
    culture: str | None = None
    religion: str | None = None
    medicine: str | None = None
    conflict_web: str | None = None
    logistics: str | None = None
    combat: str | None = None
    aesthetic: str | None = None


class DeepWorldData(GeneratedWorldData):
    factions: list[DeepFaction]
    races: list[DeepRace]
    main_character: DeepMainCharacter
    antagonist: DeepAntagonist
    allies: list[Ally]
    rival: Rival
    detailed_sections: DetailedSections


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

def schema_hint(shape: type[Shape]) -> str:
    """Instruction appended to the system text for providers without native schemas."""
    schema = json.dumps(shape.model_json_schema(by_alias=True), indent=2)
    return (
        "Respond with a single JSON object and nothing else. It must match this "
        f"JSON schema:\n{schema}"
    )


def coerce(raw_text: str, shape: type[ShapeT]) -> ShapeT:
    """Parse and validate a provider's JSON text against `shape`.

    Raises ProviderContractError on invalid JSON or missing required fields.
    """
    try:
        data = json.loads(raw_text.strip())
    except json.JSONDecodeError as e:
        raise ProviderContractError(
            "The AI response was not valid JSON. Try adjusting your inputs."
        ) from e
    try:
        return shape.model_validate(data)
    except ValidationError as e:
        missing = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise ProviderContractError(
            f"The AI response did not match the expected format ({', '.join(missing)})."
        ) from e


def coerce_ideas(raw_text: str) -> list[str]:
    """Like coerce(raw_text, IdeaList) but never fails.

    Anything other than a non-empty list of strings becomes a one-element
    list holding IDEAS_FALLBACK.
    """
    try:
        ideas = coerce(raw_text, IdeaList).ideas
    except ProviderContractError as e:
        logger.warning("ideas response unusable: %s", e)
        return [IDEAS_FALLBACK]
    if not ideas:
        logger.warning("ideas response was an empty list")
        return [IDEAS_FALLBACK]
    return ideas
