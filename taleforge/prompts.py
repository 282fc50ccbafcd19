"""Prompt construction for every logical operation.

Each build_* function returns a fresh PromptEnvelope. Nothing here talks to
a provider; the client decides how an envelope goes on the wire.

Optional inputs are rendered only when present. An absent option never
turns into a "null" or an empty placeholder line.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Literal

from taleforge.models import (
    ImagePart,
    LoreItem,
    PromptEnvelope,
    SupportingCharacter,
    WorldGenOptions,
)
from taleforge.schemas import IMPORT_FAILED_NAME

NO_CONTEXT = "No additional context provided."
NO_LORE = "No existing lore provided."
NO_WORLD_CONTEXT = "No existing world context provided."
NO_STORY = "No story written yet."

PRESET_NOTE = (
    'The "Preset Flavors" are optional tags that add inspiration; they never '
    "restrict or overwrite other inputs, and all combinations are valid."
)

_RAW_VALUE_RULE = (
    "you must respond with ONLY the generated {what} in plain text. Do not "
    'include any prefixes, labels (like "{label}:"), markdown, or quotation marks.'
)


# ---------------------------------------------------------------------------
# Scales and label tables
# ---------------------------------------------------------------------------

MAGIC_SCALE: dict[int, str] = {
    0: "Null: no magic, only myth/superstition.",
    1: "Faint Echoes: omens, rare miracles, spirits.",
    2: "Folk Magic: charms, curses, hedge witches, herbal rites.",
    3: "Ritual Magic: priests, shamans, ceremonies with repeatable results.",
    4: "Apprentice Age: structured spellcraft exists, limited and elite.",
    5: "Mage Orders: guilds, academies, codified disciplines.",
    6: "Arcane Society: magic entrenched in culture, economy, warfare.",
    7: "Grand Sorcery: large-scale enchantments, cities shielded, weather shaped.",
    8: "Mythic Age: gods, avatars, magical creatures openly present.",
    9: "World-Shaping: reality altered by magic; natural laws pliable.",
    10: "Transcendent: civilizations operate beyond natural law; existence is magical essence.",
}

TECH_SCALE: dict[int, str] = {
    0: "Stone Age: hunter-gatherers, stone/wood tools, fire.",
    1: "Bronze Age: early cities, bronze weapons, first writing.",
    2: "Iron Age: empires, iron/steel, roads, aqueducts.",
    3: "Medieval: feudal systems, castles, sails, early medicine.",
    4: "Renaissance: printing, navigation, early science, gunpowder.",
    5: "Enlightenment / Early Industrial: steam power, factories, long-range navies.",
    6: "Late Industrial / Victorian: railroads, telegraph, mass production.",
    7: "Early Modern: cars, planes, electricity, radio.",
    8: "Modern: computers, nuclear power, space race.",
    9: "Near Future: AI, biotech, green energy, space colonies.",
    10: "Far Future: interstellar, post-scarcity, transhuman.",
}

SUBGENRES: dict[str, str] = {
    "Low": "Low: Small-scale struggles, grounded and local.",
    "Epic": "Epic: World-shaping conflicts, legendary scope.",
    "Grimdark": "Grimdark: Bleak, cynical worlds of brutality.",
    "Noblebright": "Noblebright: Hopeful, heroic struggles with moral clarity.",
    "Weird": "Weird: Uncanny, surreal, or alien atmosphere.",
    "Slice of Life": "Slice of Life: Everyday rhythms, community, and small joys.",
}

SUPPORTING_LABELS: dict[str, tuple[str, str, str, str, str]] = {
    "Friend": ("Extremely Loyal", "Loyal", "Unpredictable", "High Betrayal Risk", "Almost Certain to Betray"),
    "Rival": ("Petty Nuisance", "Annoying Obstacle", "Serious Threat", "Dangerous Foe", "Deadly Nemesis"),
    "Enemy": ("Minor Nuisance", "Persistent Threat", "Dangerous Foe", "Lethal Adversary", "Existential Threat"),
    "Neutral": ("Very Helpful", "Generally Helpful", "Purely Transactional", "Potentially Dangerous", "Extremely Dangerous"),
    "LoveInterest": ("Unbreakable Bond", "Strong Bond", "Complicated Feelings", "Significant Obstacles", "Seemingly Impossible"),
    "Family": ("Deeply Supportive", "Supportive", "Neutral / Strained", "Tense / Difficult", "Broken / Hostile"),
    "Recurring": ("Flavor/Background", "Minor Importance", "Situationally Important", "Frequently Important", "Critical to the Plot"),
}

# Upper edge (inclusive) of the first four bands; everything above is band 5.
_SLIDER_BANDS = (10, 30, 70, 90)


def supporting_character_label(category: str, value: int) -> str:
    """Map a 0-100 relationship slider to the category's descriptive label."""
    labels = SUPPORTING_LABELS.get(category)
    if labels is None:
        return f"Value: {value}/100"
    for i, edge in enumerate(_SLIDER_BANDS):
        if value <= edge:
            return labels[i]
    return labels[-1]


# ---------------------------------------------------------------------------
# Context formatting
# ---------------------------------------------------------------------------

def _lore_block(item: LoreItem, mention_image: bool = False) -> str:
    header = item.type_label().upper()
    content = f"Name: {item.name.strip()}"
    if item.description.strip():
        content += f"\nDescription: {item.description.strip()}"
    if mention_image and item.image is not None:
        content += "\n(An image is attached to this item.)"
    return f"{header}:\n{content}"


def format_lore(items: Sequence[LoreItem]) -> str:
    if not items:
        return NO_LORE
    return "\n\n---\n\n".join(_lore_block(item) for item in items)


def format_world_context(
    world_name: str, world_description: str, items: Sequence[LoreItem]
) -> str:
    context = ""
    if world_name.strip():
        context += f"WORLD NAME: {world_name.strip()}\n"
    if world_description.strip():
        context += f"WORLD DESCRIPTION: {world_description.strip()}\n\n"
    if items:
        context += "LORE ITEMS:\n---\n" + format_lore(items)
    return context.strip() or NO_WORLD_CONTEXT


def format_story_context(
    world_name: str, world_description: str, items: Sequence[LoreItem]
) -> str:
    """Structured context fed to continuation and idea prompts.

    Returns "" when there is nothing to say, so the prompt builders can
    substitute their own placeholder.
    """
    lines: list[str] = []
    if world_name.strip():
        lines.append(f"WORLD NAME: {world_name.strip()}")
    if world_description.strip():
        lines.append(f"WORLD DESCRIPTION: {world_description.strip()}")
    context = "\n".join(lines)
    if items:
        blocks = "\n\n---\n\n".join(_lore_block(i, mention_image=True) for i in items)
        if context:
            context += "\n\n"
        context += f"LORE ITEMS:\n---\n{blocks}"
    return context


def _context_section(context: str) -> str:
    return f"ADDITIONAL CONTEXT TO CONSIDER:\n---\n{context or NO_CONTEXT}\n---"


# ---------------------------------------------------------------------------
# Story continuation and ideas
# ---------------------------------------------------------------------------

def build_continuation(
    story: str, context: str, flavor: str, length_chars: int
) -> PromptEnvelope:
    if story.strip():
        system = (
            "You are a creative storyteller. Your task is to continue the story "
            f"provided below in a {flavor} tone, taking inspiration from any provided "
            f"text context. The continuation should be approximately {length_chars} "
            "characters long. Do not repeat or summarize the story I provide. Only "
            "write the next part of the story."
        )
        story_section = f"STORY SO FAR:\n---\n{story}\n---\n\nCONTINUATION:"
    else:
        system = (
            "You are a creative storyteller. Your task is to start a new story in a "
            f"{flavor} tone, taking inspiration from any provided text context. The "
            f"story opening should be approximately {length_chars} characters long."
        )
        story_section = "STORY OPENING:"
    return PromptEnvelope(
        system_text=system,
        user_text=f"{_context_section(context)}\n\n{story_section}",
    )


def estimate_tokens(text: str) -> int:
    """Rough token count: about four characters per token."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def continuation_prompt_tokens(
    story: str, context: str, flavor: str, length_chars: int
) -> int:
    envelope = build_continuation(story, context, flavor, length_chars)
    return estimate_tokens(f"{envelope.system_text}\n{envelope.user_text}")


_IDEAS_FORMAT = (
    ' Format your response as a JSON object with a single key "ideas" which is '
    'an array of two strings. Example: {{"ideas": ["{first}", "{second}"]}}'
)


def build_ideas(
    story: str, context: str, flavor: str, native_schema: bool = False
) -> PromptEnvelope:
    """Ask for exactly two ideas.

    With native_schema the response shape is left to the provider's schema
    support; otherwise the JSON format is spelled out in the system text.
    """
    if story.strip():
        system = (
            "You are a creative writing assistant. Based on the story and context "
            "below, generate exactly two different and compelling ideas for what "
            f"could happen next. The tone of the ideas should be {flavor}."
        )
        examples = ("First idea...", "Second idea...")
        user = f"{_context_section(context)}\n\nSTORY SO FAR:\n---\n{story}\n---"
    else:
        system = (
            "You are a creative writing assistant. Generate exactly two different "
            "and compelling ideas for starting a new story, inspired by the context. "
            f"The tone of the ideas should be {flavor}."
        )
        examples = ("First story starter idea...", "Second story starter idea...")
        user = _context_section(context)
    if not native_schema:
        system += _IDEAS_FORMAT.format(first=examples[0], second=examples[1])
    return PromptEnvelope(system_text=system, user_text=user)


# ---------------------------------------------------------------------------
# Lore and world details (raw value responses)
# ---------------------------------------------------------------------------

LoreField = Literal["name", "description"]


def build_lore_detail(
    story: str,
    world_name: str,
    world_description: str,
    other_lore: Sequence[LoreItem],
    target: LoreItem,
    field: LoreField,
) -> PromptEnvelope:
    if field not in ("name", "description"):
        raise ValueError(f"Unknown lore field: {field!r}")
    system = (
        "You are a creative assistant helping a writer build a world for their "
        "story. When asked for a name or description, "
        + _RAW_VALUE_RULE.format(what="content", label="Name")
    )
    world_context = format_world_context(world_name, world_description, other_lore)
    item_type = target.type_label("lore item")
    story_block = f"STORY SO FAR:\n---\n{story or NO_STORY}\n---"
    context_block = f"FULL WORLD CONTEXT:\n---\n{world_context}\n---"

    if field == "name":
        user = (
            "Based on the story and overall world context (and the provided image, "
            "if any), generate a single, creative, and fitting name for this "
            f"{item_type}.\nIf the item already has a description, use that as a "
            f"strong hint.\n\n{story_block}\n\n{context_block}\n\n"
            f"CURRENT ITEM DESCRIPTION:\n---\n"
            f"{target.description or 'No description yet.'}\n---"
        )
    else:
        user = (
            "Based on the story, world context, and the provided image (if any), "
            f"write a brief, compelling description (1-2 sentences) for the "
            f'{item_type} named "{target.name or "this item"}".\n\n'
            f"{story_block}\n\n{context_block}"
        )

    images = (target.image,) if target.image is not None else ()
    return PromptEnvelope(system_text=system, user_text=user, image_parts=images)


def _has_context(story: str, items: Sequence[LoreItem]) -> bool:
    return bool(story.strip()) or bool(items)


def build_world_name(story: str, lore: Sequence[LoreItem]) -> PromptEnvelope:
    system = "You are a creative assistant. When asked for a name, " + _RAW_VALUE_RULE.format(
        what="name", label="Name"
    )
    if _has_context(story, lore):
        user = (
            "Based on the story and lore provided, generate a single, creative, and "
            "fitting name for this world.\n\n"
            f"STORY SO FAR:\n---\n{story or NO_STORY}\n---\n\n"
            f"EXISTING LORE:\n---\n{format_lore(lore)}\n---"
        )
    else:
        user = "Generate a single, creative, and random name for a fantasy or sci-fi world."
    return PromptEnvelope(system_text=system, user_text=user)


def build_world_description(
    world_name: str, story: str, lore: Sequence[LoreItem]
) -> PromptEnvelope:
    system = (
        "You are a creative assistant. When asked for a description, "
        + _RAW_VALUE_RULE.format(what="content", label="Description")
    )
    name = world_name or "this world"
    if _has_context(story, lore):
        user = (
            f'For a world named "{name}", write a brief, evocative description '
            "(2-3 sentences) based on the story and lore context.\n\n"
            f"STORY SO FAR:\n---\n{story or NO_STORY}\n---\n\n"
            f"EXISTING LORE:\n---\n{format_lore(lore)}\n---"
        )
    else:
        user = (
            "Write a brief, creative, and random description (2-3 sentences) for a "
            f'world named "{name}".'
        )
    return PromptEnvelope(system_text=system, user_text=user)


# ---------------------------------------------------------------------------
# Character import
# ---------------------------------------------------------------------------

def build_character_import(image_base64: str, mime_type: str) -> PromptEnvelope:
    system = "You are an expert OCR and data extraction AI."
    user = (
        "Your task is to analyze the provided image of a character sheet (from a "
        "TTRPG, video game, or other source) and extract key information.\n\n"
        "From the image, extract the character's name and create a detailed "
        "description. The description should synthesize all available information, "
        "such as appearance, personality, backstory, skills, abilities, and "
        "inventory, into a cohesive paragraph.\n\n"
        "If the character name is not explicitly found, creatively infer one based "
        "on the context. If the image does not appear to be a character sheet or is "
        f"too blurry to read, the 'name' should be '{IMPORT_FAILED_NAME}' and the "
        "'description' should explain the issue (e.g., 'Image is unreadable or does "
        "not contain character data.'). Your response must be a JSON object with the "
        "string keys 'name' and 'description'."
    )
    return PromptEnvelope(
        system_text=system,
        user_text=user,
        image_parts=(ImagePart(mime_type=mime_type, base64_data=image_base64),),
    )


# ---------------------------------------------------------------------------
# Full world generation
# ---------------------------------------------------------------------------

def _names_line(options: WorldGenOptions, creative: str) -> str:
    return creative if options.generate_names else "Use descriptive placeholders."


def fast_world_parameters(options: WorldGenOptions) -> list[str]:
    o = options
    params: list[str] = []
    if o.presets:
        params.append(f"- **Preset Flavors**: {', '.join(o.presets)}.")
    if o.tone:
        params.append(f"- **Overall Tone**: {o.tone}.")
    if o.vibes:
        vibe_text = "a grounded, realistic feel" if "None" in o.vibes else ", ".join(o.vibes)
        params.append(f"- **Vibe Pack**: {vibe_text}.")
    if o.magic_scale is not None:
        params.append(f"- **Magic Scale**: {MAGIC_SCALE[o.magic_scale]}")
    if o.tech_scale is not None:
        params.append(f"- **Technology Scale**: {TECH_SCALE[o.tech_scale]}")
    if o.conflict:
        params.append(f"- **Core Conflict**: {o.conflict}.")
    if o.setting:
        params.append(f"- **Setting Scaffold**: {o.setting}.")
    if o.faction_count is not None:
        params.append(f"- **Number of Factions**: {o.faction_count}.")
    if o.race_count is not None:
        params.append(f"- **Number of Races/Species**: {o.race_count}.")
    if o.mc_role:
        params.append(f"- **Main Character (MC) Role**: {o.mc_role}.")
    if o.antagonist_shape:
        params.append(f"- **Antagonist Shape**: {o.antagonist_shape}.")
    params.append(f"- **Names**: {_names_line(o, 'Generate creative, fitting names.')}")
    return params


def build_fast_world_prompt(options: WorldGenOptions) -> PromptEnvelope:
    system = (
        "You are a master world-builder. Based on the following user-defined "
        "parameters, generate a cohesive and inspiring world concept.\n"
        "Your response MUST be a JSON object that strictly follows the provided "
        "schema. Do not add any extra commentary or text outside the JSON "
        f"structure.\n{PRESET_NOTE}"
    )
    params = "\n".join(fast_world_parameters(options))
    user = (
        f"Parameters:\n{params}\n\n"
        "Generate the world. Be creative and ensure all elements connect logically."
    )
    return PromptEnvelope(system_text=system, user_text=user)


def _group(label: str, parts: list[tuple[str, str | None]]) -> str | None:
    """Render "- Label: A (x), B (y)" from the parts that are set, or None."""
    rendered = [f"{name} ({value})" for name, value in parts if value]
    if not rendered:
        return None
    return f"- {label}: {', '.join(rendered)}"


def _supporting_line(char: SupportingCharacter) -> str:
    details = []
    if char.type:
        details.append(f"Type: {char.type}")
    if char.description:
        details.append(f"Description: {char.description}")
    details.append(f"Dynamic: {supporting_character_label(char.category, char.slider_value)}")
    return f"  - A {char.category} character. {'; '.join(details)}"


def deep_world_parameters(options: WorldGenOptions) -> list[str]:
    o = options
    params: list[str | None] = []
    if o.presets:
        params.append(f"- **Preset Flavors**: {', '.join(o.presets)}.")

    macro = []
    if o.tone:
        macro.append(f"Tone: {o.tone}")
    if o.subgenre:
        macro.append(f"Subgenre: {SUBGENRES.get(o.subgenre, o.subgenre)}")
    if macro:
        params.append(f"- {', '.join(macro)}")

    if o.magic_scale is not None:
        params.append(f"- Magic Scale: {MAGIC_SCALE[o.magic_scale]}")
    if o.tech_scale is not None:
        params.append(f"- Technology Scale: {TECH_SCALE[o.tech_scale]}")

    params.append(_group("Geography", [
        ("Biome", o.primary_biome), ("Travel Constraint", o.travel_constraint),
    ]))
    params.append(_group("Economy", [
        ("Scarce Resource", o.scarce_resource), ("Controlled by", o.resource_controller),
    ]))
    params.append(_group("Law", [("Polity", o.polity), ("Justice", o.justice_style)]))
    params.append(_group("Culture", [
        ("Taboos", o.taboos), ("Virtues", o.virtues), ("Lingua", o.lingua),
    ]))

    if o.faction_count is not None:
        params.append(f"- Factions to generate: {o.faction_count}")
    if o.race_count is not None:
        params.append(f"- Races to generate: {o.race_count}")

    params.append(_group("Religion", [
        ("Presence", o.religion_presence), ("Miracles", o.miracle_test),
    ]))
    params.append(_group("Medicine", [
        ("Type", o.medicine_type), ("Constraint", o.medicine_constraint),
    ]))
    if o.tensions:
        params.append(f"- Conflict Web: Tensions are {' and '.join(o.tensions)}")

    params.append(_group("MC", [
        ("Role", o.mc_role), ("Scar", o.mc_scar), ("Need", o.mc_need),
        ("Secret", o.mc_secret), ("Line", o.mc_line),
    ]))

    if o.supporting_characters:
        lines = "\n".join(_supporting_line(c) for c in o.supporting_characters)
        params.append(f"- Supporting Characters:\n{lines}")

    params.append(_group("Antagonist", [
        ("Shape", o.antagonist_shape),
        ("Desired Future", o.antagonist_future),
        ("Line they won't cross", o.antagonist_line),
        ("Doom Clock", o.antagonist_doom_clock),
    ]))
    params.append(_group("Logistics", [
        ("Travel Range", o.travel_range),
        ("Supply Pain", o.supply_pain),
        ("Message Speed", o.message_speed),
    ]))
    params.append(_group("Combat", [
        ("Feel", o.combat_feel), ("Important Injuries", o.important_injuries),
    ]))
    params.append(_group("Aesthetic", [("Visual Anchors", o.visual_anchors)]))
    params.append(_group("Content Limits", [
        ("Hard No-Gos", o.hard_no_gos), ("Soft Limits", o.soft_limits),
    ]))
    params.append(f"- Names: {_names_line(o, 'Generate creative names.')}")
    return [p for p in params if p]


def build_deep_world_prompt(options: WorldGenOptions) -> PromptEnvelope:
    system = (
        'You are a master world-builder creating a "world bible". Your response '
        "MUST be a JSON object that strictly follows the provided schema. Each "
        "'detailedSections' value must be a single string with distinct points "
        "separated by newlines. Do not add extra commentary outside the JSON.\n"
        f"{PRESET_NOTE}"
    )
    params = "\n".join(deep_world_parameters(options))
    user = f"Parameters:\n{params}\n\nNow, generate the detailed world bible."
    return PromptEnvelope(system_text=system, user_text=user)


# ---------------------------------------------------------------------------
# Lore images
# ---------------------------------------------------------------------------

def build_lore_image_prompt(item: LoreItem, world_name: str, world_description: str) -> str:
    item_type = item.type_label("concept")
    return (
        f'epic fantasy digital painting of a {item_type} named "{item.name or "unnamed"}". '
        f"{item.description or ''} The scene is set in a world called "
        f'"{world_name or "unnamed world"}", which is described as: '
        f'"{world_description or "No description provided."}" The image should be a '
        f"focused, visually compelling representation of the {item_type}."
    )
