"""StoryClient — one method per logical operation.

Each call resolves the ProviderConfig snapshot it is given to a transport,
renders the prompt, and returns a typed result. Failures always surface as
an LLMError subclass; the only degraded-but-successful outcome is the ideas
fallback (see taleforge.schemas.coerce_ideas).

Structured calls work the same on every provider. Providers with native
schema support get the shape class; the others get a schema description in
their system text and JSON mode.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx
from google import genai
from pydantic import ValidationError

from taleforge import prompts
from taleforge.config import Settings
from taleforge.errors import CharacterImportFailed, ProviderContractError, TransportError
from taleforge.images import ImageFetcher
from taleforge.models import (
    GeneratedImage,
    ImageGenConfig,
    LoreItem,
    ModelInfo,
    PromptEnvelope,
    ProviderConfig,
    WorldGenOptions,
    WorldMode,
)
from taleforge.schemas import (
    DeepWorldData,
    GeneratedWorldData,
    IdeaList,
    ImportedCharacter,
    ShapeT,
    coerce,
    coerce_ideas,
    schema_hint,
)
from taleforge.transports import Transport, managed_transport, transport_for

logger = logging.getLogger(__name__)


class StoryClient:
    """Entry point for every provider-backed operation.

    Args:
        managed:       SDK client for the managed provider, built once at
                       startup. None disables the managed provider.
        settings:      Model names, timeouts and attribution.
        image_fetcher: Fetcher for the alternate image backend.
    """

    def __init__(
        self,
        managed: genai.Client | None = None,
        settings: Settings | None = None,
        image_fetcher: ImageFetcher | None = None,
    ) -> None:
        self._managed = managed
        self._settings = settings or Settings()
        self._images = image_fetcher or ImageFetcher(timeout=self._settings.timeout)

    def _transport(self, config: ProviderConfig) -> Transport:
        return transport_for(config, self._managed, self._settings)

    async def _structured(
        self, config: ProviderConfig, envelope: PromptEnvelope, shape: type[ShapeT]
    ) -> ShapeT:
        transport = self._transport(config)
        if not transport.native_schema:
            envelope = envelope.model_copy(
                update={"system_text": f"{envelope.system_text}\n\n{schema_hint(shape)}"}
            )
        raw = await transport.complete(envelope, shape)
        return coerce(raw, shape)

    # ------------------------------------------------------------------
    # Story
    # ------------------------------------------------------------------

    async def continue_story(
        self, config: ProviderConfig, story: str, context: str, flavor: str, length_chars: int
    ) -> str:
        envelope = prompts.build_continuation(story, context, flavor, length_chars)
        return await self._transport(config).complete(envelope)

    async def generate_ideas(
        self, config: ProviderConfig, story: str, context: str, flavor: str
    ) -> list[str]:
        transport = self._transport(config)
        envelope = prompts.build_ideas(story, context, flavor, native_schema=transport.native_schema)
        raw = await transport.complete(envelope, IdeaList)
        return coerce_ideas(raw)

    # ------------------------------------------------------------------
    # Lore and world details
    # ------------------------------------------------------------------

    async def generate_lore_name(
        self,
        config: ProviderConfig,
        story: str,
        world_name: str,
        world_description: str,
        other_lore: Sequence[LoreItem],
        item: LoreItem,
    ) -> str:
        envelope = prompts.build_lore_detail(
            story, world_name, world_description, other_lore, item, "name"
        )
        return await self._transport(config).complete(envelope)

    async def generate_lore_description(
        self,
        config: ProviderConfig,
        story: str,
        world_name: str,
        world_description: str,
        other_lore: Sequence[LoreItem],
        item: LoreItem,
    ) -> str:
        envelope = prompts.build_lore_detail(
            story, world_name, world_description, other_lore, item, "description"
        )
        return await self._transport(config).complete(envelope)

    async def generate_world_name(
        self, config: ProviderConfig, story: str, lore: Sequence[LoreItem]
    ) -> str:
        envelope = prompts.build_world_name(story, lore)
        return await self._transport(config).complete(envelope)

    async def generate_world_description(
        self, config: ProviderConfig, world_name: str, story: str, lore: Sequence[LoreItem]
    ) -> str:
        envelope = prompts.build_world_description(world_name, story, lore)
        return await self._transport(config).complete(envelope)

    # ------------------------------------------------------------------
    # Character import
    # ------------------------------------------------------------------

    async def import_character(
        self, config: ProviderConfig, image_base64: str, mime_type: str
    ) -> ImportedCharacter:
        """Extract a character from a character-sheet image.

        Raises CharacterImportFailed when the model answers with the
        "Import Failed" sentinel.
        """
        envelope = prompts.build_character_import(image_base64, mime_type)
        character = await self._structured(config, envelope, ImportedCharacter)
        if character.failed:
            logger.info("character import rejected by model: %s", character.description)
            raise CharacterImportFailed(character.description)
        return character

    # ------------------------------------------------------------------
    # Full world
    # ------------------------------------------------------------------

    async def generate_world(
        self, config: ProviderConfig, options: WorldGenOptions, mode: WorldMode = "fast"
    ) -> GeneratedWorldData:
        if mode == "fast":
            return await self._structured(
                config, prompts.build_fast_world_prompt(options), GeneratedWorldData
            )
        if mode == "deep":
            return await self._structured(
                config, prompts.build_deep_world_prompt(options), DeepWorldData
            )
        raise ValueError(f"Unknown world generation mode: {mode!r}")

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def generate_lore_image(
        self,
        config: ImageGenConfig,
        item: LoreItem,
        world_name: str,
        world_description: str,
    ) -> GeneratedImage:
        prompt = prompts.build_lore_image_prompt(item, world_name, world_description)
        if config.use_alternate_backend:
            return await self._images.fetch_image(prompt, config)
        return await managed_transport(self._managed, self._settings).generate_image(prompt)


# ---------------------------------------------------------------------------
# Model listing
# ---------------------------------------------------------------------------

async def fetch_available_models(endpoint: str, timeout: float = 30.0) -> list[ModelInfo]:
    """List models from an OpenAI-compatible endpoint, sorted by id.

    A missing context_length is reported as 0.
    """
    url = f"{endpoint.rstrip('/')}/models"
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.get(url)
            resp.raise_for_status()
    except httpx.ConnectError as e:
        raise TransportError(f"Cannot connect to LLM backend at {endpoint}") from e
    except httpx.TimeoutException as e:
        raise TransportError(f"LLM backend timed out after {timeout}s") from e
    except httpx.HTTPStatusError as e:
        raise TransportError(
            f"Failed to fetch models: {e.response.status_code} {e.response.reason_phrase}",
            status_code=e.response.status_code,
        ) from e
    except httpx.HTTPError as e:
        raise TransportError(f"Failed to fetch models: {e}") from e

    try:
        data: Any = resp.json()
    except ValueError as e:
        raise ProviderContractError("Unexpected response format from models endpoint") from e
    entries = data.get("data") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        return []

    models = []
    for entry in entries:
        if not isinstance(entry, dict) or "id" not in entry:
            continue
        try:
            models.append(ModelInfo(
                id=entry["id"], context_length=entry.get("context_length") or 0
            ))
        except ValidationError:
            logger.warning("skipping malformed model entry: %r", entry)
    return sorted(models, key=lambda m: m.id)
