"""FastAPI endpoints under /api.

Thin HTTP surface over StoryClient for the browser UI. Every request body
carries its own provider/image config snapshot; nothing is stored here.

Error mapping: ConfigurationError → 400, CharacterImportFailed → 422,
any other LLMError → 502. The error's message is the response detail.
"""

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import Field

from taleforge.client import StoryClient, fetch_available_models
from taleforge.config import Settings, create_managed_client
from taleforge.errors import CharacterImportFailed, ConfigurationError, LLMError
from taleforge.models import (
    GeneratedImage,
    ImageGenConfig,
    LoreItem,
    ModelInfo,
    ProviderConfig,
    WireModel,
    WorldGenOptions,
    WorldMode,
)
from taleforge.prompts import LoreField, continuation_prompt_tokens, format_story_context
from taleforge.schemas import ImportedCharacter

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)


# ── Request / response bodies ────────────────────────────


class StoryContextBody(WireModel):
    """Story text plus either a prebuilt context or the world it comes from."""

    story: str = ""
    context: str = ""
    world_name: str = ""
    world_description: str = ""
    lore: list[LoreItem] = Field(default_factory=list)
    flavor: str

    def resolved_context(self) -> str:
        if self.context.strip():
            return self.context
        return format_story_context(self.world_name, self.world_description, self.lore)


class ContinueBody(StoryContextBody):
    provider: ProviderConfig
    length: int = Field(gt=0)


class IdeasBody(StoryContextBody):
    provider: ProviderConfig


class PromptTokensBody(StoryContextBody):
    length: int = Field(gt=0)


class LoreDetailBody(WireModel):
    provider: ProviderConfig
    field: LoreField
    story: str = ""
    world_name: str = ""
    world_description: str = ""
    other_lore: list[LoreItem] = Field(default_factory=list)
    item: LoreItem


class WorldNameBody(WireModel):
    provider: ProviderConfig
    story: str = ""
    lore: list[LoreItem] = Field(default_factory=list)


class WorldDescriptionBody(WorldNameBody):
    world_name: str = ""


class CharacterImportBody(WireModel):
    provider: ProviderConfig
    image_base64: str
    mime_type: str


class WorldGenBody(WireModel):
    provider: ProviderConfig
    options: WorldGenOptions
    mode: WorldMode = "fast"


class LoreImageBody(WireModel):
    image_config: ImageGenConfig
    item: LoreItem
    world_name: str = ""
    world_description: str = ""


class TextResult(WireModel):
    text: str


class IdeasResult(WireModel):
    ideas: list[str]


class TokensResult(WireModel):
    tokens: int


# ── Routes ───────────────────────────────────────────────

router = APIRouter()


def get_client(request: Request) -> StoryClient:
    return request.app.state.client


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/models", response_model=list[ModelInfo])
async def list_models(endpoint: str):
    """Models offered by an OpenAI-compatible endpoint, sorted by id."""
    return await fetch_available_models(endpoint)


@router.post("/prompt-tokens", response_model=TokensResult)
async def prompt_tokens(body: PromptTokensBody):
    """Estimated size of the continuation prompt."""
    tokens = continuation_prompt_tokens(
        body.story, body.resolved_context(), body.flavor, body.length
    )
    return TokensResult(tokens=tokens)


@router.post("/continue", response_model=TextResult)
async def continue_story(body: ContinueBody, client: StoryClient = Depends(get_client)):
    text = await client.continue_story(
        body.provider, body.story, body.resolved_context(), body.flavor, body.length
    )
    return TextResult(text=text)


@router.post("/ideas", response_model=IdeasResult)
async def ideas(body: IdeasBody, client: StoryClient = Depends(get_client)):
    result = await client.generate_ideas(
        body.provider, body.story, body.resolved_context(), body.flavor
    )
    return IdeasResult(ideas=result)


@router.post("/lore/detail", response_model=TextResult)
async def lore_detail(body: LoreDetailBody, client: StoryClient = Depends(get_client)):
    generate = (
        client.generate_lore_name if body.field == "name" else client.generate_lore_description
    )
    text = await generate(
        body.provider, body.story, body.world_name, body.world_description,
        body.other_lore, body.item,
    )
    return TextResult(text=text)


@router.post("/world/name", response_model=TextResult)
async def world_name(body: WorldNameBody, client: StoryClient = Depends(get_client)):
    text = await client.generate_world_name(body.provider, body.story, body.lore)
    return TextResult(text=text)


@router.post("/world/description", response_model=TextResult)
async def world_description(
    body: WorldDescriptionBody, client: StoryClient = Depends(get_client)
):
    text = await client.generate_world_description(
        body.provider, body.world_name, body.story, body.lore
    )
    return TextResult(text=text)


@router.post("/characters/import", response_model=ImportedCharacter)
async def import_character(body: CharacterImportBody, client: StoryClient = Depends(get_client)):
    return await client.import_character(body.provider, body.image_base64, body.mime_type)


@router.post("/world/generate")
async def generate_world(body: WorldGenBody, client: StoryClient = Depends(get_client)):
    """Fast or deep world concept. Unset enrichment fields are left out."""
    world = await client.generate_world(body.provider, body.options, body.mode)
    return world.model_dump(by_alias=True, exclude_none=True)


@router.post("/lore/image", response_model=GeneratedImage)
async def lore_image(body: LoreImageBody, client: StoryClient = Depends(get_client)):
    return await client.generate_lore_image(
        body.image_config, body.item, body.world_name, body.world_description
    )


# ── App ──────────────────────────────────────────────────


async def _llm_error_handler(request: Request, exc: LLMError) -> JSONResponse:
    if isinstance(exc, ConfigurationError):
        status = 400
    elif isinstance(exc, CharacterImportFailed):
        status = 422
    else:
        status = 502
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def create_app(client: StoryClient | None = None) -> FastAPI:
    """Build the app. Without an explicit client, one is built from the environment."""
    if client is None:
        settings = Settings.from_env()
        client = StoryClient(create_managed_client(settings), settings)

    app = FastAPI(title="Taleforge")
    app.state.client = client
    app.include_router(router, prefix="/api")
    app.add_exception_handler(LLMError, _llm_error_handler)
    return app


# Default app instance for uvicorn (settings from the environment)
app = create_app()
