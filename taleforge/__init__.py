"""Taleforge — provider layer for an AI-assisted story and world-building UI.

One StoryClient method per logical operation (continue a story, brainstorm
ideas, name and describe lore, import a character sheet, generate a world,
paint a lore image). Each call takes an explicit provider config snapshot:

  managed                  google-genai SDK, credential set at startup
  openai-compatible        remote /chat/completions with bearer auth
  openai-compatible-local  local /chat/completions, no auth, no model

Prompt text lives in taleforge.prompts, response shapes and their
validation in taleforge.schemas, and the Hugging Face style image retry loop
in taleforge.images. Every failure is an LLMError (taleforge.errors).
"""

from .client import StoryClient, fetch_available_models  # noqa: F401
from .errors import (  # noqa: F401
    CharacterImportFailed,
    ConfigurationError,
    ImageStillLoadingError,
    LLMError,
    ProviderContractError,
    TransportError,
)
from .models import (  # noqa: F401
    ImageGenConfig,
    LocalOpenAIConfig,
    LoreItem,
    ManagedConfig,
    OpenAICompatibleConfig,
    WorldGenOptions,
)
