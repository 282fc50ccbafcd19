"""Provider transports — one per ProviderConfig variant.

Every transport matches the protocol:

    async def complete(self, envelope: PromptEnvelope, schema: type[Shape] | None) -> str

and returns the model's text with surrounding whitespace trimmed. When a
schema is given the text is expected to be JSON; validating it is the
caller's job (see taleforge.schemas.coerce).

    OpenAIChatTransport — POST {endpoint}/chat/completions. Used by both the
                          remote and the local OpenAI-compatible variants;
                          only the remote one sends auth, attribution and model.
    ManagedTransport    — the google-genai SDK. Supports native response
                          schemas and image generation.

transport_for() resolves a config snapshot to a transport, raising
ConfigurationError before any network I/O when something is missing.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from taleforge.config import Settings
from taleforge.errors import ConfigurationError, ProviderContractError, TransportError
from taleforge.models import (
    GeneratedImage,
    LocalOpenAIConfig,
    ManagedConfig,
    OpenAICompatibleConfig,
    PromptEnvelope,
)
from taleforge.schemas import Shape

logger = logging.getLogger(__name__)

MANAGED_IMAGE_MIME = "image/png"


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class Transport(Protocol):
    name: str
    native_schema: bool

    async def complete(
        self, envelope: PromptEnvelope, schema: type[Shape] | None = None
    ) -> str: ...


# ---------------------------------------------------------------------------
# OpenAI-compatible chat completions
# ---------------------------------------------------------------------------

class OpenAIChatTransport:
    """Async client for OpenAI-style /chat/completions endpoints.

    Args:
        endpoint: Base URL, e.g. "https://openrouter.ai/api/v1".
        api_key:  Bearer token. Only sent when `remote` is set.
        model:    Model identifier. Only sent when `remote` is set.
        remote:   True for hosted providers, False for a local server.
        settings: Timeout and attribution values.
    """

    native_schema = False

    def __init__(
        self,
        endpoint: str,
        *,
        api_key: str = "",
        model: str = "",
        remote: bool = False,
        settings: Settings | None = None,
    ) -> None:
        self._base_url = endpoint.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._remote = remote
        self._settings = settings or Settings()
        self.name = "openai-compatible" if remote else "openai-compatible-local"

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._remote:
            headers["Authorization"] = f"Bearer {self._api_key}"
            headers["HTTP-Referer"] = self._settings.app_url
            headers["X-Title"] = self._settings.app_title
        return headers

    def _build_request(
        self, envelope: PromptEnvelope, json_mode: bool
    ) -> tuple[str, dict[str, Any]]:
        """Return (url, body) for a chat completion."""
        parts: list[dict[str, Any]] = [
            {
                "type": "image_url",
                "image_url": {"url": f"data:{img.mime_type};base64,{img.base64_data}"},
            }
            for img in envelope.image_parts
        ]
        parts.append({"type": "text", "text": envelope.user_text})

        body: dict[str, Any] = {
            "messages": [
                {"role": "system", "content": envelope.system_text},
                {"role": "user", "content": parts},
            ],
        }
        if self._remote:
            body["model"] = self._model
        if json_mode:
            body["response_format"] = {"type": "json_object"}
        return f"{self._base_url}/chat/completions", body

    def _parse_response(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderContractError(
                "Unexpected response format from OpenAI-compatible backend"
            ) from e
        if not isinstance(content, str):
            raise ProviderContractError(
                "Unexpected response format from OpenAI-compatible backend"
            )
        return content.strip()

    async def complete(
        self, envelope: PromptEnvelope, schema: type[Shape] | None = None
    ) -> str:
        url, body = self._build_request(envelope, json_mode=schema is not None)
        logger.debug(
            "llm call provider=%s url=%s prompt_len=%d",
            self.name, url, len(envelope.system_text) + len(envelope.user_text),
        )
        timeout = self._settings.timeout
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise TransportError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.TimeoutException as e:
            raise TransportError(f"LLM backend timed out after {timeout}s") from e
        except httpx.HTTPStatusError as e:
            logger.error("llm error provider=%s body=%s", self.name, e.response.text)
            raise TransportError(
                f"API request failed: {e.response.status_code} {e.response.reason_phrase}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to communicate with LLM backend: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderContractError(
                "Unexpected response format from OpenAI-compatible backend"
            ) from e
        text = self._parse_response(data)
        logger.debug("llm response provider=%s len=%d", self.name, len(text))
        return text


# ---------------------------------------------------------------------------
# Managed provider (google-genai)
# ---------------------------------------------------------------------------

class ManagedTransport:
    """Calls the managed provider through its SDK.

    Structured calls pass the shape class as a native response schema.
    """

    name = "managed"
    native_schema = True

    def __init__(self, client: genai.Client, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or Settings()

    @staticmethod
    def _contents(envelope: PromptEnvelope) -> list[types.Content]:
        parts = [
            types.Part.from_bytes(
                data=base64.b64decode(img.base64_data), mime_type=img.mime_type
            )
            for img in envelope.image_parts
        ]
        parts.append(types.Part.from_text(text=envelope.user_text))
        return [types.Content(role="user", parts=parts)]

    async def complete(
        self, envelope: PromptEnvelope, schema: type[Shape] | None = None
    ) -> str:
        options: dict[str, Any] = {"system_instruction": envelope.system_text}
        if schema is not None:
            options["response_mime_type"] = "application/json"
            options["response_schema"] = schema
        config = types.GenerateContentConfig(**options)

        model = self._settings.text_model
        logger.debug("llm call provider=managed model=%s images=%d", model, len(envelope.image_parts))
        try:
            response = await self._client.aio.models.generate_content(
                model=model, contents=self._contents(envelope), config=config,
            )
        except genai_errors.APIError as e:
            raise TransportError(
                f"API request failed: {e.code} {e.message or e.status}", status_code=e.code
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to communicate with the AI model: {e}") from e

        if not response.text:
            raise ProviderContractError("The AI model returned an empty response.")
        return response.text.strip()

    async def generate_image(self, prompt: str) -> GeneratedImage:
        model = self._settings.image_model
        logger.debug("image call provider=managed model=%s prompt_len=%d", model, len(prompt))
        try:
            response = await self._client.aio.models.generate_images(
                model=model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    output_mime_type=MANAGED_IMAGE_MIME,
                    aspect_ratio="1:1",
                ),
            )
        except genai_errors.APIError as e:
            raise TransportError(
                f"Image generation failed: {e.code} {e.message or e.status}", status_code=e.code
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to generate image with the AI model: {e}") from e

        images = response.generated_images or []
        if not images or images[0].image is None or not images[0].image.image_bytes:
            raise ProviderContractError("The AI did not generate any images.")
        data = base64.b64encode(images[0].image.image_bytes).decode("ascii")
        return GeneratedImage(mime_type=MANAGED_IMAGE_MIME, base64_data=data)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def managed_transport(
    client: genai.Client | None, settings: Settings | None = None
) -> ManagedTransport:
    if client is None:
        raise ConfigurationError(
            "Google GenAI SDK not initialized. Is the default API_KEY available?"
        )
    return ManagedTransport(client, settings)


def transport_for(
    config: ManagedConfig | OpenAICompatibleConfig | LocalOpenAIConfig,
    managed_client: genai.Client | None = None,
    settings: Settings | None = None,
) -> Transport:
    """Resolve one config snapshot to its transport."""
    if isinstance(config, ManagedConfig):
        return managed_transport(managed_client, settings)

    if not config.endpoint.strip():
        raise ConfigurationError(
            "API URL is missing. Please add it in the API Configuration section."
        )
    if isinstance(config, OpenAICompatibleConfig):
        if not config.api_key.strip():
            raise ConfigurationError(
                "API Key is missing. Please add it in the API Configuration section."
            )
        return OpenAIChatTransport(
            config.endpoint, api_key=config.api_key, model=config.model,
            remote=True, settings=settings,
        )
    if isinstance(config, LocalOpenAIConfig):
        return OpenAIChatTransport(config.endpoint, settings=settings)

    raise ConfigurationError(f"Unknown provider: {config!r}")
