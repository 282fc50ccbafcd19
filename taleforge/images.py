"""Image generation through a Hugging Face style inference endpoint.

Cold inference endpoints answer 503 while the model loads, usually with a
JSON body like {"error": "...", "estimated_time": 20.5}. ImageFetcher waits
the advised time (15 s when none is given, never more than 120 s) and tries
again, up to `max_attempts` requests in total. Attempts are strictly
sequential.

    request ──2xx image──▶ GeneratedImage
       │ └──2xx other──▶ ProviderContractError
       ├──503──▶ sleep(estimated_time) ──▶ request   (while attempts remain)
       │     └──▶ ImageStillLoadingError            (budget exhausted)
       └──other──▶ TransportError
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable

import httpx

from taleforge.errors import (
    ConfigurationError,
    ImageStillLoadingError,
    ProviderContractError,
    TransportError,
)
from taleforge.models import GeneratedImage, ImageGenConfig

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
DEFAULT_WAIT_SECONDS = 15.0
MAX_WAIT_SECONDS = 120.0

Sleep = Callable[[float], Awaitable[None]]


def _estimated_wait(resp: httpx.Response, default: float) -> float:
    """Read the advisory estimated_time (seconds) from a 503 body."""
    try:
        body = resp.json()
    except ValueError:
        return default
    if not isinstance(body, dict):
        return default
    value = body.get("estimated_time")
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return default
    return min(float(value), MAX_WAIT_SECONDS)


class ImageFetcher:
    """Fetch one image, riding out "model is loading" responses.

    Args:
        max_attempts: Total requests allowed, including the first.
        default_wait: Seconds to wait on a 503 without estimated_time.
        timeout:      HTTP timeout in seconds per request.
        sleep:        Awaitable delay; tests pass a fake clock.
    """

    def __init__(
        self,
        max_attempts: int = MAX_ATTEMPTS,
        default_wait: float = DEFAULT_WAIT_SECONDS,
        timeout: float = 120.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._max_attempts = max_attempts
        self._default_wait = default_wait
        self._timeout = timeout
        self._sleep = sleep

    async def fetch_image(self, prompt: str, config: ImageGenConfig) -> GeneratedImage:
        if not config.api_key:
            raise ConfigurationError(
                "Hugging Face API Key is missing. Please add it in the API Configuration section."
            )
        if not config.endpoint:
            raise ConfigurationError(
                "Hugging Face API URL is missing. Please add it in the API Configuration section."
            )

        headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            for attempt in range(1, self._max_attempts + 1):
                try:
                    resp = await client.post(
                        config.endpoint, json={"inputs": prompt}, headers=headers
                    )
                except httpx.ConnectError as e:
                    raise TransportError(
                        f"Cannot connect to image backend at {config.endpoint}"
                    ) from e
                except httpx.TimeoutException as e:
                    raise TransportError(
                        f"Image backend timed out after {self._timeout}s"
                    ) from e
                except httpx.HTTPError as e:
                    raise TransportError(f"Failed to communicate with image backend: {e}") from e

                if 200 <= resp.status_code < 300:
                    return self._decode(resp)

                if resp.status_code == 503:
                    wait = _estimated_wait(resp, self._default_wait)
                    logger.warning(
                        "image model is loading; attempt %d/%d, retry in %.1fs",
                        attempt, self._max_attempts, wait,
                    )
                    if attempt < self._max_attempts:
                        await self._sleep(wait)
                        continue
                    raise ImageStillLoadingError(self._max_attempts)

                raise TransportError(
                    f"Hugging Face API request failed: {resp.status_code} "
                    f"{resp.reason_phrase} - {resp.text}",
                    status_code=resp.status_code,
                )

        raise ImageStillLoadingError(self._max_attempts)

    @staticmethod
    def _decode(resp: httpx.Response) -> GeneratedImage:
        mime_type = resp.headers.get("content-type", "").split(";")[0].strip()
        if not mime_type.startswith("image/"):
            raise ProviderContractError(
                f"Hugging Face API returned non-image data: {resp.text[:200]}"
            )
        data = base64.b64encode(resp.content).decode("ascii")
        return GeneratedImage(mime_type=mime_type, base64_data=data)
