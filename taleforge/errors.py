"""Error taxonomy for provider calls.

Every failure surfaced by the client is an LLMError. Callers that only want
to show something to the user can rely on str(error) being a short,
human-readable sentence.
"""

from __future__ import annotations


class LLMError(RuntimeError):
    """Raised when a provider cannot be reached, is misconfigured, or misbehaves."""


class ConfigurationError(LLMError):
    """A credential or endpoint is missing. Raised before any network I/O."""


class TransportError(LLMError):
    """Non-2xx response or network failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ImageStillLoadingError(TransportError):
    """The image endpoint kept answering 503 until the attempt budget ran out."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Hugging Face model is still loading after {attempts} attempts. "
            "Please try again later.",
            status_code=503,
        )
        self.attempts = attempts


class ProviderContractError(LLMError):
    """A 2xx response whose body is not what the operation requires."""


class CharacterImportFailed(LLMError):
    """The model reported that the character sheet could not be read.

    The model signals this with the name "Import Failed"; the reason it gave
    is kept on `reason`.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Character import failed: {reason}")
        self.reason = reason
