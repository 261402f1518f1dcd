"""Error taxonomy for the retrieval-augmented response pipeline."""
from typing import Any, Dict, Optional


class RelayError(Exception):
    """
    Base class for every failure the pipeline reports.

    Each subclass carries a stable ``code``. ``stage`` is filled in by the
    orchestrator with the pipeline stage the error originated from.
    """

    code = "RELAY_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        stage: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.stage = stage

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "stage": self.stage,
            "details": dict(self.details),
        }


class ProviderUnavailable(RelayError):
    """Network failure, timeout, rate limit or 5xx from an external provider."""
    code = "PROVIDER_UNAVAILABLE"


class ProviderAuthError(RelayError):
    """Missing or rejected provider credential."""
    code = "PROVIDER_AUTH_ERROR"


class ProviderResponseInvalid(RelayError):
    """Provider answered, but the body is empty or malformed."""
    code = "PROVIDER_RESPONSE_INVALID"


class GenerationParseError(RelayError):
    """Completion text is not the expected three-field JSON object."""
    code = "GENERATION_PARSE_ERROR"


class EmptyGenerationResult(RelayError):
    """Provider returned zero completions."""
    code = "EMPTY_GENERATION_RESULT"


class StoreUnavailable(RelayError):
    """Knowledge or conversation store could not be queried."""
    code = "STORE_UNAVAILABLE"


class RetrievalFailed(RelayError):
    code = "RETRIEVAL_FAILED"


class PersistenceFailed(RelayError):
    code = "PERSISTENCE_FAILED"


class MalformedInput(RelayError):
    """Chat payload is not a JSON object with a non-empty ``query``."""
    code = "MALFORMED_INPUT"
