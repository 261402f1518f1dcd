"""LLM Client for Groq API integration."""
import re
import time
import logging
from typing import Optional
from groq import Groq
from groq import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
)
from pydantic import ValidationError

from models.api import GenerationReply
from services.errors import (
    EmptyGenerationResult,
    GenerationParseError,
    ProviderAuthError,
    ProviderUnavailable,
)
from services.prompt_composer import GenerationRequest
from config import (
    GROQ_API_KEY,
    GENERATION_MODEL,
    GENERATION_MAX_TOKENS,
    GENERATION_TEMPERATURE,
    PROVIDER_TIMEOUT,
)

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class LLMClient:
    """Client for the Groq chat completions API returning structured replies."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = GENERATION_MODEL,
        max_tokens: int = GENERATION_MAX_TOKENS,
        temperature: float = GENERATION_TEMPERATURE,
        timeout: float = PROVIDER_TIMEOUT
    ):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Chat model name
            max_tokens: Upper bound on completion tokens
            temperature: Sampling temperature
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        # The SDK retries by default; retries are left to the caller
        self.client = Groq(api_key=self.api_key, timeout=timeout, max_retries=0)
        logger.info("LLMClient initialized successfully")

    def generate(self, request: GenerationRequest) -> GenerationReply:
        """
        Generate a structured reply for a composed request.

        Args:
            request: Request built by PromptComposer

        Returns:
            GenerationReply with answer and two follow-up suggestions

        Raises:
            ProviderAuthError: API key rejected
            ProviderUnavailable: Rate limit, timeout, connection or API error
            EmptyGenerationResult: Zero completions returned
            GenerationParseError: Completion is empty or not the expected JSON object
        """
        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {self.model}")

            response = self.client.chat.completions.create(
                model=self.model,
                messages=request.to_messages(),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                response_format={"type": "json_object"}
            )

        except (AuthenticationError, PermissionDeniedError) as e:
            self._log_failure("Authentication error", start_time, e)
            raise ProviderAuthError(
                "Authentication failed. Please check your API key.",
                details={"provider": "generation", "model": self.model}
            ) from e

        except RateLimitError as e:
            self._log_failure("Rate limit error", start_time, e)
            raise ProviderUnavailable(
                "Rate limit exceeded. Please try again in a few moments.",
                details={"provider": "generation", "model": self.model, "retry_after": 60}
            ) from e

        except APITimeoutError as e:
            self._log_failure("Timeout error", start_time, e)
            raise ProviderUnavailable(
                "Request timed out. Please try again.",
                details={"provider": "generation", "model": self.model}
            ) from e

        except APIConnectionError as e:
            self._log_failure("Connection error", start_time, e)
            raise ProviderUnavailable(
                "Generation provider is unreachable.",
                details={"provider": "generation", "model": self.model}
            ) from e

        except APIError as e:
            self._log_failure("API error", start_time, e)
            raise ProviderUnavailable(
                "Generation provider returned an error.",
                details={"provider": "generation", "model": self.model,
                         "error_type": type(e).__name__}
            ) from e

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.choices:
            logger.error(f"No completion returned: model={self.model}, latency={latency_ms}ms")
            raise EmptyGenerationResult(
                "No completion returned by the provider",
                details={"provider": "generation", "model": self.model}
            )

        text = response.choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        logger.info(
            f"Generated response: model={self.model}, "
            f"input_tokens={getattr(usage, 'prompt_tokens', None)}, "
            f"output_tokens={getattr(usage, 'completion_tokens', None)}, "
            f"latency={latency_ms}ms"
        )

        return self.parse_reply(text)

    @staticmethod
    def parse_reply(text: str) -> GenerationReply:
        """
        Parse completion text into a GenerationReply.

        A single surrounding markdown code fence is tolerated.

        Raises:
            GenerationParseError: Text is not a JSON object with string
                ``answer``, ``recommend1`` and ``recommend2`` fields
        """
        candidate = text.strip()
        fenced = _CODE_FENCE_RE.match(candidate)
        if fenced:
            candidate = fenced.group(1)

        try:
            return GenerationReply.model_validate_json(candidate)
        except ValidationError as e:
            logger.error(f"Completion is not a valid structured reply: {e.error_count()} errors")
            logger.debug(f"Unparseable completion: {text!r}")
            raise GenerationParseError(
                "Completion is not a valid structured reply",
                details={"provider": "generation", "errors": e.error_count()}
            ) from e

    def _log_failure(self, label: str, start_time: float, error: Exception) -> None:
        latency_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"{label}: model={self.model}, latency={latency_ms}ms, error={error}",
            exc_info=True,
            extra={"extra": {"provider": "generation", "model": self.model,
                             "latency_ms": latency_ms}}
        )
