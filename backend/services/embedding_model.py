"""Embedding model integration with the OpenAI embeddings API."""
import time
import logging
from typing import List, Optional
import httpx
from config import (
    OPENAI_API_KEY,
    EMBEDDING_MODEL,
    EMBEDDING_DIMENSION,
    EMBEDDING_API_URL,
    PROVIDER_TIMEOUT,
)
from services.errors import ProviderAuthError, ProviderResponseInvalid, ProviderUnavailable

logger = logging.getLogger(__name__)


class EmbeddingModel:
    """Turns query text into a fixed-length embedding vector."""

    def __init__(
        self,
        api_key: Optional[str] = OPENAI_API_KEY,
        model_name: str = EMBEDDING_MODEL,
        api_url: str = EMBEDDING_API_URL,
        timeout: float = PROVIDER_TIMEOUT,
        dimension: int = EMBEDDING_DIMENSION
    ):
        """
        Initialize the embedding client.

        Args:
            api_key: OpenAI API key
            model_name: Embedding model identifier (default: text-embedding-3-small)
            api_url: Embeddings endpoint
            timeout: Request timeout in seconds
            dimension: Expected vector length; must match the stored embeddings

        Raises:
            ValueError: If no API key is configured
        """
        if not api_key:
            raise ValueError("OPENAI_API_KEY environment variable is required")

        self.api_key = api_key
        self.model_name = model_name
        self.api_url = api_url
        self.timeout = timeout
        self.dimension = dimension

        logger.info(f"Initialized EmbeddingModel with model: {model_name}")

    def embed_text(self, text: str) -> List[float]:
        """
        Generate the embedding for a single text string.

        No retry is attempted here; callers that want one wrap this client.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats

        Raises:
            ValueError: If text is empty
            ProviderUnavailable: Network error, timeout, 429 or 5xx
            ProviderAuthError: Credential rejected (401/403)
            ProviderResponseInvalid: Empty, malformed or wrong-length embedding
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {"model": self.model_name, "input": text}

        start_time = time.time()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.api_url, headers=headers, json=payload)
        except httpx.TimeoutException:
            logger.error(f"Embedding request timed out after {self.timeout}s")
            raise ProviderUnavailable(
                f"Embedding request timed out after {self.timeout}s",
                details={"provider": "embedding", "timeout": self.timeout}
            )
        except httpx.RequestError as e:
            logger.error(f"Embedding request failed: {e}")
            raise ProviderUnavailable(
                "Embedding provider is unreachable",
                details={"provider": "embedding", "error_type": type(e).__name__}
            )

        elapsed = time.time() - start_time

        if response.status_code in (401, 403):
            logger.error("Authentication failed for embedding provider")
            raise ProviderAuthError(
                "Embedding provider rejected the API key",
                details={"provider": "embedding", "status": response.status_code}
            )

        if response.status_code == 429 or response.status_code >= 500:
            logger.warning(f"Embedding provider unavailable (status {response.status_code})")
            raise ProviderUnavailable(
                f"Embedding provider returned status {response.status_code}",
                details={"provider": "embedding", "status": response.status_code}
            )

        if response.status_code != 200:
            # Body is logged, never surfaced to the client
            logger.error(
                f"Embedding request failed with status {response.status_code}: {response.text}"
            )
            raise ProviderResponseInvalid(
                f"Embedding provider returned status {response.status_code}",
                details={"provider": "embedding", "status": response.status_code}
            )

        embedding = self._parse_embedding(response)
        logger.debug(f"Generated embedding of dimension {len(embedding)} in {elapsed:.2f}s")
        return embedding

    def _parse_embedding(self, response: httpx.Response) -> List[float]:
        """Extract ``data[0].embedding`` from the provider response."""
        try:
            body = response.json()
        except ValueError:
            raise ProviderResponseInvalid(
                "Embedding response is not valid JSON",
                details={"provider": "embedding"}
            )

        data = body.get("data") if isinstance(body, dict) else None
        if not data:
            raise ProviderResponseInvalid(
                "No embedding data returned",
                details={"provider": "embedding"}
            )

        embedding = data[0].get("embedding") if isinstance(data[0], dict) else None
        if not embedding or not all(
            isinstance(value, (int, float)) and not isinstance(value, bool)
            for value in embedding
        ):
            raise ProviderResponseInvalid(
                "Embedding vector is empty or malformed",
                details={"provider": "embedding"}
            )

        if len(embedding) != self.dimension:
            logger.error(
                f"Embedding has dimension {len(embedding)}, expected {self.dimension}"
            )
            raise ProviderResponseInvalid(
                f"Embedding has dimension {len(embedding)}, expected {self.dimension}",
                details={"provider": "embedding", "dimension": len(embedding),
                         "expected_dimension": self.dimension}
            )

        return [float(value) for value in embedding]
