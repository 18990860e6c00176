"""
Ollama client for generating embeddings using nomic-embed-text model.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import httpx
import numpy as np
import ollama

from .errors import EmbeddingGenerationFailed, ProviderRateLimited, ProviderUnavailable
from .formatting import MAX_TEXT_CHARS, clean_text
from .retry import RetryError, retry_call

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Remote text-embedding call. Holds no cache state."""

    model: str

    @abstractmethod
    def embed(self, text: str) -> np.ndarray:
        """
        Generate an embedding for text.

        Raises:
            ProviderUnavailable: Provider unreachable after the retry budget
            ProviderRateLimited: Provider kept rate limiting after the retry budget
            EmbeddingGenerationFailed: Input text or provider response unusable
        """


class OllamaEmbeddingClient(EmbeddingProvider):
    """Client for generating embeddings using Ollama with nomic-embed-text model."""

    def __init__(self,
                 host: str = "http://localhost:11434",
                 model: str = "nomic-embed-text",
                 timeout: float = 30,
                 max_retries: int = 3,
                 backoff_base: float = 1.0,
                 backoff_max: float = 30.0,
                 max_text_chars: int = MAX_TEXT_CHARS,
                 expected_dimensions: Optional[int] = None,
                 sleep: Optional[Callable[[float], None]] = None,
                 client: Optional[ollama.Client] = None):
        self.host = host
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.max_text_chars = max_text_chars
        self.expected_dimensions = expected_dimensions
        self._sleep = sleep
        self.client = client or ollama.Client(host=host, timeout=timeout)
        self._model_ready = None

    @classmethod
    def from_config(cls, config) -> "OllamaEmbeddingClient":
        """Build a client from a ConfigManager's ollama section."""
        return cls(
            host=f"http://{config.get('ollama', 'host')}:{config.get('ollama', 'port')}",
            model=config.get('ollama', 'model'),
            timeout=config.get('ollama', 'timeout'),
            max_retries=config.get('ollama', 'max_retries'),
            backoff_base=config.get('ollama', 'backoff_base'),
            backoff_max=config.get('ollama', 'backoff_max'),
            max_text_chars=config.get('matching', 'max_text_chars'),
            expected_dimensions=config.get('ollama', 'dimensions') or None,
        )

    def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        inner = getattr(self.client, "_client", None)
        if isinstance(inner, httpx.Client):
            inner.close()

    def ensure_model_ready(self) -> bool:
        """Ensure the embedding model is available, pulling it if needed."""
        if self._model_ready is not None:
            return self._model_ready

        try:
            models = self.client.list()
            model_names = [m.get('model', m.get('name', '')) for m in models.get('models', [])]

            if self.model in model_names or f"{self.model}:latest" in model_names:
                self._model_ready = True
                return True

            logger.warning("Pulling model %s... This may take a while.", self.model)
            self.client.pull(self.model)
            self._model_ready = True
            logger.info("Model %s is now ready", self.model)
            return True

        except (ConnectionError, httpx.HTTPError, ollama.ResponseError) as e:
            logger.error("Error checking model availability: %s", e)
            self._model_ready = False
            return False

    def embed(self, text: str) -> np.ndarray:
        """Generate embedding for a single text, retrying transient failures."""
        cleaned_text = clean_text(text, self.max_text_chars)
        if not cleaned_text:
            raise EmbeddingGenerationFailed("Text cannot be empty")

        retry_kwargs = {}
        if self._sleep is not None:
            retry_kwargs["sleep"] = self._sleep

        try:
            return retry_call(
                self._embed_once, cleaned_text,
                max_retries=self.max_retries,
                base_delay=self.backoff_base,
                max_delay=self.backoff_max,
                exceptions=(ProviderUnavailable, ProviderRateLimited),
                on_retry=self._log_retry,
                **retry_kwargs,
            )
        except RetryError as e:
            logger.error("Embedding provider gave up after %d attempts: %s",
                         self.max_retries + 1, e.last_exception)
            raise e.last_exception

    def _embed_once(self, text: str) -> np.ndarray:
        try:
            response = self.client.embeddings(model=self.model, prompt=text)
        except ollama.ResponseError as e:
            if e.status_code == 429:
                raise ProviderRateLimited(str(e)) from e
            if e.status_code >= 500 or e.status_code < 0:
                raise ProviderUnavailable(str(e)) from e
            raise EmbeddingGenerationFailed(f"Ollama rejected request: {e}") from e
        except (ConnectionError, httpx.TransportError) as e:
            raise ProviderUnavailable(f"Ollama unreachable at {self.host}: {e}") from e

        values = response['embedding'] if 'embedding' in response else None
        if not values:
            raise EmbeddingGenerationFailed("No embedding returned from Ollama")

        embedding = np.array(values, dtype=np.float32)
        if self.expected_dimensions and embedding.shape[0] != self.expected_dimensions:
            raise EmbeddingGenerationFailed(
                f"Expected {self.expected_dimensions} dimensions, got {embedding.shape[0]}"
            )
        return embedding

    def _log_retry(self, attempt: int, error: Exception, delay: float) -> None:
        logger.warning("Embedding attempt %d failed (%s); retrying in %.1fs", attempt, error, delay)

    def get_status(self) -> dict:
        """Get comprehensive status of the Ollama client."""
        status = {
            "host": self.host,
            "model": self.model,
            "connection": False,
            "model_ready": False,
            "error": None
        }

        try:
            self.client.list()
            status["connection"] = True
        except (ConnectionError, httpx.HTTPError, ollama.ResponseError) as e:
            status["error"] = f"Connection failed: {e}"
            return status

        status["model_ready"] = self.ensure_model_ready()
        return status
