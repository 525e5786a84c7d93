# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Embedding service for API-based embedding generation.

Memories are embedded once when created; the current learner message is
embedded at retrieval time and compared to stored vectors by cosine
similarity.

Supported providers:
- OpenAI, Cohere, Gemini and others via LiteLLM
- Ollama via direct httpx calls, because LiteLLM does not pass the
  Authorization header for authenticated Ollama endpoints

Vectors are persisted as little-endian float32 bytes (see serialize()
and deserialize()).

Example:
    >>> from src.core.intelligence.embeddings import EmbeddingService
    >>> service = EmbeddingService.from_settings(get_settings().embedding)
    >>> vector = await service.embed_text("Struggles with async/await")
    >>> blob = EmbeddingService.serialize(vector)
"""

import logging
import struct
from typing import TYPE_CHECKING, Any, Optional, Sequence

import httpx
import litellm
from litellm import aembedding

if TYPE_CHECKING:
    from src.core.config.settings import EmbeddingSettings

logger = logging.getLogger(__name__)

# Known output dimensions, used when the caller does not pass one
MODEL_DIMENSIONS: dict[str, int] = {
    "ollama/nomic-embed-text": 768,
    "ollama/mxbai-embed-large": 1024,
    "ollama/all-minilm": 384,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "embed-english-v3.0": 1024,
    "embed-multilingual-v3.0": 1024,
    "gemini/text-embedding-004": 768,
}

_FLOAT32_SIZE = 4


class EmbeddingError(Exception):
    """Exception raised when embedding generation fails.

    Attributes:
        message: Error description.
        model: Model that caused the error.
        original_error: Original exception if any.
    """

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.model = model
        self.original_error = original_error
        super().__init__(self.message)


class EmbeddingService:
    """Generates text embeddings through LiteLLM or a direct Ollama call.

    Attributes:
        model: The embedding model identifier in LiteLLM format.
        dimension: The output dimension of the embedding vectors.
        batch_size: Maximum number of texts to embed in a single request.
    """

    def __init__(
        self,
        model: str,
        dimension: Optional[int] = None,
        batch_size: int = 32,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
    ):
        """Initialize the embedding service.

        Args:
            model: Embedding model in LiteLLM format (e.g. 'ollama/nomic-embed-text').
            dimension: Vector dimension. Looked up from the model if omitted.
            batch_size: Maximum batch size for embed_batch.
            api_base: Optional provider base URL. Required for Ollama.
            api_key: Optional provider API key.
            timeout: HTTP timeout in seconds for the Ollama path.
        """
        self._model = model
        self._dimension = dimension or MODEL_DIMENSIONS.get(model, 0)
        self._batch_size = max(1, batch_size)
        self._api_base = api_base
        self._api_key = api_key
        self._timeout = timeout

        litellm.set_verbose = False

        logger.info(
            "EmbeddingService initialized with model=%s, dimension=%d, batch_size=%d",
            self._model,
            self._dimension,
            self._batch_size,
        )

    @classmethod
    def from_settings(cls, settings: "EmbeddingSettings") -> "EmbeddingService":
        """Create a service from embedding settings.

        Args:
            settings: Embedding settings.

        Returns:
            A configured EmbeddingService.
        """
        return cls(
            model=settings.model,
            dimension=settings.dimension,
            batch_size=settings.batch_size,
            api_base=settings.api_base,
            api_key=settings.api_key.get_secret_value() if settings.api_key else None,
        )

    @property
    def model(self) -> str:
        """Embedding model identifier."""
        return self._model

    @property
    def dimension(self) -> int:
        """Embedding vector dimension."""
        return self._dimension

    @property
    def batch_size(self) -> int:
        """Maximum number of texts per request."""
        return self._batch_size

    def _is_ollama(self) -> bool:
        return self._model.startswith("ollama/")

    def _litellm_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self._api_base:
            params["api_base"] = self._api_base
        if self._api_key:
            params["api_key"] = self._api_key
        return params

    async def _ollama_embed(self, texts: list[str]) -> list[list[float]]:
        """Call the Ollama /api/embed endpoint directly.

        Args:
            texts: Texts to embed.

        Returns:
            One embedding vector per text.

        Raises:
            EmbeddingError: If the API call fails.
        """
        if not self._api_base:
            raise EmbeddingError("Ollama embeddings require api_base", model=self._model)

        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._api_base.rstrip('/')}/api/embed",
                    headers=headers,
                    json={"model": self._model.removeprefix("ollama/"), "input": texts},
                )
                response.raise_for_status()
                return response.json().get("embeddings", [])
        except httpx.HTTPStatusError as e:
            raise EmbeddingError(
                message=f"Ollama API error: {e.response.status_code} - {e.response.text}",
                model=self._model,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise EmbeddingError(
                message=f"Failed to call Ollama embedding API: {e}",
                model=self._model,
                original_error=e,
            ) from e

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        if self._is_ollama():
            return await self._ollama_embed(texts)

        response = await aembedding(
            model=self._model,
            input=texts,
            **self._litellm_params(),
        )
        return [item["embedding"] for item in response.data]

    async def embed_text(self, text: str) -> list[float]:
        """Generate the embedding vector for a single text.

        Args:
            text: Input text to embed.

        Returns:
            Embedding vector as a list of floats.

        Raises:
            ValueError: If text is empty.
            EmbeddingError: If embedding generation fails.
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        try:
            embeddings = await self._embed([text])
        except EmbeddingError:
            raise
        except Exception as e:
            logger.error(
                "Failed to generate embedding: model=%s, text_length=%d, error=%s",
                self._model,
                len(text),
                str(e),
            )
            raise EmbeddingError(
                message=f"Failed to generate embedding: {e}",
                model=self._model,
                original_error=e,
            ) from e

        if not embeddings or not embeddings[0]:
            raise EmbeddingError("Provider returned no embedding", model=self._model)

        logger.debug("Generated embedding of dimension %d", len(embeddings[0]))
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for several texts.

        Texts are sent in chunks of batch_size.

        Args:
            texts: Non-empty texts to embed.

        Returns:
            One embedding vector per input text, in input order.

        Raises:
            ValueError: If the list or any text is empty.
            EmbeddingError: If embedding generation fails.
        """
        if not texts:
            raise ValueError("Texts list cannot be empty")
        if any(not text or not text.strip() for text in texts):
            raise ValueError("Texts cannot be empty")

        result: list[list[float]] = []
        try:
            for start in range(0, len(texts), self._batch_size):
                result.extend(await self._embed(texts[start : start + self._batch_size]))
        except EmbeddingError:
            raise
        except Exception as e:
            logger.error(
                "Failed to generate batch embeddings: model=%s, count=%d, error=%s",
                self._model,
                len(texts),
                str(e),
            )
            raise EmbeddingError(
                message=f"Failed to generate batch embeddings: {e}",
                model=self._model,
                original_error=e,
            ) from e

        if len(result) != len(texts):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, got {len(result)}",
                model=self._model,
            )
        return result

    @staticmethod
    def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
        """Calculate cosine similarity between two vectors.

        Args:
            vec1: First embedding vector.
            vec2: Second embedding vector.

        Returns:
            Similarity between -1 and 1. Zero-norm or mismatched vectors
            score 0.0.
        """
        if len(vec1) != len(vec2) or not vec1:
            return 0.0

        dot_product = sum(a * b for a, b in zip(vec1, vec2))
        norm1 = sum(a * a for a in vec1) ** 0.5
        norm2 = sum(b * b for b in vec2) ** 0.5

        if norm1 == 0 or norm2 == 0:
            return 0.0

        return dot_product / (norm1 * norm2)

    @staticmethod
    def serialize(vector: Sequence[float]) -> bytes:
        """Pack a vector as little-endian float32 bytes."""
        return struct.pack(f"<{len(vector)}f", *vector)

    @staticmethod
    def deserialize(data: bytes) -> list[float]:
        """Unpack little-endian float32 bytes into a vector.

        Raises:
            ValueError: If the byte length is not a multiple of four.
        """
        if len(data) % _FLOAT32_SIZE:
            raise ValueError(f"Invalid embedding byte length: {len(data)}")
        return list(struct.unpack(f"<{len(data) // _FLOAT32_SIZE}f", data))

    def __repr__(self) -> str:
        return (
            f"EmbeddingService(model={self._model!r}, "
            f"dimension={self._dimension}, batch_size={self._batch_size})"
        )
