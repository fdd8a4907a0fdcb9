"""Voyage AI embeddings client using API key authentication."""

import random
import time
from http import HTTPStatus

import httpx
import structlog

from news_digest.embeddings.errors import (
    EmbeddingAuthError,
    ProviderError,
    TransientProviderError,
)


logger = structlog.get_logger()

DEFAULT_BASE_URL = "https://api.voyageai.com/v1/embeddings"
DEFAULT_MODEL = "voyage-4-lite"
DEFAULT_BATCH_SIZE = 128

_RETRY_BASE_DELAY = 2.0
_RETRYABLE_STATUS_CODES = {
    HTTPStatus.TOO_MANY_REQUESTS,
    HTTPStatus.SERVICE_UNAVAILABLE,
}
_AUTH_STATUS_CODES = {HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN}


class VoyageEmbedder:
    """Client for the Voyage AI embeddings endpoint.

    Texts are sent in batches of at most ``batch_size`` with
    ``input_type="document"``; vectors come back in input order.
    """

    def __init__(  # noqa: PLR0913
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_base_delay: float = _RETRY_BASE_DELAY,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Voyage AI API key.
            model: Embedding model identifier.
            base_url: Embeddings endpoint URL.
            batch_size: Maximum texts per request.
            timeout: Per-request HTTP timeout in seconds.
            max_retries: Retries on 429/503 responses.
            retry_base_delay: Base delay for exponential backoff.

        Raises:
            EmbeddingAuthError: If the API key is empty.
        """
        if not api_key:
            msg = "VOYAGE_API_KEY is not set"
            raise EmbeddingAuthError(msg)

        self._api_key = api_key
        self.model = model
        self._base_url = base_url
        self._batch_size = batch_size
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._log = logger.bind(component="embeddings", provider="voyage", model=model)

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in order-preserving batches.

        Args:
            texts: Texts to embed.

        Returns:
            One vector per text, in input order.

        Raises:
            TransientProviderError: On network failure, timeout, or 429/503
                after all retries.
            EmbeddingAuthError: If the API rejects the key.
            ProviderError: On any other non-success response.
        """
        if not texts:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start : start + self._batch_size]
            vectors.extend(self._embed_batch(batch))

        self._log.info("texts_embedded", count=len(texts), dim=len(vectors[0]))
        return vectors

    def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        """Send one batch, retrying with exponential backoff on 429/503."""
        request_body: dict[str, object] = {
            "input": batch,
            "model": self.model,
            "input_type": "document",
        }

        last_exc: TransientProviderError | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = httpx.post(
                    self._base_url,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                    json=request_body,
                    timeout=self._timeout,
                )
            except httpx.HTTPError as exc:
                msg = f"Voyage API request failed: {exc}"
                raise TransientProviderError(msg) from exc

            if response.status_code == HTTPStatus.OK:
                break

            if response.status_code in _RETRYABLE_STATUS_CODES:
                last_exc = TransientProviderError(
                    f"Voyage API returned {response.status_code}",
                    status_code=response.status_code,
                )
                if attempt < self._max_retries:
                    jitter = random.uniform(0, 1)  # noqa: S311
                    delay = self._retry_base_delay * (2**attempt) + jitter
                    self._log.warning(
                        "voyage_retryable_error",
                        status=response.status_code,
                        attempt=attempt + 1,
                        retry_delay=round(delay, 1),
                    )
                    time.sleep(delay)
                continue

            if response.status_code in _AUTH_STATUS_CODES:
                msg = f"Voyage API rejected the API key ({response.status_code})"
                raise EmbeddingAuthError(msg)

            if response.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
                msg = f"Voyage API returned {response.status_code}"
                raise TransientProviderError(msg, status_code=response.status_code)

            msg = f"Voyage API returned {response.status_code}: {response.text[:200]}"
            raise ProviderError(msg)
        else:
            raise last_exc or TransientProviderError("All retries exhausted")

        data = response.json().get("data", [])
        if len(data) != len(batch):
            msg = f"Voyage API returned {len(data)} embeddings for {len(batch)} texts"
            raise ProviderError(msg)

        ordered = sorted(data, key=lambda d: d.get("index", 0))
        return [list(map(float, d["embedding"])) for d in ordered]
