"""
Embedding providers and vector math for on-the-fly similarity scoring.

There is no stored index: every search embeds the canonical query and a small
set of candidate texts, then compares them with cosine similarity.

Providers (both satisfy EmbeddingProvider.embed(text) -> list[float]):
  - HttpEmbeddingProvider: POSTs {text, model} to EMBEDDING_API_URL (the
    feature-extraction proxy). Accepts {"embedding": [...]}, a bare vector,
    or a nested feature-extraction payload.
  - OpenAIEmbeddingProvider: OpenAI's text-embedding-3-small.

Providers fail closed: they raise (ConfigurationError,
ProviderUnavailableError, MalformedResponseError) or return an empty vector.
Callers must treat both outcomes the same way.
"""

import os
import logging
from typing import Any, Optional, Protocol

import httpx
import numpy as np
from dotenv import load_dotenv
from openai import AsyncOpenAI, APIError

from implementation.classes.enums import EmbeddingBackend
from implementation.classes.errors import (
    ConfigurationError,
    MalformedResponseError,
    ProviderUnavailableError,
)
from implementation.llms.generic_methods import REQUEST_TIMEOUT_SECONDS, create_openai_client

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_HTTP_EMBEDDING_MODEL = "intfloat/e5-base-v2"
DEFAULT_OPENAI_EMBEDDING_MODEL = "text-embedding-3-small"


# ===============================
#         Normalization
# ===============================

def normalize_vector(vector: list[float], eps: float = 1e-8) -> list[float]:
    """
    Normalizes a vector to unit length.

    Args:
        vector: Vector as list of floats
        eps: Small epsilon to avoid division by zero

    Returns:
        Normalized vector as list of floats (all zeros for a zero-norm input)
    """
    vec_array = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(vec_array)

    if norm < eps:
        return [0.0] * len(vector)

    return (vec_array / norm).tolist()


def cosine_similarity(vec1: list[float], vec2: list[float], eps: float = 1e-12) -> float:
    """
    Computes cosine similarity between two vectors.

    Defined as exactly 0.0, never an error, when either vector is empty, the
    lengths differ, either norm is (near) zero, or the inputs are not finite.
    Symmetric in its arguments; a non-zero vector compared with itself is 1.0
    within floating tolerance.

    Args:
        vec1: First vector as list of floats
        vec2: Second vector as list of floats
        eps: Norm below which a vector counts as zero

    Returns:
        Cosine similarity in [-1.0, 1.0]
    """
    if vec1 is None or vec2 is None or len(vec1) == 0 or len(vec2) == 0 or len(vec1) != len(vec2):
        return 0.0

    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)
    if a.ndim != 1 or not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
        return 0.0

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a < eps or norm_b < eps:
        return 0.0

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))


# ===============================
#      Response Parsing
# ===============================

def parse_embedding_payload(payload: Any) -> list[float]:
    """
    Extract one sentence vector from an embedding endpoint payload.

    Supported shapes:
        {"embedding": [0.1, ...]}
        [0.1, ...]
        [[0.1, ...]]                    (single-input batch)
        [[0.1, ...], [0.2, ...], ...]   (token vectors → mean pooled)

    Raises:
        MalformedResponseError: payload matches none of the shapes or holds
            non-numeric values.
    """
    if isinstance(payload, dict):
        if "embedding" not in payload:
            raise MalformedResponseError(f"Embedding payload has no 'embedding' key: {list(payload)[:5]}")
        payload = payload["embedding"]

    if not isinstance(payload, list):
        raise MalformedResponseError(f"Embedding payload is a {type(payload).__name__}, expected a list")
    if not payload:
        return []

    if isinstance(payload[0], list):
        if len(payload) == 1:
            return parse_embedding_payload(payload[0])
        try:
            matrix = np.asarray(payload, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(f"Ragged or non-numeric token embeddings: {e}") from e
        if matrix.ndim != 2:
            raise MalformedResponseError(f"Unexpected embedding payload rank {matrix.ndim}")
        return matrix.mean(axis=0).tolist()

    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in payload):
        raise MalformedResponseError("Embedding payload contains non-numeric values")
    return [float(v) for v in payload]


# ===============================
#          Providers
# ===============================

class EmbeddingProvider(Protocol):
    model: str

    async def embed(self, text: str) -> list[float]: ...


class HttpEmbeddingProvider:
    """Embedding proxy client over httpx."""

    def __init__(
        self,
        url: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.url = url if url is not None else os.getenv("EMBEDDING_API_URL")
        self.model = model or os.getenv("EMBEDDING_MODEL", DEFAULT_HTTP_EMBEDDING_MODEL)
        self.api_key = api_key if api_key is not None else (
            os.getenv("HUGGING_FACE_API_KEY") or os.getenv("VITE_HUGGING_FACE_API_KEY")
        )
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ValueError("text cannot be empty")
        if not self.url:
            raise ConfigurationError("EMBEDDING_API_URL environment variable is not set")

        try:
            response = await self._get_client().post(
                self.url,
                json={"text": text.strip(), "model": self.model},
                headers=self._headers(),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError(
                f"Embedding endpoint returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"Embedding request failed: {e!r}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError("Embedding endpoint returned non-JSON body") from e
        return parse_embedding_payload(payload)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "HttpEmbeddingProvider":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class OpenAIEmbeddingProvider:
    """OpenAI embeddings endpoint."""

    def __init__(
        self,
        model: str = DEFAULT_OPENAI_EMBEDDING_MODEL,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self._client = client

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ValueError("text cannot be empty")
        if self._client is None:
            self._client = create_openai_client()
        try:
            response = await self._client.embeddings.create(
                model=self.model,
                input=text.strip(),
            )
        except APIError as e:
            raise ProviderUnavailableError(f"OpenAI embedding failed: {e}") from e
        if not response.data:
            return []
        return list(response.data[0].embedding)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
        self._client = None


def build_embedding_provider() -> HttpEmbeddingProvider | OpenAIEmbeddingProvider:
    """
    Select the embedding provider from the environment.

    EMBEDDING_PROVIDER wins when set. Otherwise the HTTP proxy is used when
    EMBEDDING_API_URL is configured, then OpenAI when a key is present, and
    finally an unconfigured HTTP provider that fails closed on every call.
    """
    backend = EmbeddingBackend.from_string(os.getenv("EMBEDDING_PROVIDER", ""))
    if backend is None:
        if os.getenv("EMBEDDING_API_URL"):
            backend = EmbeddingBackend.HTTP
        elif os.getenv("OPENAI_API_KEY"):
            backend = EmbeddingBackend.OPENAI
        else:
            backend = EmbeddingBackend.HTTP

    logger.debug("Using %s embedding provider", backend.value)
    if backend is EmbeddingBackend.OPENAI:
        return OpenAIEmbeddingProvider()
    return HttpEmbeddingProvider()


async def check_embedding() -> str:
    """Embed a probe text and return 'ok', 'not configured' or an error message string."""
    provider = build_embedding_provider()
    if isinstance(provider, HttpEmbeddingProvider) and not provider.url:
        return "not configured"
    try:
        vector = await provider.embed("health check")
        return "ok" if vector else "empty embedding"
    except ConfigurationError:
        return "not configured"
    except Exception as e:
        return str(e)
    finally:
        await provider.aclose()
