import os
import json
import logging
from typing import Any, Optional, Protocol

import httpx
from openai import AsyncOpenAI, APIError, APITimeoutError, APIConnectionError
from dotenv import load_dotenv

from implementation.classes.errors import (
    ConfigurationError,
    MalformedResponseError,
    ProviderUnavailableError,
)

# Load environment variables (for API key)
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
REQUEST_TIMEOUT_SECONDS = 30.0


# ===============================
#           Clients
# ===============================

def openai_api_key() -> Optional[str]:
    return os.getenv("OPENAI_API_KEY") or None


def openai_model() -> str:
    return os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL)


def create_openai_client(timeout: float = REQUEST_TIMEOUT_SECONDS) -> AsyncOpenAI:
    """Build an async OpenAI client, failing fast when no key is configured."""
    api_key = openai_api_key()
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY environment variable is not set")
    return AsyncOpenAI(api_key=api_key, timeout=httpx.Timeout(timeout), max_retries=1)


# ===============================
#     Base Generation Methods
# ===============================

def parse_json_object(raw: Optional[str]) -> dict[str, Any]:
    """Decode model output that must be a single JSON object."""
    if not raw:
        raise MalformedResponseError("Empty LLM response")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"LLM response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponseError(f"LLM response is a {type(data).__name__}, expected an object")
    return data


async def generate_openai_json_async(
    user_prompt: str,
    system_prompt: str,
    model: Optional[str] = None,
    temperature: float = 0.2,
    client: Optional[AsyncOpenAI] = None,
) -> dict[str, Any]:
    """
    Run one JSON-mode chat completion and return the decoded object.

    The returned dict is NOT shape-validated; callers validate it against the
    pydantic schema they expect.

    Raises:
        ConfigurationError: no OpenAI key configured (and no client passed in).
        ProviderUnavailableError: network, timeout or API error.
        MalformedResponseError: empty, non-JSON or non-object content.
    """
    client = client or create_openai_client()
    try:
        response = await client.chat.completions.create(
            model=model or openai_model(),
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            temperature=temperature,
            response_format={"type": "json_object"},
        )
    except (APITimeoutError, APIConnectionError) as e:
        raise ProviderUnavailableError(f"OpenAI request failed: {e}") from e
    except APIError as e:
        raise ProviderUnavailableError(f"OpenAI returned an error: {e}") from e

    if not response.choices:
        raise MalformedResponseError("LLM response has no choices")
    return parse_json_object(response.choices[0].message.content)


class JSONGenerator(Protocol):
    """Anything that can answer a system/user prompt pair with a JSON object."""

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
    ) -> dict[str, Any]: ...


class OpenAIJSONGenerator:
    """
    Instruction-model collaborator: `complete_json(system, user) -> dict`.

    Holds one lazily-created client so a pipeline run reuses its connection
    pool across the extraction and re-ranking calls.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or openai_api_key() is not None

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
    ) -> dict[str, Any]:
        if self._client is None:
            self._client = create_openai_client()
        return await generate_openai_json_async(
            user_prompt=user_prompt,
            system_prompt=system_prompt,
            model=self.model,
            temperature=temperature,
            client=self._client,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
        self._client = None


async def check_openai() -> str:
    """List models and return 'ok', 'not configured' or an error message string."""
    if not openai_api_key():
        return "not configured"
    client = create_openai_client()
    try:
        await client.models.list()
        return "ok"
    except Exception as e:
        return str(e)
    finally:
        await client.close()
