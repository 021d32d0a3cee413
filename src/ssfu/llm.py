"""LLM client implementations used to generate solutions.

The generator only depends on the LLMClient Protocol, so providers can be
swapped (or mocked in tests) without touching it.
"""

from typing import Any, Protocol

import httpx
from groq import AsyncGroq

DEFAULT_GROQ_MODEL = "llama-3.1-70b-versatile"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-preview-05-20"
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class UnexpectedResponseError(Exception):
    """Raised when a provider answers with an unrecognized shape."""

    pass


class LLMClient(Protocol):
    """Protocol for text completion."""

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Complete a prompt and return the text response."""
        ...


class GroqLLMClient:
    """Chat-completion client for Groq.

    Example:
        llm = GroqLLMClient(AsyncGroq(api_key=os.environ["GROQ_API_KEY"]))
        text = await llm.complete(build_prompt(contraction, expansion))
    """

    def __init__(
        self,
        client: AsyncGroq,
        model: str = DEFAULT_GROQ_MODEL,
    ) -> None:
        """Wrap an AsyncGroq client.

        Args:
            client: Configured AsyncGroq instance.
            model: Chat model name.
        """
        self._client = client
        self._model = model

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Complete a prompt and return the text response.

        Raises:
            UnexpectedResponseError: If the response carries no choices.
        """
        messages: list[dict[str, Any]] = []

        if system:
            messages.append({"role": "system", "content": system})

        messages.append({"role": "user", "content": prompt})

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
        )

        if not response.choices:
            raise UnexpectedResponseError("Groq response has no choices")

        return response.choices[0].message.content or ""

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model


class GeminiLLMClient:
    """LLMClient implementation for the Gemini generateContent REST API."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._http = http_client
        self._timeout = timeout

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model

    @property
    def url(self) -> str:
        return f"{GEMINI_API_URL}/{self._model}:generateContent"

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Complete a prompt and return the text of the first candidate.

        Raises:
            httpx.HTTPError: On transport errors or non-2xx responses.
            UnexpectedResponseError: If the body has no candidate text.
        """
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        if self._http is not None:
            response = await self._post(self._http, payload)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await self._post(client, payload)

        response.raise_for_status()
        return self._extract_text(response.json())

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> httpx.Response:
        return await client.post(
            self.url,
            params={"key": self._api_key},
            json=payload,
            headers={"Content-Type": "application/json"},
        )

    @staticmethod
    def _extract_text(data: Any) -> str:
        """Pull candidates[0].content.parts[0].text out of a response body."""
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise UnexpectedResponseError(
                f"Unexpected Gemini response structure: {data!r:.200}"
            ) from e
        if not isinstance(text, str):
            raise UnexpectedResponseError(f"Gemini candidate text is not a string: {text!r:.200}")
        return text


def build_llm_client(
    provider: str,
    model: str | None = None,
    api_key: str | None = None,
    timeout: float = 30.0,
) -> LLMClient:
    """Create the LLMClient for a provider name ('groq' or 'gemini').

    Raises:
        ValueError: If the provider is unknown.
    """
    provider = provider.lower()
    if provider == "groq":
        return GroqLLMClient(AsyncGroq(api_key=api_key), model=model or DEFAULT_GROQ_MODEL)
    if provider == "gemini":
        return GeminiLLMClient(
            api_key or "", model=model or DEFAULT_GEMINI_MODEL, timeout=timeout
        )
    raise ValueError(f"Unknown LLM provider: {provider}")
