"""
Ollama chat API client.

Thin wrapper around POST /api/chat in non-streaming mode. Every
query is a single user turn, no history is sent.
"""

import httpx
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError


MARKDOWN_INSTRUCTION = "Please answer in Markdown. Use fenced code blocks (```lang ... ```)."


class BackendError(Exception):
    """Ollama call failed. The message is shown to the user."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class OllamaMessage(BaseModel):
    role: str = "assistant"
    content: str = ""


class OllamaChatRequest(BaseModel):
    model: str
    messages: List[OllamaMessage]
    stream: bool = False


class OllamaChatResponse(BaseModel):
    model: str = ""
    message: OllamaMessage = Field(default_factory=OllamaMessage)
    done: bool = False
    error: Optional[str] = None


def build_chat_request(model: str, prompt: str) -> OllamaChatRequest:
    return OllamaChatRequest(
        model=model,
        messages=[OllamaMessage(role="user", content=f"{prompt}\n\n{MARKDOWN_INSTRUCTION}")],
        stream=False,
    )


class OllamaClient:
    """
    Client for the Ollama HTTP API.

    The timeout bounds the whole call; models can take minutes on
    long answers, so the default is generous.
    """

    def __init__(self, base_url: str, timeout: float = 300.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def chat(self, model: str, prompt: str) -> str:
        """
        Call POST /api/chat and return the trimmed reply text.

        Raises:
            BackendError: transport failure, non-2xx status, undecodable
                body, or an error reported by Ollama itself
        """
        request = build_chat_request(model, prompt)

        try:
            response = await self.client.post(
                f"{self.base_url}/api/chat",
                json=request.model_dump(),
            )
        except httpx.TimeoutException as e:
            raise BackendError(f"ollama request timed out: {e!r}") from e
        except httpx.HTTPError as e:
            raise BackendError(f"http post: {e}") from e

        if not response.is_success:
            body = response.text
            raise BackendError(
                f"ollama HTTP {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            payload = OllamaChatResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise BackendError(f"decode response: {e}", status_code=response.status_code) from e

        if payload.error:
            raise BackendError(f"ollama error: {payload.error}", status_code=response.status_code)

        return payload.message.content.strip()

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
