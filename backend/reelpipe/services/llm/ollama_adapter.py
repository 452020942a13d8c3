"""Ollama adapter for the LLM abstraction layer.

Connects via ollama.AsyncClient with optional auth headers for cloud
deployments.
"""

import logging
from typing import Optional

from ollama import AsyncClient
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from reelpipe.services.llm.base import LLMAdapter

logger = logging.getLogger(__name__)


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    stripped = raw.strip()
    if stripped.startswith("```") and "\n" in stripped:
        # Remove opening fence (```text or ```)
        stripped = stripped[stripped.index("\n") + 1:]
        if stripped.endswith("```"):
            stripped = stripped[:-3].rstrip()
    return stripped


class OllamaAdapter(LLMAdapter):
    """LLM adapter backed by a local or cloud Ollama instance.

    Strips the "ollama/" prefix from model IDs before passing to the ollama
    library. Always passes stream=False to avoid async generator responses.
    """

    def __init__(
        self,
        model_id: str,
        base_url: str = "http://localhost:11434",
        api_key: Optional[str] = None,
    ) -> None:
        # Strip ollama/ prefix, the library uses bare model names
        self._ollama_model = model_id.removeprefix("ollama/")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = AsyncClient(host=base_url, headers=headers)

    async def generate_text(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
        max_retries: int = 3,
    ) -> str:
        """Generate text using an Ollama model."""

        @retry(
            stop=stop_after_attempt(max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=30),
            retry=retry_if_exception_type(Exception),
            reraise=True,
        )
        async def _call() -> str:
            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            response = await self._client.chat(
                model=self._ollama_model,
                messages=messages,
                options={"temperature": temperature},
                stream=False,
            )
            text = strip_code_fences(response.message.content or "")
            if not text:
                raise ValueError(f"{self._ollama_model} returned an empty response")
            return text

        return await _call()
