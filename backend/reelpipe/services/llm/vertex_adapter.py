"""Vertex AI adapter for the LLM abstraction layer.

Wraps the google-genai client with location-aware routing. Authentication
is handled by Application Default Credentials (ADC). Uses tenacity for
retry logic with configurable max_retries.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from google import genai
from google.genai import types as genai_types
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from reelpipe.services.llm.base import LLMAdapter

logger = logging.getLogger(__name__)

# Load .env for GOOGLE_APPLICATION_CREDENTIALS (ADC)
load_dotenv(Path(__file__).resolve().parents[4] / ".env")

# Per (project, location) client cache
_clients: dict[tuple[str, str], genai.Client] = {}

# Models that must use the global endpoint
GLOBAL_REGION_MODELS = {
    "gemini-3-flash-preview",
    "gemini-3-pro-preview",
}


def location_for_model(model_id: str, default_location: str) -> str:
    """Return the Vertex AI location needed for a given model ID."""
    if model_id in GLOBAL_REGION_MODELS:
        return "global"
    return default_location


def get_vertex_client(project_id: str, location: str) -> genai.Client:
    """Get or create a Vertex AI client for the given project and location.

    Clients are cached so repeated calls are cheap.
    """
    key = (project_id, location)
    if key not in _clients:
        os.environ["GOOGLE_GENAI_USE_VERTEXAI"] = "true"
        os.environ["GOOGLE_CLOUD_PROJECT"] = project_id

        _clients[key] = genai.Client(
            vertexai=True,
            project=project_id,
            location=location,
        )

    return _clients[key]


class VertexAIAdapter(LLMAdapter):
    """LLM adapter backed by Google Vertex AI (google-genai SDK)."""

    def __init__(self, model_id: str, project_id: Optional[str], location: str) -> None:
        """Initialize adapter for the given Vertex AI model.

        Args:
            model_id: Vertex AI model identifier (e.g., "gemini-2.5-flash").
            project_id: Google Cloud project. Required at call time.
            location: Default GCP region for the client.
        """
        self._model_id = model_id
        self._project_id = project_id
        self._location = location_for_model(model_id, location)

    async def generate_text(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
        max_retries: int = 3,
    ) -> str:
        """Generate text using Vertex AI.

        Raises:
            ValueError: If no Google Cloud project is configured.
        """
        if not self._project_id:
            raise ValueError("google_cloud.project_id is not set")

        @retry(
            stop=stop_after_attempt(max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=30),
            retry=retry_if_exception_type(Exception),
            reraise=True,
        )
        async def _call() -> str:
            client = get_vertex_client(self._project_id, self._location)
            config = genai_types.GenerateContentConfig(
                temperature=temperature,
                system_instruction=system_prompt,
            )
            response = await client.aio.models.generate_content(
                model=self._model_id,
                contents=prompt,
                config=config,
            )
            text = (response.text or "").strip()
            if not text:
                raise ValueError(f"{self._model_id} returned an empty response")
            return text

        return await _call()
