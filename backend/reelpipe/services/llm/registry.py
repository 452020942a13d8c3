"""Provider registry for LLM adapters.

Routes model IDs to the correct adapter implementation based on the model
ID prefix. Supports Vertex AI (gemini- prefix) and Ollama (ollama/ prefix).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from reelpipe.services.llm.base import LLMAdapter

if TYPE_CHECKING:
    from reelpipe.config import Settings

logger = logging.getLogger(__name__)


def _is_ollama_model(model_id: str) -> bool:
    """Return True if the model ID uses the ollama/ prefix."""
    return model_id.startswith("ollama/")


def is_configured(model_id: str, app_settings: "Settings") -> bool:
    """Return True if the model can be routed to a usable provider.

    Ollama models only need an endpoint; Vertex AI needs a project id.
    """
    if _is_ollama_model(model_id):
        return bool(app_settings.llm.ollama_endpoint)
    return bool(app_settings.google_cloud.project_id)


def get_adapter(model_id: str, app_settings: "Settings") -> LLMAdapter:
    """Return the appropriate LLM adapter for the given model ID.

    Routing logic:
    - "ollama/*"    → OllamaAdapter (llm.ollama_endpoint, optional API key)
    - anything else → VertexAIAdapter

    Args:
        model_id: Model identifier string (e.g., "gemini-2.5-flash",
                  "ollama/llama3.1").
        app_settings: Application settings holding endpoints and credentials.

    Returns:
        Configured LLMAdapter instance ready for use.
    """
    if _is_ollama_model(model_id):
        from reelpipe.services.llm.ollama_adapter import OllamaAdapter

        base_url = app_settings.llm.ollama_endpoint
        api_key = app_settings.llm.ollama_api_key
        logger.debug(
            "Routing %s to OllamaAdapter (base_url=%s, has_key=%s)",
            model_id,
            base_url,
            bool(api_key),
        )
        return OllamaAdapter(model_id=model_id, base_url=base_url, api_key=api_key)

    # Default: Vertex AI (handles gemini- models and anything else)
    from reelpipe.services.llm.vertex_adapter import VertexAIAdapter

    logger.debug("Routing %s to VertexAIAdapter", model_id)
    return VertexAIAdapter(
        model_id=model_id,
        project_id=app_settings.google_cloud.project_id,
        location=app_settings.google_cloud.location,
    )
