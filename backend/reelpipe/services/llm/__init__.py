"""LLM provider abstraction layer.

Provides a unified async text-generation interface across Vertex AI and
Ollama.

Usage:
    from reelpipe.services.llm import get_adapter

    adapter = get_adapter("gemini-2.5-flash", settings)
    text = await adapter.generate_text(prompt)

    adapter = get_adapter("ollama/llama3.1", settings)
    text = await adapter.generate_text(prompt)
"""

from reelpipe.services.llm.base import LLMAdapter
from reelpipe.services.llm.registry import get_adapter, is_configured

__all__ = ["LLMAdapter", "get_adapter", "is_configured"]
