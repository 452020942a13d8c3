"""Collaborator interfaces and their production adapters."""

from reelpipe.services.base import (
    Collaborators,
    ImageProvider,
    ScriptGenerator,
    SpeechSynthesizer,
    VideoEncoder,
)

__all__ = [
    "Collaborators",
    "ImageProvider",
    "ScriptGenerator",
    "SpeechSynthesizer",
    "VideoEncoder",
]
