"""Builds the production collaborator set from application settings."""

import logging

from reelpipe.config import Settings
from reelpipe.services.base import Collaborators
from reelpipe.services.file_manager import FileManager
from reelpipe.services.images import StockImageProvider
from reelpipe.services.llm import get_adapter, is_configured
from reelpipe.services.script_writer import LLMScriptGenerator
from reelpipe.services.speech import GoogleCloudSpeechSynthesizer
from reelpipe.services.video_encoder import FFmpegVideoEncoder

logger = logging.getLogger(__name__)


def build_collaborators(app_settings: Settings) -> Collaborators:
    """Wire the LLM, stock image, Text-to-Speech and ffmpeg adapters."""
    file_manager = FileManager(app_settings.storage.tmp_dir)

    model_id = app_settings.llm.script_model
    adapter = None
    if is_configured(model_id, app_settings):
        adapter = get_adapter(model_id, app_settings)
    else:
        logger.warning(f"No provider configured for script model {model_id}; script generation will fail")

    return Collaborators(
        script_generator=LLMScriptGenerator(
            adapter,
            temperature=app_settings.llm.temperature,
            max_retries=app_settings.llm.max_retries,
            words_per_minute=app_settings.pipeline.words_per_minute,
        ),
        image_provider=StockImageProvider(app_settings.images, file_manager),
        speech_synthesizer=GoogleCloudSpeechSynthesizer(app_settings.speech, file_manager),
        video_encoder=FFmpegVideoEncoder(
            app_settings.video,
            app_settings.captions,
            file_manager,
            words_per_minute=app_settings.pipeline.words_per_minute,
        ),
    )
