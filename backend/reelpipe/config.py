"""Configuration management with YAML and environment variable support."""

from pathlib import Path
from typing import ClassVar, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from reelpipe.schemas.job import VideoStyle


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads configuration from YAML file."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_path: Path = Path("config.yaml")):
        super().__init__(settings_cls)
        self.yaml_path = yaml_path

    def get_field_value(self, field, field_name: str):
        # Not used with prepare method
        pass

    def prepare_field_value(self, field_name: str, field, value, value_is_complex: bool):
        return value

    def __call__(self):
        if not self.yaml_path.exists():
            return {}

        with open(self.yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return data


class PipelineConfig(BaseModel):
    """Job defaults and pacing heuristics for the pipeline executor."""

    default_style: VideoStyle = VideoStyle.NEWS
    default_duration: int = Field(default=60, gt=0)
    seconds_per_image: int = Field(default=8, gt=0)
    words_per_minute: int = Field(default=150, gt=0)
    stage_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    parallel_media: bool = False
    progress_queue_size: int = Field(default=100, gt=0)


class LLMConfig(BaseModel):
    """Script-writing model selection.

    Model IDs prefixed with ``ollama/`` route to Ollama, everything else to
    Vertex AI.
    """

    script_model: str = "gemini-2.5-flash"
    temperature: float = 0.7
    max_retries: int = 3
    ollama_endpoint: str = "http://localhost:11434"
    ollama_api_key: Optional[str] = None


class GoogleCloudConfig(BaseModel):
    """Google Cloud configuration.

    project_id enables Vertex AI script generation; Text-to-Speech uses
    Application Default Credentials.
    """

    project_id: Optional[str] = None
    location: str = "us-central1"


class ImagesConfig(BaseModel):
    """Stock image provider credentials and behaviour."""

    pexels_api_key: Optional[str] = None
    unsplash_access_key: Optional[str] = None
    pixabay_api_key: Optional[str] = None
    placeholder_fallback: bool = True
    request_timeout: float = 20.0
    max_retries: int = 2


class SpeechConfig(BaseModel):
    """Google Cloud Text-to-Speech voice settings."""

    language_code: str = "en-US"
    voice_name: str = "en-US-Neural2-J"
    speaking_rate: float = 1.0
    pitch: float = 0.0


class VideoConfig(BaseModel):
    """ffmpeg encoding parameters."""

    preset: str = "fast"
    crf: int = 23
    audio_bitrate: str = "128k"
    thumbnail_width: int = 320
    thumbnail_height: int = 180


class CaptionsConfig(BaseModel):
    """Burned-in caption appearance."""

    font_size: int = 48
    font_colour: str = "#FFFFFF"
    outline_colour: str = "#000000"
    outline_width: int = 2
    margin_v: int = 50


class RedditConfig(BaseModel):
    """Reddit listing client settings."""

    user_agent: str = "reelpipe/0.1.0"
    default_subreddit: str = "all"
    limit: int = 10


class StorageConfig(BaseModel):
    """Filesystem layout for job artifacts."""

    tmp_dir: Path = Path("tmp")

    @field_validator("tmp_dir", mode="before")
    @classmethod
    def convert_tmp_dir_to_path(cls, v):
        """Convert string to Path object."""
        if isinstance(v, str):
            return Path(v)
        return v


class LoggingConfig(BaseModel):
    """Log level and rotating file handler settings."""

    level: str = "INFO"
    file: Optional[Path] = Path("logs/reelpipe.log")
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: REELPIPE_, delimiter: __)
    2. .env file
    3. YAML file (config.yaml)
    4. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="REELPIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    google_cloud: GoogleCloudConfig = Field(default_factory=GoogleCloudConfig)
    images: ImagesConfig = Field(default_factory=ImagesConfig)
    speech: SpeechConfig = Field(default_factory=SpeechConfig)
    video: VideoConfig = Field(default_factory=VideoConfig)
    captions: CaptionsConfig = Field(default_factory=CaptionsConfig)
    reddit: RedditConfig = Field(default_factory=RedditConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        """Customize settings sources to include YAML configuration.

        Priority order (highest to lowest):
        1. Init settings (explicit keyword arguments)
        2. Environment variables
        3. .env file
        4. YAML file
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
        )


# Singleton instance
settings = Settings()
