import os
from typing import List
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEPRECATED_LIVE_MODEL = "gemini-live-2.5-flash-preview-native-audio-09-2025"


class Settings(BaseSettings):
    """Configuration for the Gemini Live proxy client."""

    proxy_url: str = "ws://localhost:8080"
    project_id: str = Field(
        default_factory=lambda: (
            os.getenv("GOOGLE_CLOUD_PROJECT")
            or os.getenv("GCLOUD_PROJECT")
            or os.getenv("GOOGLE_CLOUD_PROJECT_ID")
            or ""
        )
    )
    model: str = "gemini-live-2.5-flash-native-audio"
    location: str = "us-central1"
    api_host: str = "us-central1-aiplatform.googleapis.com"
    response_modalities: List[str] = Field(default_factory=lambda: ["AUDIO"])
    system_instructions: str = ""
    voice_name: str = "Puck"
    voice_locale: str = "en-US"
    enable_input_transcript: bool = False
    enable_output_transcript: bool = False
    enable_session_resumption: bool = False
    resumption_handle: str = ""
    access_token: str = Field(default="", repr=False)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="GEMINI_LIVE_", extra="ignore")

    @field_validator("model")
    @classmethod
    def validate_model(cls, value: str) -> str:
        if value == DEPRECATED_LIVE_MODEL:
            raise ValueError("The deprecated preview Gemini Live model is not allowed.")
        return value

    @field_validator("proxy_url")
    @classmethod
    def validate_proxy_url(cls, value: str) -> str:
        if urlparse(value).scheme not in ("ws", "wss"):
            raise ValueError("proxy_url must be a ws:// or wss:// URL")
        return value

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, value: str) -> str:
        return value.upper()
