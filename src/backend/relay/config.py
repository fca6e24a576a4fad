"""
Runtime configuration for the relay service.

Settings are read from the environment (and a ``.env`` file when present).
"""

import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator


DEFAULT_INSTRUCTIONS = (
    "You are a friendly voice assistant running on a small hardware device. "
    "Keep answers short and conversational."
)


class RelaySettings(BaseModel):
    """Configuration for the relay and its Azure OpenAI Realtime backend."""

    azure_openai_endpoint: str = ""
    azure_openai_api_key: str = ""
    azure_openai_api_version: str = "2024-10-01-preview"
    azure_openai_deployment: str = ""
    voice: str = "shimmer"
    instructions: str = DEFAULT_INSTRUCTIONS

    source_sample_rate: int = Field(default=16000, description="Sample rate of device audio in Hz")
    target_sample_rate: int = Field(default=24000, description="Sample rate expected by the realtime session in Hz")
    forward_workers: int = Field(default=4, description="Transcode-and-forward workers per session")
    forward_queue_size: int = Field(default=64, description="Audio frames buffered per session before dropping")

    log_level: str = "INFO"
    log_json: bool = False
    log_file: Optional[str] = None

    @field_validator("source_sample_rate", "target_sample_rate", "forward_workers", "forward_queue_size")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    def missing_azure_settings(self) -> list[str]:
        """Names of the Azure environment variables that are not set."""
        required = [
            ("AZURE_OPENAI_ENDPOINT", self.azure_openai_endpoint),
            ("AZURE_OPENAI_API_KEY", self.azure_openai_api_key),
            ("AZURE_OPENAI_DEPLOYMENT", self.azure_openai_deployment),
        ]
        return [name for name, value in required if not value]


_ENV_FIELDS = {
    "AZURE_OPENAI_ENDPOINT": "azure_openai_endpoint",
    "AZURE_OPENAI_API_KEY": "azure_openai_api_key",
    "AZURE_OPENAI_API_VERSION": "azure_openai_api_version",
    "AZURE_OPENAI_DEPLOYMENT": "azure_openai_deployment",
    "REALTIME_VOICE": "voice",
    "REALTIME_INSTRUCTIONS": "instructions",
    "SOURCE_SAMPLE_RATE": "source_sample_rate",
    "TARGET_SAMPLE_RATE": "target_sample_rate",
    "FORWARD_WORKERS": "forward_workers",
    "FORWARD_QUEUE_SIZE": "forward_queue_size",
    "LOG_LEVEL": "log_level",
    "LOG_JSON": "log_json",
    "LOG_FILE": "log_file",
}


def load_settings() -> RelaySettings:
    """Build settings from the environment, loading ``.env`` first if one is found."""
    load_dotenv(find_dotenv())
    values = {field: os.environ[var] for var, field in _ENV_FIELDS.items() if os.environ.get(var)}
    return RelaySettings(**values)
