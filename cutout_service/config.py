"""
Settings for the model store, downloads and ONNX inference.

Every field can be overridden with a ``CUTOUT_``-prefixed environment variable
or a `.env` file, e.g. ``CUTOUT_STORE_DIR=/data/models``.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CUTOUT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Model store
    store_dir: Optional[Path] = Field(None)
    store_dir_name: str = Field(".u2net")

    # Downloads
    download_chunk_size: int = Field(64 * 1024)
    connect_timeout_seconds: float = Field(10.0)
    read_timeout_seconds: float = Field(60.0)
    atomic_downloads: bool = Field(True)

    # Inference
    input_size: int = Field(320)
    output_suffix: str = Field("_no_bg")
    onnx_providers: List[str] = Field(default_factory=lambda: ["CPUExecutionProvider"])
    intra_op_num_threads: int = Field(0)

    log_level: str = Field("INFO")

    @field_validator("download_chunk_size", "input_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("onnx_providers")
    @classmethod
    def validate_providers(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("CUTOUT_ONNX_PROVIDERS must name at least one execution provider")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, read from the environment once."""
    return Settings()


def request_timeout(settings: Optional[Settings] = None) -> Tuple[float, float]:
    """(connect, read) timeout pair in the form `requests` expects."""
    settings = settings or get_settings()
    return (settings.connect_timeout_seconds, settings.read_timeout_seconds)
