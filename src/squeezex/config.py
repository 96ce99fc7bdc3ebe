"""Environment-based configuration for SqueezeX."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from SQUEEZEX_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SQUEEZEX_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Model and bundled assets
    model_name: str = "squeezenet_v1.1"
    assets_dir: str = "assets"
    assets_repo_id: str | None = None
    assets_subfolder: str | None = None

    # Accelerated backend ("none" disables the accelerated session)
    accelerator: Literal["cuda", "openvino", "none"] = "cuda"
    gpu_mem_limit: int = Field(default=1_073_741_824, ge=0)

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=4_194_304, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
