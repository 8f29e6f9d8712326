"""Configuration utilities for pyramid detection."""
from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Runtime configuration sourced from environment variables or defaults.

    Detector geometry and the pyramid schedule live in ``models`` instead.
    """

    model_config = SettingsConfigDict(env_prefix="PYRAMID_", case_sensitive=False)

    device: Literal["cpu", "cuda"] = Field(default="cpu", description="Inference target for OpenCV DNN.")
    log_format: Literal["text", "json"] = Field(default="text")
    log_level: str = Field(default="INFO")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = str(value).strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level


def load_settings(**overrides: object) -> AppSettings:
    """Return application settings, applying optional overrides."""

    return AppSettings(**overrides)
