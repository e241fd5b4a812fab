"""Master server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from masterlist.registration.verification import DEFAULT_VERIFY_TIMEOUT
from masterlist.registry.liveness import LIVENESS_WINDOW_SECONDS, SWEEP_INTERVAL_SECONDS
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class MasterServerSettings(BaseSettings):
    model_config = {"env_prefix": "MASTER_"}

    log_dir: str = Field(default="backend/logs/masterlist", min_length=1)
    cors_origins: list[str] = []
    verify_timeout_seconds: float = Field(default=DEFAULT_VERIFY_TIMEOUT, gt=0)
    liveness_window_seconds: float = Field(default=LIVENESS_WINDOW_SECONDS, gt=0)
    sweep_interval_seconds: float = Field(default=SWEEP_INTERVAL_SECONDS, gt=0)
    extra_banned_words: list[str] = []

    @field_validator("cors_origins", "extra_banned_words", mode="before")
    @classmethod
    def validate_string_lists(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings)
