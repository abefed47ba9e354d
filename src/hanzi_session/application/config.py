from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from hanzi_session.domain.constants import (
    AUDIO_URL,
    DEFAULT_AUDIO_LANGUAGE,
    DEFAULT_CARD_COUNT,
    DEFAULT_LEVEL,
    DEFAULT_PREFETCH_WINDOW,
    HEALTH_TIMEOUT,
    IMAGE_TIMEOUT,
    IMAGE_URL,
    MAX_CARD_COUNT,
    MAX_OPEN_SESSIONS,
    MAX_PREFETCH_WINDOW,
    MEDIA_CACHE_SIZE,
    MIN_CARD_COUNT,
    PROGRESS_URL,
    REQUEST_TIMEOUT,
    SCHEDULING_URL,
)


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/hanzi-session/config.toml",
        Path.home() / ".hanzi-session.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for hanzi-session.
    Supports loading from:
    1. Environment variables (HANZI_*)
    2. Config file (~/.config/hanzi-session/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="HANZI_",
        extra="ignore",
    )

    # Collaborators
    scheduling_url: str = SCHEDULING_URL
    audio_url: str = AUDIO_URL
    image_url: str = IMAGE_URL
    progress_url: str = PROGRESS_URL

    # Timeouts (seconds)
    health_timeout: float = HEALTH_TIMEOUT
    request_timeout: float = REQUEST_TIMEOUT
    image_timeout: float = IMAGE_TIMEOUT

    # Study preferences
    level: str = DEFAULT_LEVEL
    character_set: Literal["simplified", "traditional"] = "simplified"
    card_count: int = DEFAULT_CARD_COUNT
    study_mode: Literal["ChineseToEnglish", "EnglishToChinese"] = "ChineseToEnglish"
    audio_language: str = DEFAULT_AUDIO_LANGUAGE

    # Behaviour
    prefetch_enabled: bool = True
    prefetch_window: int = DEFAULT_PREFETCH_WINDOW
    media_cache_size: int = Field(default=MEDIA_CACHE_SIZE, ge=1)
    lookup_prior_progress: bool = True
    max_open_sessions: int = Field(default=MAX_OPEN_SESSIONS, ge=1)

    # Data
    vocabulary_path: Path | None = None

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins; CLI overrides beat env, env beats the file.
        toml_file = next((f for f in config_files() if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("card_count", mode="before")
    @classmethod
    def clamp_card_count(cls, v: Any) -> int:
        return max(MIN_CARD_COUNT, min(int(v), MAX_CARD_COUNT))

    @field_validator("prefetch_window", mode="before")
    @classmethod
    def clamp_prefetch_window(cls, v: Any) -> int:
        return max(1, min(int(v), MAX_PREFETCH_WINDOW))

    @field_validator("vocabulary_path", mode="before")
    @classmethod
    def resolve_vocabulary_path(cls, v: Any) -> Path | None:
        if v is None or v == "":
            return None
        return Path(v).expanduser().resolve()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/hanzi-session/config.toml (if exists)
    3. Environment variables (HANZI_*)
    4. cli_overrides (passed from Typer), None values ignored
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    config = AppConfig(**overrides)

    if config.vocabulary_path is None:
        default = Path.cwd() / "data" / "complete.json"
        if default.exists():
            config.vocabulary_path = default

    return config
