import json
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    NoDecode,
    SettingsConfigDict,
)

from asmara.domain import constants as c
from asmara.domain.deck import DeckConfig, SchedulerTunables


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/asmara/config.toml",
        Path.home() / ".asmara.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for asmara.
    Supports loading from:
    1. Environment variables (ASMARA_*)
    2. Config file (~/.config/asmara/config.toml)
    3. Manual overrides (CLI / HTTP)
    """

    model_config = SettingsConfigDict(
        env_prefix="ASMARA_",
        extra="ignore",
    )

    # Storage
    backend: Literal["memory", "yaml"] = "yaml"
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/asmara")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/asmara/logs")

    # Deck defaults (used when a deck stores no override)
    learning_steps: Annotated[list[float], NoDecode] = Field(
        default_factory=lambda: list(c.LEARNING_STEPS_MINUTES)
    )
    relearning_steps: Annotated[list[float], NoDecode] = Field(
        default_factory=lambda: list(c.RELEARNING_STEPS_MINUTES)
    )
    graduating_interval_days: float = c.GRADUATING_INTERVAL_DAYS
    easy_interval_days: float = c.EASY_INTERVAL_DAYS

    # Scheduler tunables
    min_ease_factor: float = c.MIN_EASE_FACTOR
    default_ease_factor: float = c.DEFAULT_EASE_FACTOR
    easy_bonus: float = c.EASY_BONUS
    hard_interval_multiplier: float = c.HARD_INTERVAL_MULTIPLIER
    reinsert_after_again: int = c.REINSERT_AFTER_AGAIN
    reinsert_after_hard_learning: int = c.REINSERT_AFTER_HARD_LEARNING
    new_cards_use_learning_steps: bool = False

    # Server
    host: str = "127.0.0.1"
    port: int = 8778
    session_idle_seconds: float = 3600
    max_open_sessions: int = Field(default=1000, ge=1)

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

        # Find the first existing config file
        toml_file = None
        for f in config_files():
            if f.exists():
                toml_file = f
                break

        # Earlier sources win: overrides, then env vars, then the file.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_dir", "log_dir", mode="before")
    @classmethod
    def resolve_path(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("learning_steps", "relearning_steps", mode="before")
    @classmethod
    def split_steps(cls, v: Any) -> Any:
        # Allow "1,10" from env vars and CLI flags.
        if isinstance(v, str):
            if v.lstrip().startswith("["):
                return json.loads(v)
            return [float(s) for s in v.split(",") if s.strip()]
        return v

    def deck_defaults(self) -> DeckConfig:
        return DeckConfig(
            learning_steps=tuple(self.learning_steps),
            relearning_steps=tuple(self.relearning_steps),
            graduating_interval_days=self.graduating_interval_days,
            easy_interval_days=self.easy_interval_days,
        )

    def tunables(self) -> SchedulerTunables:
        return SchedulerTunables(
            min_ease_factor=self.min_ease_factor,
            default_ease_factor=self.default_ease_factor,
            easy_bonus=self.easy_bonus,
            hard_interval_multiplier=self.hard_interval_multiplier,
            reinsert_after_again=self.reinsert_after_again,
            reinsert_after_hard_learning=self.reinsert_after_hard_learning,
            new_cards_use_learning_steps=self.new_cards_use_learning_steps,
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/asmara/config.toml (if exists)
    3. Environment variables (ASMARA_*)
    4. cli_overrides (None values are ignored)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
