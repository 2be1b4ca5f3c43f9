"""Configuration for skillport."""

from pathlib import Path

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)


class Settings(BaseSettings):
    """Skillport configuration loaded from environment, .env and .skillport.toml."""

    # Tool state root
    home_dir: Path = Path.home() / ".skillport"

    # Cache root override (defaults to home_dir/git)
    cache_dir: Path | None = None

    # Agent used when the caller does not name one
    default_agent: str = "claude"

    # Ask before overwriting an installed skill (False for CI)
    confirm: bool = True

    # Run the validator before installing
    validate_skills: bool = True

    # Never touch the network; serve from the cache only
    offline: bool = False

    # Glob patterns for directories skipped during discovery
    discovery_ignore: list[str] = []

    # Checkout eviction age used by clean_cache
    checkout_max_age_days: int = 30

    # Host used for owner/repo shorthand
    default_host: str = "github.com"

    git_executable: str = "git"

    # Validator limits
    max_name_length: int = 64
    max_description_length: int = 1024
    max_compatibility_length: int = 500
    max_body_lines: int = 500

    # Treat lint warnings as failures
    lint_strict: bool = False

    model_config = {
        "env_prefix": "SKILLPORT_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "toml_file": ".skillport.toml",
        "extra": "ignore",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @property
    def cache_path(self) -> Path:
        return self.cache_dir or self.home_dir / "git"


settings = Settings()
