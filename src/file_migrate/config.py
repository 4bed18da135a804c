"""Configuration models and loading logic."""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar, Literal

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_SETTINGS_FILE = Path("configs/settings.yaml")
SETTINGS_FILE_ENV = "FILE_MIGRATE_SETTINGS_FILE"

CopyBackend = Literal["auto", "native", "robocopy"]


class ProjectConfig(BaseModel):
    """Project metadata settings."""

    name: str = "file_migrate"
    env: str = "dev"


class PathsConfig(BaseModel):
    """Roots joined to manifest paths plus run output locations."""

    source_root: Path = Path("./data/source")
    destination_root: Path = Path("./data/destination")
    logs_root: Path = Path("./logs")
    artifacts_root: Path = Path("./artifacts")

    def resolved(self, project_root: Path) -> "PathsConfig":
        """Return a copy with project-relative paths resolved to absolute paths."""

        updates: dict[str, Path] = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            updates[field_name] = value if value.is_absolute() else (project_root / value).resolve()
        return self.model_copy(update=updates)


class ManifestConfig(BaseModel):
    """Column names and parsing options for the migration manifest CSV."""

    source_column: str = "Source Path"
    destination_column: str = "Destination Sub Folder"
    separator: str = Field(default=",", min_length=1, max_length=1)
    encoding: Literal["utf8", "utf8-lossy"] = "utf8-lossy"


class TransferConfig(BaseModel):
    """Primary bulk-copy and fallback behavior."""

    backend: CopyBackend = "auto"
    threads: int = Field(default=8, ge=1, le=128)
    retries: int = Field(default=1, ge=0)
    retry_wait_sec: float = Field(default=1.0, ge=0.0)
    exclude_older: bool = True
    fallback_enabled: bool = True
    robocopy_executable: str = "robocopy"


class PermissionsConfig(BaseModel):
    """Access-control propagation switches."""

    enabled: bool = True
    include_audit: bool = False


class LoggingConfig(BaseModel):
    """Run log settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file_prefix: str = "migration"


class AppSettings(BaseSettings):
    """Top-level application settings."""

    _yaml_file_override: ClassVar[Path | None] = None

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    manifest: ManifestConfig = Field(default_factory=ManifestConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    permissions: PermissionsConfig = Field(default_factory=PermissionsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="FILE_MIGRATE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Use YAML defaults while allowing env vars to override values."""

        yaml_file = resolve_settings_file(cls._yaml_file_override)
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    def as_dict(self) -> dict[str, object]:
        """Return settings as a standard nested dictionary."""

        return self.model_dump(mode="json")


def find_project_root(start: Path | None = None) -> Path:
    """Locate the project root by traversing upward for config markers."""

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / "configs/settings.yaml").exists():
            return candidate
    return current


def resolve_settings_file(override: Path | None = None) -> Path:
    """Resolve settings file from explicit override, env var, or default."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(SETTINGS_FILE_ENV)
        if env_value:
            chosen = Path(env_value)
    if chosen is None:
        chosen = DEFAULT_SETTINGS_FILE

    if not chosen.is_absolute():
        chosen = (find_project_root() / chosen).resolve()
    return chosen


def load_settings(config_file: Path | None = None) -> AppSettings:
    """Load settings with YAML defaults and environment variable overrides."""

    settings_file = resolve_settings_file(config_file)
    project_root = settings_file.parent.parent.resolve()
    AppSettings._yaml_file_override = settings_file
    try:
        settings = AppSettings()
    finally:
        AppSettings._yaml_file_override = None
    resolved_paths = settings.paths.resolved(project_root=project_root)
    return settings.model_copy(update={"paths": resolved_paths})
