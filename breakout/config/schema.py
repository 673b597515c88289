"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StorageConfig(Base):
    """Where room logs live."""
    storage_dir: Optional[Path] = None  # None keeps everything in memory


class LoggingConfig(Base):
    """Logging sinks."""
    level: str = "WARNING"
    file: Optional[Path] = None
    verbose: bool = False


class SignalsConfig(Base):
    """Process signal handling."""
    install_handlers: bool = True  # SIGINT/SIGTERM drain all rooms, then exit


class RoomsConfig(Base):
    """Defaults applied to new rooms."""
    default_metadata: Dict[str, Any] = Field(default_factory=dict)


class Config(BaseSettings):
    """Root configuration for breakout."""
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    signals: SignalsConfig = Field(default_factory=SignalsConfig)
    rooms: RoomsConfig = Field(default_factory=RoomsConfig)

    @property
    def storage_dir(self) -> Optional[Path]:
        """Expanded storage directory, if persistence is enabled."""
        if self.storage.storage_dir is None:
            return None
        return Path(self.storage.storage_dir).expanduser()

    model_config = SettingsConfigDict(
        env_prefix="BREAKOUT_",
        env_nested_delimiter="__",
        populate_by_name=True,
    )
