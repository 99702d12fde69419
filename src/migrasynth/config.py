"""
Configuration system for migrasynth using Pydantic.
"""

import logging
import os
from pathlib import Path
from typing import Any, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, validator, ConfigDict
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError


DEFAULT_HEADER_COMMENT = "-- Generated using migrasynth, do not edit manually"


class GenerationConfig(BaseModel):
    """Script generation configuration."""

    header_comment: str = Field(
        DEFAULT_HEADER_COMMENT, description="Provenance comment at the top of each script"
    )
    abort_on_error: bool = Field(
        True, description="Emit SET XACT_ABORT ON after the header"
    )
    default_schema: str = Field(
        "dbo", description="Schema assumed for snapshot objects without one"
    )

    @validator("header_comment")
    def ensure_sql_comment(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith("--"):
            return f"-- {v}"
        return v


class OutputConfig(BaseModel):
    """Migration output configuration."""

    migrations_dir: str = Field("migrations", description="Directory holding migrations")
    up_filename: str = Field("up.sql", description="File name of the Up script")
    down_filename: str = Field("down.sql", description="File name of the Down script")
    snapshot_filename: str = Field(
        "schema.yaml", description="File name of the schema snapshot stored with each migration"
    )
    timestamp_format: str = Field(
        "%Y%m%d%H%M%S", description="strftime format prefixed to migration directories"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class MigrasynthConfig(BaseSettings):
    """Main migrasynth configuration."""

    project_name: str = Field("migrasynth", description="Project name")
    debug: bool = Field(False, description="Enable debug mode")

    generation: GenerationConfig = Field(
        default_factory=GenerationConfig, description="Script generation configuration"
    )
    output: OutputConfig = Field(
        default_factory=OutputConfig, description="Migration output configuration"
    )

    # System configuration
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = ConfigDict(
        env_file=".env",
        env_prefix="MIGRASYNTH_",
        case_sensitive=False,
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "MigrasynthConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            # Expand environment variables in the data
            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration structure in {path}", cause=e)

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def validate_config(self) -> None:
        """Validate the entire configuration for consistency."""
        output = self.output
        names = [output.up_filename, output.down_filename, output.snapshot_filename]
        if len({name.lower() for name in names}) != len(names):
            raise ConfigurationError(
                "Output file names must be distinct",
                details={"files": ", ".join(names)},
            )
        for name in names:
            if Path(name).name != name:
                raise ConfigurationError(
                    f"Output file name '{name}' must not contain a directory"
                )
        if not self.generation.default_schema.strip():
            raise ConfigurationError("generation.default_schema must not be empty")

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_none=True), f, default_flow_style=False, indent=2
            )


def setup_logging(config: Optional[LoggingConfig] = None, debug: bool = False) -> None:
    """Configure the root logger from the logging section."""
    cfg = config or LoggingConfig()

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if cfg.file:
        from logging.handlers import RotatingFileHandler

        handlers.append(
            RotatingFileHandler(cfg.file, maxBytes=cfg.max_size, backupCount=cfg.backup_count)
        )

    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, cfg.level),
        format=cfg.format,
        handlers=handlers,
        force=True,
    )
