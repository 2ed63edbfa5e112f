"""
Parser configuration, optionally read from a YAML file.

Example ``docmark.yaml``::

    comment_prefix: docmark-
    default_heading_level: 2
"""

import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from docmark.markdown.codec import DEFAULT_COMMENT_PREFIX
from docmark.schemas import DEFAULT_HEADING_LEVEL


class ConfigError(ValueError):
    """A configuration file could not be read or failed validation."""


class ParserConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    comment_prefix: str = DEFAULT_COMMENT_PREFIX
    default_heading_level: int = Field(default=DEFAULT_HEADING_LEVEL, ge=1, le=6)

    @field_validator("comment_prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if not value:
            raise ValueError("comment_prefix must not be empty")
        if any(ch.isspace() or ch in "\"'<>{}" for ch in value):
            raise ValueError(f"comment_prefix contains a forbidden character: {value!r}")
        return value


def resolve_config(config: Optional[ParserConfig]) -> ParserConfig:
    return config if config is not None else ParserConfig()


def load_config(path: Union[str, Path, None] = None) -> ParserConfig:
    """
    Load a `ParserConfig` from a YAML file.

    A missing path or file gives the defaults.
    """
    if path is None:
        return ParserConfig()
    path = Path(path)
    if not path.exists():
        logging.debug(f"Config file {path} not found, using defaults")
        return ParserConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")

    try:
        config = ParserConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e
    logging.debug(f"Loaded config from {path}: {config}")
    return config
