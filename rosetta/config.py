"""
Project-wide configuration.

Module Contents:
    APP_NAME: Application name for display purposes
    CONFIG_DIR: Per-user directory holding the config file and stored keys
    CONFIG_FILE: Default TOML settings file
    Settings: Settings loaded from the TOML file and the environment
    load_settings: Read settings, falling back to defaults

The settings file is optional. A complete example:

    [openai]
    api_key = "sk-..."          # prefer OPENAI_API_KEY or `rosetta keys set`
    model = "gpt-4o"
    base_url = "https://api.openai.com/v1"
    temperature = 1.0
    top_p = 1.0

    [retry]
    max_sequential_errors = 5
    initial_interval = 0.5
    multiplier = 1.5
    max_interval = 60.0
    max_elapsed = 900.0
    jitter = 0.5
    poll_interval = 1.0
    count_rate_limits = false

Environment overrides:
    ROSETTA_CONFIG: Path of the settings file
    ROSETTA_OPENAI_MODEL: Model name
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

from rosetta.translate.retry import RetryPolicy

logger = logging.getLogger(__name__)

# Application name for display and identification
APP_NAME = "Rosetta"

# Per-user configuration directory
CONFIG_DIR = Path.home() / ".rosetta"

# Default settings file
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_MODEL = "gpt-4o"


@dataclass
class OpenAISettings:
    """Connection settings for the OpenAI Assistants endpoint."""
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    base_url: Optional[str] = None
    temperature: float = 1.0
    top_p: float = 1.0


@dataclass
class Settings:
    openai: OpenAISettings = field(default_factory=OpenAISettings)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    source: Optional[Path] = None


def config_path() -> Path:
    return Path(os.getenv("ROSETTA_CONFIG", CONFIG_FILE)).expanduser()


def _pick(cls, table: dict) -> dict:
    """Keep only the keys ``cls`` knows about, warning on the rest."""
    known = {f.name for f in fields(cls)}
    for key in table.keys() - known:
        logger.warning("Ignoring unknown setting %r", key)
    return {k: v for k, v in table.items() if k in known}


def load_settings(path: Path | str | None = None) -> Settings:
    """Load settings from a TOML file.

    A missing file gives the defaults. A file that exists but is not valid
    TOML is an error.

    Args:
        path: Settings file; defaults to ``$ROSETTA_CONFIG`` or CONFIG_FILE

    Returns:
        Settings with environment overrides applied
    """
    path = Path(path).expanduser() if path else config_path()
    data: dict = {}
    source = None

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)
        source = path
        logger.debug("Loaded settings from %s", path)

    settings = Settings(
        openai=OpenAISettings(**_pick(OpenAISettings, data.get("openai", {}))),
        retry=RetryPolicy(**_pick(RetryPolicy, data.get("retry", {}))),
        source=source,
    )

    if model := os.getenv("ROSETTA_OPENAI_MODEL"):
        settings.openai.model = model

    return settings
