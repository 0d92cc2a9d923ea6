"""
Server Configuration
====================

Startup settings are read once from ``.env``, ``.env.local`` and the process
environment. The mutable part (output directory, default model) lives in a
``ConfigStore`` that hands out immutable snapshots, so a command that started
against one output directory finishes against it even if a concurrent
``set_output_directory`` replaces it.

Environment variables:
- GEMINI_API_KEY (or GOOGLE_API_KEY): Gemini API key
- OUTPUT_DIR (or DEFAULT_OUTPUT_DIR): where images are written
- DEFAULT_MODEL: model used when a request names none
- HOST / PORT: HTTP bind address
- LOG_LEVEL: logging level name
- GEMINI_TIMEOUT: provider request timeout in seconds
"""

import logging
import os
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError


logger = logging.getLogger("gemini-image-mcp.config")

DEFAULT_MODEL = "gemini-2.0-flash-preview-image-generation"
DEFAULT_OUTPUT_DIR = "./generated-images"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 23032
DEFAULT_TIMEOUT = 120


def load_env_files(directory: Optional[Path] = None):
    """Load .env, then let .env.local override it."""
    base = Path(directory) if directory else Path.cwd()
    load_dotenv(base / ".env")
    env_local = base / ".env.local"
    if env_local.exists():
        load_dotenv(env_local, override=True)


@dataclass(frozen=True)
class Settings:
    """Startup settings, consulted once when the server is built."""
    api_key: Optional[str] = None
    output_dir: str = DEFAULT_OUTPUT_DIR
    default_model: str = DEFAULT_MODEL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    timeout: int = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, load_files: bool = True) -> "Settings":
        if load_files:
            load_env_files()

        return cls(
            api_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or None,
            output_dir=os.getenv("OUTPUT_DIR") or os.getenv("DEFAULT_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR,
            default_model=os.getenv("DEFAULT_MODEL") or DEFAULT_MODEL,
            host=os.getenv("HOST", DEFAULT_HOST),
            port=int(os.getenv("PORT", str(DEFAULT_PORT))),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            timeout=int(os.getenv("GEMINI_TIMEOUT", str(DEFAULT_TIMEOUT))),
        )


@dataclass(frozen=True)
class Configuration:
    """Snapshot of the server-wide mutable configuration."""
    api_key: Optional[str]
    output_directory: Path
    default_model: str


def ensure_directory(path: str) -> Path:
    """Resolve ``path`` to an absolute directory, creating it if needed."""
    if not isinstance(path, str) or not path.strip():
        raise ConfigError(str(path), "path must be a non-empty string")

    try:
        resolved = Path(path.strip()).expanduser().resolve()
        resolved.mkdir(parents=True, exist_ok=True)
    except (OSError, RuntimeError) as e:
        raise ConfigError(path, str(e)) from e

    if not resolved.is_dir():
        raise ConfigError(path, "not a directory")
    return resolved


class ConfigStore:
    """Holds the current ``Configuration`` and swaps it atomically."""

    def __init__(self, configuration: Configuration):
        self._lock = threading.Lock()
        self._current = configuration

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConfigStore":
        directory = ensure_directory(settings.output_dir)
        logger.info(f"Output directory: {directory}")
        return cls(Configuration(
            api_key=settings.api_key,
            output_directory=directory,
            default_model=settings.default_model,
        ))

    def get(self) -> Configuration:
        with self._lock:
            return self._current

    def set_output_directory(self, path: str) -> Path:
        """Validate, create and install a new output directory.

        Commands that already took a snapshot keep writing to the old one.
        """
        directory = ensure_directory(path)
        with self._lock:
            self._current = replace(self._current, output_directory=directory)
        logger.info(f"Output directory set to {directory}")
        return directory
