"""
Configuration management for song-locker.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Library directory (music files, catalog database and logs live here)
    - Playback status polling interval
    - Console logging level

Configuration File Location:
    By default config.yaml is looked up in the current working directory.
    Unlike an explicitly requested file, a missing default file is not an
    error: every field has a default.

Example config.yaml:
    library:
      directory: "~/Music/SongLocker"

    playback:
      poll_interval_ms: 100

    logging:
      console_level: "INFO"
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from song_locker.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_LIBRARY_DIRECTORY = "~/Music/SongLocker"
DEFAULT_POLL_INTERVAL_MS = 100
MIN_POLL_INTERVAL_MS = 10
MAX_POLL_INTERVAL_MS = 1000
DEFAULT_CONSOLE_LEVEL = "INFO"

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class LibraryConfig:
    """
    Library storage configuration.

    Attributes:
        directory: Absolute path of the library root.
                   Path expansion is performed (~ is expanded to home directory).
                   Layout below it:
                       music/       permanent copies of imported songs
                       library.db   key-value store holding the catalog
                       logs/        log files
    """
    directory: Path

    @property
    def music_directory(self) -> Path:
        return self.directory / "music"

    @property
    def database_path(self) -> Path:
        return self.directory / "library.db"


@dataclass(frozen=True)
class PlaybackConfig:
    """
    Playback behavior configuration.

    Attributes:
        poll_interval_ms: How often the audio engine reports its status.
                          This is the upper bound on how stale the
                          position/duration shown to the user can be.
                          Range: 10-1000. Default: 100.
    """
    poll_interval_ms: int


@dataclass(frozen=True)
class LoggingConfig:
    """
    Logging configuration.

    Attributes:
        console_level: Minimum level printed on the console.
                       Log files always receive DEBUG and above.
    """
    console_level: str

    @property
    def console_level_number(self) -> int:
        return logging.getLevelName(self.console_level)


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable (frozen dataclass).

    Example:
        config = load_config()
        print(f"Library at: {config.library.directory}")
        print(f"Polling every {config.playback.poll_interval_ms} ms")
    """
    library: LibraryConfig
    playback: PlaybackConfig
    logging: LoggingConfig


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory
                     and falls back to defaults when it is absent.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is not found, the file has
                     invalid YAML syntax, a section is not a dictionary, or
                     a field holds an invalid value.

    Behavior:
        1. Locate config file (explicit path or CWD/config.yaml)
        2. Read and parse YAML content (empty file means all defaults)
        3. Validate structure (sections are dictionaries)
        4. Parse each section, applying defaults
        5. Create and return frozen Config object
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        if explicit:
            raise ConfigError(
                f"Configuration file not found: {config_path}",
                details={"file_path": str(config_path)}
            )
        return _build_config({})

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if raw_config is None:
        raw_config = {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return _build_config(raw_config)


def _build_config(raw_config: dict[str, Any]) -> Config:
    _validate_config(raw_config)

    return Config(
        library=_parse_library_config(raw_config.get("library")),
        playback=_parse_playback_config(raw_config.get("playback")),
        logging=_parse_logging_config(raw_config.get("logging")),
    )


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Validate that every known section present is a dictionary.

    Args:
        raw_config: Dictionary parsed from config.yaml.

    Raises:
        ConfigError: If a section has the wrong type.
    """
    for section in ("library", "playback", "logging"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _parse_library_config(library_section: dict[str, Any] | None) -> LibraryConfig:
    """
    Parse the library section, expanding ~ and making the path absolute.

    Does NOT create the directory (that happens when the library opens).

    Raises:
        ConfigError: If directory is present but empty or not a string.
    """
    directory = DEFAULT_LIBRARY_DIRECTORY

    if library_section is not None and "directory" in library_section:
        directory = library_section["directory"]
        if not isinstance(directory, str) or not directory.strip():
            raise ConfigError(
                "'library.directory' must be a non-empty string",
                details={"field": "library.directory"}
            )

    return LibraryConfig(directory=Path(directory.strip()).expanduser().resolve())


def _parse_playback_config(playback_section: dict[str, Any] | None) -> PlaybackConfig:
    """
    Parse the playback section.

    Raises:
        ConfigError: If poll_interval_ms is not an integer in range.
    """
    poll_interval_ms = DEFAULT_POLL_INTERVAL_MS

    if playback_section is not None:
        raw_interval = playback_section.get("poll_interval_ms")
        if raw_interval is not None:
            # bool is an int subclass; reject it explicitly
            if (
                not isinstance(raw_interval, int)
                or isinstance(raw_interval, bool)
                or not MIN_POLL_INTERVAL_MS <= raw_interval <= MAX_POLL_INTERVAL_MS
            ):
                raise ConfigError(
                    f"'playback.poll_interval_ms' must be an integer between "
                    f"{MIN_POLL_INTERVAL_MS} and {MAX_POLL_INTERVAL_MS}",
                    details={"field": "playback.poll_interval_ms", "value": raw_interval}
                )
            poll_interval_ms = raw_interval

    return PlaybackConfig(poll_interval_ms=poll_interval_ms)


def _parse_logging_config(logging_section: dict[str, Any] | None) -> LoggingConfig:
    console_level = DEFAULT_CONSOLE_LEVEL

    if logging_section is not None:
        raw_level = logging_section.get("console_level")
        if raw_level is not None:
            if not isinstance(raw_level, str) or raw_level.strip().upper() not in _VALID_LEVELS:
                raise ConfigError(
                    f"'logging.console_level' must be one of {', '.join(_VALID_LEVELS)}",
                    details={"field": "logging.console_level", "value": raw_level}
                )
            console_level = raw_level.strip().upper()

    return LoggingConfig(console_level=console_level)
