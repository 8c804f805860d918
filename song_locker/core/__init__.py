"""
Core module for song-locker.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - kv_store: Thread-safe SQLite key-value store for the catalog
    - file_store: Music directory primitives and the file picker
    - logger: Logging system with multiple outputs

Usage:
    from song_locker.core import (
        Config, load_config,
        KeyValueStore, FileStore,
        setup_logging, get_logger,
        SongLockerError, ConfigError, StoreError
    )
"""

from song_locker.core.config import (
    Config,
    LibraryConfig,
    LoggingConfig,
    PlaybackConfig,
    load_config,
)
from song_locker.core.exceptions import (
    ConfigError,
    CopyError,
    DeleteError,
    EngineError,
    FileStoreError,
    PlaybackError,
    PlaylistNotFoundError,
    SongImportError,
    SongLockerError,
    SongNotFoundError,
    StoreError,
    ValidationError,
)
from song_locker.core.file_store import FileStore, PickedFile, pick_audio_file
from song_locker.core.kv_store import KeyValueStore
from song_locker.core.logger import (
    get_logger,
    log_file_failure,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "LibraryConfig",
    "PlaybackConfig",
    "LoggingConfig",
    "load_config",
    # Storage
    "KeyValueStore",
    "FileStore",
    "PickedFile",
    "pick_audio_file",
    # Exceptions
    "SongLockerError",
    "ConfigError",
    "StoreError",
    "SongImportError",
    "ValidationError",
    "FileStoreError",
    "CopyError",
    "DeleteError",
    "EngineError",
    "PlaybackError",
    "SongNotFoundError",
    "PlaylistNotFoundError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_file_failure",
    "shutdown_logging",
]
