"""
song-locker: a personal audio library with favorites, playlists and playback.

This package imports user-supplied audio files into a durable music
directory, keeps a catalog of songs, favorites and playlists in a local
key-value store, and drives a single playback session.

Architecture:
    core/       - Configuration, key-value store, file store, logging, exceptions
    library/    - Catalog models, catalog persistence, library manager
    playback/   - Audio engine (pygame) and the playback session
    utils/      - Id generation and time formatting
    cli.py      - Command-line interface

    The library manager is the single source of truth for the catalog and
    keeps three invariants after every operation:
        - every favorite id names a song in the catalog
        - every playlist entry names a song in the catalog
        - no playlist lists a song twice
    Deleting the playing song stops the session first.

Usage:
    Command Line:
        song-locker add ~/Downloads/track.mp3
        song-locker playlist create "Road trip"
        song-locker play 1718000000000

    Python API:
        from song_locker.core import load_config, setup_logging, FileStore, KeyValueStore
        from song_locker.library import CatalogStore, LibraryManager
        from song_locker.playback import PlaybackSession, PygameAudioEngine

        config = load_config()
        setup_logging(config.library.directory)

        file_store = FileStore(config.library.music_directory)
        kv_store = KeyValueStore(config.library.database_path)
        session = PlaybackSession(PygameAudioEngine(config.playback.poll_interval_ms))
        library = LibraryManager(CatalogStore(kv_store, file_store), file_store, session)
        library.initialize()

Dependencies:
    - pyyaml: Configuration file parsing
    - tqdm: Console logging and progress bars
    - rich-click: CLI framework with colors
    - pygame: Audio decoding and output
    - mutagen: Track duration
"""

__version__ = "0.1.0"
__author__ = "song-locker"
__license__ = "MIT"

from song_locker.core import (
    Config,
    ConfigError,
    SongImportError,
    SongLockerError,
    StoreError,
    ValidationError,
    get_logger,
    load_config,
    setup_logging,
)
from song_locker.library import LibraryManager, Playlist, Song
from song_locker.playback import PlaybackSession

__all__ = [
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    # Exceptions
    "SongLockerError",
    "ConfigError",
    "StoreError",
    "SongImportError",
    "ValidationError",
    # Library
    "LibraryManager",
    "PlaybackSession",
    "Song",
    "Playlist",
]
