"""
Catalog layer: models, persistence and the library manager.

Usage:
    from song_locker.library import CatalogStore, LibraryManager, Song, Playlist
"""

from song_locker.library.catalog_store import (
    FAVORITES_KEY,
    PLAYLISTS_KEY,
    SONGS_KEY,
    CatalogStore,
)
from song_locker.library.manager import DeleteResult, LibraryManager
from song_locker.library.models import Catalog, Playlist, Song

__all__ = [
    "Song",
    "Playlist",
    "Catalog",
    "CatalogStore",
    "SONGS_KEY",
    "FAVORITES_KEY",
    "PLAYLISTS_KEY",
    "LibraryManager",
    "DeleteResult",
]
