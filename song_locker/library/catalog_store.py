"""
Catalog persistence for song-locker.

Translates between the in-memory catalog and the durable key-value store,
and reconciles the song list against the files actually present in the
music directory.

Persisted layout (three independent JSON values):
    @saved_songs:     [{"id": "...", "name": "...", "uri": "..."}, ...]
    @favorite_songs:  ["<song id>", ...]         (unique, sorted on write)
    @playlists:       [{"id": "...", "name": "...", "songs": ["<song id>", ...]}, ...]

There is no cross-key atomicity. A process interruption between two saves
can leave, for example, a deleted song still listed in a playlist. Loading
is therefore lenient and the library manager reconciles references after
every load instead of relying on write atomicity.
"""

import json
from collections.abc import Iterable
from typing import Any, Callable

from song_locker.core.exceptions import StoreError
from song_locker.core.file_store import FileStore
from song_locker.core.kv_store import KeyValueStore
from song_locker.core.logger import get_logger
from song_locker.library.models import Catalog, Playlist, Song

logger = get_logger(__name__)


SONGS_KEY = "@saved_songs"
FAVORITES_KEY = "@favorite_songs"
PLAYLISTS_KEY = "@playlists"


class CatalogStore:
    """
    Reads and writes the three catalog records.

    Attributes:
        kv_store: Durable key-value store.
        file_store: Content area, used to existence-check songs on load.
    """

    def __init__(self, kv_store: KeyValueStore, file_store: FileStore) -> None:
        self.kv_store = kv_store
        self.file_store = file_store

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self) -> Catalog:
        """
        Load songs, favorites and playlists.

        Returns:
            Catalog snapshot.

        Behavior:
            - A missing key yields the empty default for that structure
            - A value that is not valid JSON, or not the expected shape,
              yields the empty default and a warning
            - Individual malformed entries are skipped with a warning
            - Songs whose backing file is gone are dropped; if any were
              dropped the pruned list is re-persisted right away
            - Favorites and playlists are NOT existence-checked here

        Raises:
            StoreError: Only if the store itself cannot be read. A failure
                        to re-persist the pruned song list is logged.
        """
        songs = self._load_list(SONGS_KEY, Song.from_dict)
        favorites = self._load_favorites()
        playlists = self._load_list(PLAYLISTS_KEY, Playlist.from_dict)

        existing = [song for song in songs if self.file_store.file_exists(song.uri)]
        if len(existing) != len(songs):
            missing = [song.name for song in songs if song not in existing]
            logger.warning(
                f"Dropping {len(missing)} song(s) whose files are missing: {', '.join(missing)}"
            )
            try:
                self.save_songs(existing)
            except StoreError as e:
                logger.error(f"Could not persist pruned song list: {e.message}")

        return Catalog(
            songs=tuple(existing),
            favorites=frozenset(favorites),
            playlists=tuple(playlists),
        )

    def _read_json(self, key: str) -> Any | None:
        raw = self.kv_store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Stored value for '{key}' is not valid JSON, starting empty: {e}")
            return None

    def _load_list(self, key: str, parse: Callable[[Any], Any]) -> list:
        data = self._read_json(key)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning(f"Stored value for '{key}' is not a list, starting empty")
            return []

        items = []
        seen_ids: set[str] = set()
        for entry in data:
            try:
                item = parse(entry)
            except ValueError as e:
                logger.warning(f"Skipping malformed entry in '{key}': {e}")
                continue
            if item.id in seen_ids:
                logger.warning(f"Skipping duplicate id {item.id} in '{key}'")
                continue
            seen_ids.add(item.id)
            items.append(item)
        return items

    def _load_favorites(self) -> set[str]:
        data = self._read_json(FAVORITES_KEY)
        if data is None:
            return set()
        if not isinstance(data, list):
            logger.warning(f"Stored value for '{FAVORITES_KEY}' is not a list, starting empty")
            return set()
        return {song_id for song_id in data if isinstance(song_id, str)}

    # =========================================================================
    # Saving
    # =========================================================================

    def save_songs(self, songs: Iterable[Song]) -> None:
        self._write_json(SONGS_KEY, [song.to_dict() for song in songs])

    def save_favorites(self, favorites: Iterable[str]) -> None:
        # Uniqueness enforced on write; sorted for stable output
        self._write_json(FAVORITES_KEY, sorted(set(favorites)))

    def save_playlists(self, playlists: Iterable[Playlist]) -> None:
        self._write_json(PLAYLISTS_KEY, [playlist.to_dict() for playlist in playlists])

    def _write_json(self, key: str, value: Any) -> None:
        """
        Serialize value and write it under key.

        Raises:
            StoreError: If serialization or the write fails.
        """
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StoreError(
                f"Failed to serialize '{key}': {e}",
                details={"key": key, "original_error": str(e)}
            ) from e

        self.kv_store.set(key, payload)
        logger.debug(f"Saved '{key}' ({len(value)} entries)")
