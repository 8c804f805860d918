"""
Library manager for song-locker.

The single source of truth for the catalog (songs, favorites, playlists).
Every mutation keeps these references intact:

    - every favorite id names a song in the catalog
    - every playlist entry names a song in the catalog
    - no playlist lists the same song twice

Deleting the song that is currently playing stops the playback session
before the catalog entry goes away, so the engine never holds a file that
is about to be removed.

Concurrency:
    All public entry points run under one re-entrant lock, so catalog
    mutations never interleave. Persistence happens inside the lock, after
    the in-memory state has been updated.

Persistence failures:
    A StoreError from a save propagates to the caller, but the in-memory
    change has already been applied. The library keeps running with
    unpersisted drift; initialize() repairs any dangling references it
    leaves in storage on the next start.

Usage:
    library = LibraryManager(catalog_store, file_store, session)
    library.initialize()

    song = library.add_song(pick_audio_file(Path("~/Downloads/a.mp3")))
    playlist = library.create_playlist("Road trip")
    library.add_song_to_playlist(playlist.id, song.id)
    library.delete_song(song.id)
"""

import threading
from dataclasses import dataclass

from song_locker.core.exceptions import (
    CopyError,
    DeleteError,
    PlaylistNotFoundError,
    SongImportError,
    SongNotFoundError,
    StoreError,
    ValidationError,
)
from song_locker.core.file_store import FileStore, PickedFile
from song_locker.core.logger import get_logger, log_file_failure
from song_locker.library.catalog_store import CatalogStore
from song_locker.library.models import Catalog, Playlist, Song
from song_locker.playback.session import PlaybackSession
from song_locker.utils import IdGenerator, fallback_song_name

logger = get_logger(__name__)


@dataclass(frozen=True)
class DeleteResult:
    """
    Outcome of LibraryManager.delete_song().

    The song is always gone from the catalog. file_error is set when the
    backing file could not be removed; the file is then left behind in
    the music directory and recorded in the file failures log.
    """
    song: Song
    file_deleted: bool
    file_error: DeleteError | None = None


class LibraryManager:
    """
    Owns the in-memory catalog and enforces its referential invariants.

    Attributes:
        catalog_store: Persistence for the three catalog records.
        file_store: Content area holding the imported files.
        session: The playback session, stopped when its song is deleted.
    """

    def __init__(
        self,
        catalog_store: CatalogStore,
        file_store: FileStore,
        session: PlaybackSession,
        id_generator: IdGenerator | None = None,
    ) -> None:
        self.catalog_store = catalog_store
        self.file_store = file_store
        self.session = session
        self._ids = id_generator or IdGenerator()
        self._lock = threading.RLock()

        self._songs: list[Song] = []
        self._favorites: set[str] = set()
        self._playlists: list[Playlist] = []

    # =========================================================================
    # Loading and reconciliation
    # =========================================================================

    def initialize(self) -> Catalog:
        """
        Load the catalog and repair references left dangling by a previous
        partial write.

        Favorite and playlist ids that name no loaded song are pruned, and
        repeated ids inside a playlist collapse to their first occurrence.
        Every structure that changed is persisted again.

        Returns:
            The reconciled catalog.

        Raises:
            StoreError: If the store cannot be read. Failing to persist the
                        repair is only logged: the repaired state is kept in
                        memory and the repair is redone on the next start.
        """
        with self._lock:
            catalog = self.catalog_store.load()

            self._songs = list(catalog.songs)
            self._favorites = set(catalog.favorites)
            self._playlists = [playlist.copy() for playlist in catalog.playlists]
            for song in self._songs:
                self._ids.observe(song.id)
            for playlist in self._playlists:
                self._ids.observe(playlist.id)

            known = {song.id for song in self._songs}

            dangling_favorites = self._favorites - known
            if dangling_favorites:
                logger.warning(f"Pruning {len(dangling_favorites)} dangling favorite(s)")
                self._favorites -= dangling_favorites
                self._persist_repair(self.catalog_store.save_favorites, self._favorites)

            playlists_changed = False
            for playlist in self._playlists:
                cleaned = _dedupe([song_id for song_id in playlist.songs if song_id in known])
                if cleaned != playlist.songs:
                    logger.warning(
                        f"Pruning {len(playlist.songs) - len(cleaned)} stale entries "
                        f"from playlist '{playlist.name}'"
                    )
                    playlist.songs = cleaned
                    playlists_changed = True
            if playlists_changed:
                self._persist_repair(self.catalog_store.save_playlists, self._playlists)

            logger.info(
                f"Library loaded: {len(self._songs)} song(s), "
                f"{len(self._favorites)} favorite(s), {len(self._playlists)} playlist(s)"
            )
            return self.snapshot()

    def _persist_repair(self, save, value) -> None:
        try:
            save(value)
        except StoreError as e:
            logger.error(f"Could not persist catalog repair: {e.message}")

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def songs(self) -> tuple[Song, ...]:
        with self._lock:
            return tuple(self._songs)

    @property
    def favorites(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._favorites)

    @property
    def playlists(self) -> tuple[Playlist, ...]:
        with self._lock:
            return tuple(playlist.copy() for playlist in self._playlists)

    def snapshot(self) -> Catalog:
        with self._lock:
            return Catalog(songs=self.songs, favorites=self.favorites, playlists=self.playlists)

    def get_song(self, song_id: str) -> Song | None:
        with self._lock:
            return next((song for song in self._songs if song.id == song_id), None)

    def get_playlist(self, playlist_id: str) -> Playlist | None:
        with self._lock:
            playlist = self._find_playlist(playlist_id)
            return playlist.copy() if playlist else None

    def is_favorite(self, song_id: str) -> bool:
        with self._lock:
            return song_id in self._favorites

    def favorite_songs(self) -> list[Song]:
        """Favorite songs, in library order."""
        with self._lock:
            return [song for song in self._songs if song.id in self._favorites]

    def playlist_songs(self, playlist_id: str) -> list[Song]:
        """
        Resolve a playlist into songs, in playlist order.

        Raises:
            PlaylistNotFoundError: If the playlist does not exist.
        """
        with self._lock:
            playlist = self._require_playlist(playlist_id)
            by_id = {song.id: song for song in self._songs}
            return [by_id[song_id] for song_id in playlist.songs if song_id in by_id]

    # =========================================================================
    # Songs
    # =========================================================================

    def add_song(self, picked: PickedFile | None, show_progress: bool = False) -> Song:
        """
        Import a picked file into the library.

        The file is copied into the music directory under its own name
        (or song_<millis>.mp3 when it has none; name collisions get a
        numeric suffix), given a new id, appended to the song list and
        persisted.

        Args:
            picked: The picker's result; None means the pick was cancelled.
            show_progress: Show a copy progress bar for large files.

        Returns:
            The new Song.

        Raises:
            SongImportError: If nothing was picked or the copy failed. The
                             catalog is unchanged.
            StoreError: If saving failed after the song was added in memory.
        """
        if picked is None:
            raise SongImportError("No file was picked")

        with self._lock:
            dest_name = picked.name.strip() or fallback_song_name()
            try:
                uri = self.file_store.copy_to_permanent_storage(
                    picked.source_uri, dest_name, show_progress=show_progress
                )
            except CopyError as e:
                log_file_failure(logger, "copy", picked.source_uri, e.message)
                raise SongImportError(
                    f"Failed to add {dest_name}: {e.message}",
                    details={"source": picked.source_uri, "original_error": e.message}
                ) from e

            song = Song(id=self._ids.next_id(), name=dest_name, uri=uri)
            self._songs.append(song)
            logger.info(f"Added {song.name}")

            self.catalog_store.save_songs(self._songs)
            return song

    def delete_song(self, song_id: str) -> DeleteResult:
        """
        Remove a song everywhere: file, catalog, favorites and playlists.

        Ordering:
            1. If the song is playing, the session is stopped and its
               handle released.
            2. The backing file is deleted. A file that is already gone is
               fine; a DeleteError is logged and reported in the result but
               does not stop the catalog cleanup.
            3. The song, its favorite flag and every playlist entry for it
               are removed together.
            4. All three records are persisted.

        Raises:
            SongNotFoundError: If song_id is not in the catalog.
            StoreError: If saving failed. The in-memory removal stands.
        """
        with self._lock:
            song = self.get_song(song_id)
            if song is None:
                raise SongNotFoundError(
                    f"No song with id {song_id}",
                    details={"song_id": song_id}
                )

            if self.session.is_current(song_id):
                self.session.stop()

            file_deleted = False
            file_error = None
            try:
                file_deleted = self.file_store.delete_file(song.uri)
            except DeleteError as e:
                file_error = e
                log_file_failure(logger, "delete", song.uri, e.message)

            self._songs = [s for s in self._songs if s.id != song_id]
            self._favorites.discard(song_id)
            for playlist in self._playlists:
                if song_id in playlist.songs:
                    playlist.songs = [s for s in playlist.songs if s != song_id]

            logger.info(f"Deleted {song.name}")

            self.catalog_store.save_songs(self._songs)
            self.catalog_store.save_favorites(self._favorites)
            self.catalog_store.save_playlists(self._playlists)

            return DeleteResult(song=song, file_deleted=file_deleted, file_error=file_error)

    def play(self, song_id: str) -> Song:
        """
        Start playing a catalog song.

        Raises:
            SongNotFoundError: If song_id is not in the catalog.
            PlaybackError: If the engine cannot play it.
        """
        with self._lock:
            song = self.get_song(song_id)
            if song is None:
                raise SongNotFoundError(
                    f"No song with id {song_id}",
                    details={"song_id": song_id}
                )
            self.session.play(song)
            return song

    # =========================================================================
    # Favorites
    # =========================================================================

    def toggle_favorite(self, song_id: str) -> bool:
        """
        Flip a song's favorite flag.

        The id is not validated; a stray id is pruned on the next
        initialize().

        Returns:
            True if the song is now a favorite.
        """
        with self._lock:
            if song_id in self._favorites:
                self._favorites.discard(song_id)
                now_favorite = False
            else:
                self._favorites.add(song_id)
                now_favorite = True

            self.catalog_store.save_favorites(self._favorites)
            return now_favorite

    # =========================================================================
    # Playlists
    # =========================================================================

    def create_playlist(self, name: str) -> Playlist:
        """
        Create an empty playlist.

        Raises:
            ValidationError: If name is blank after trimming. Nothing changes.
        """
        clean_name = _validate_playlist_name(name)

        with self._lock:
            playlist = Playlist(id=self._ids.next_id(), name=clean_name, songs=[])
            self._playlists.append(playlist)
            logger.info(f"Created playlist '{clean_name}'")

            self.catalog_store.save_playlists(self._playlists)
            return playlist.copy()

    def rename_playlist(self, playlist_id: str, name: str) -> Playlist:
        """
        Raises:
            ValidationError: If name is blank after trimming.
            PlaylistNotFoundError: If the playlist does not exist.
        """
        clean_name = _validate_playlist_name(name)

        with self._lock:
            playlist = self._require_playlist(playlist_id)
            if playlist.name != clean_name:
                playlist.name = clean_name
                self.catalog_store.save_playlists(self._playlists)
            return playlist.copy()

    def delete_playlist(self, playlist_id: str) -> bool:
        """
        Remove a playlist. Songs are untouched.

        Clearing any "currently viewed playlist" selection is the caller's job.

        Returns:
            True if a playlist was removed.
        """
        with self._lock:
            playlist = self._find_playlist(playlist_id)
            if playlist is None:
                return False

            self._playlists.remove(playlist)
            logger.info(f"Deleted playlist '{playlist.name}'")

            self.catalog_store.save_playlists(self._playlists)
            return True

    def add_song_to_playlist(self, playlist_id: str, song_id: str) -> bool:
        """
        Append a song to a playlist unless it is already there.

        Unknown playlist or song ids are a no-op.

        Returns:
            True if the playlist changed.
        """
        with self._lock:
            playlist = self._find_playlist(playlist_id)
            if playlist is None or self.get_song(song_id) is None:
                logger.debug(f"Ignoring add of {song_id} to {playlist_id}: unknown id")
                return False
            if song_id in playlist.songs:
                return False

            playlist.songs.append(song_id)
            self.catalog_store.save_playlists(self._playlists)
            return True

    def remove_song_from_playlist(self, playlist_id: str, song_id: str) -> bool:
        """
        Remove one song from one playlist, keeping the order of the rest.

        Returns:
            True if the playlist changed.
        """
        with self._lock:
            playlist = self._find_playlist(playlist_id)
            if playlist is None or song_id not in playlist.songs:
                return False

            playlist.songs.remove(song_id)
            self.catalog_store.save_playlists(self._playlists)
            return True

    # =========================================================================
    # Internals
    # =========================================================================

    def _find_playlist(self, playlist_id: str) -> Playlist | None:
        return next((p for p in self._playlists if p.id == playlist_id), None)

    def _require_playlist(self, playlist_id: str) -> Playlist:
        playlist = self._find_playlist(playlist_id)
        if playlist is None:
            raise PlaylistNotFoundError(
                f"No playlist with id {playlist_id}",
                details={"playlist_id": playlist_id}
            )
        return playlist


def _validate_playlist_name(name: str) -> str:
    clean_name = (name or "").strip()
    if not clean_name:
        raise ValidationError(
            "Playlist name cannot be empty",
            details={"name": name}
        )
    return clean_name


def _dedupe(song_ids: list[str]) -> list[str]:
    """Drop repeated ids, keeping the first occurrence and the order."""
    seen: set[str] = set()
    result = []
    for song_id in song_ids:
        if song_id not in seen:
            seen.add(song_id)
            result.append(song_id)
    return result
