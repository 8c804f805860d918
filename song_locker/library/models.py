"""
Data models for the song-locker catalog.

This module defines the dataclasses for songs, playlists and the catalog
snapshot handed to the presentation layer, together with their
conversion to and from the JSON-compatible dicts persisted by the
catalog store.

Design Decisions:
    - Song is frozen: a song never changes after import, it is only deleted
    - Playlist keeps a mutable song-id list; order is user-visible
    - Favorites and playlists reference songs by id, never by object
    - Parsing is strict: from_dict raises ValueError on malformed input and
      the catalog store decides what to do with it

Usage:
    from song_locker.library.models import Song, Playlist

    song = Song(id="1718000000000", name="a.mp3", uri="/music/a.mp3")
    data = song.to_dict()
    assert Song.from_dict(data) == song
"""

from dataclasses import dataclass, field
from typing import Any


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"'{key}' must be a non-empty string, got {value!r}")
    return value


@dataclass(frozen=True)
class Song:
    """
    An imported audio file.

    Attributes:
        id: Opaque unique id (millisecond timestamp string for new imports).
            Example: "1718000000000"

        name: Display filename, as picked.
              Example: "Bohemian Rhapsody.mp3"

        uri: Permanent storage path of the copy in the music directory.
             Example: "/home/me/Music/SongLocker/music/Bohemian Rhapsody.mp3"
    """
    id: str
    name: str
    uri: str

    @classmethod
    def from_dict(cls, data: Any) -> "Song":
        """
        Create a Song from its persisted dict.

        Raises:
            ValueError: If data is not a dict or a field is missing/empty.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Song entry must be an object, got {type(data).__name__}")
        return cls(
            id=_require_str(data, "id"),
            name=_require_str(data, "name"),
            uri=_require_str(data, "uri"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "uri": self.uri}


@dataclass
class Playlist:
    """
    A user-defined, ordered list of songs.

    Attributes:
        id: Opaque unique id.
        name: Trimmed, non-empty name chosen by the user.
        songs: Ordered song ids. Each id appears at most once.
    """
    id: str
    name: str
    songs: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Playlist":
        """
        Create a Playlist from its persisted dict.

        Duplicate song ids are kept here; the library removes them when it
        reconciles the catalog.

        Raises:
            ValueError: If data is not a dict, a field is missing, or songs
                        is not a list of strings.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Playlist entry must be an object, got {type(data).__name__}")

        songs = data.get("songs", [])
        if not isinstance(songs, list) or not all(isinstance(s, str) for s in songs):
            raise ValueError("'songs' must be a list of song id strings")

        return cls(
            id=_require_str(data, "id"),
            name=_require_str(data, "name"),
            songs=list(songs),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "songs": list(self.songs)}

    def copy(self) -> "Playlist":
        return Playlist(id=self.id, name=self.name, songs=list(self.songs))

    @property
    def song_count(self) -> int:
        return len(self.songs)


@dataclass(frozen=True)
class Catalog:
    """
    Immutable snapshot of the whole catalog.

    Returned by CatalogStore.load() and LibraryManager.snapshot(). The
    playlists are copies, so mutating them never touches library state.
    """
    songs: tuple[Song, ...] = ()
    favorites: frozenset[str] = frozenset()
    playlists: tuple[Playlist, ...] = ()
