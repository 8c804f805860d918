"""Test the library manager"""

import json
from pathlib import Path

import pytest

from song_locker.core.exceptions import (
    DeleteError,
    EngineError,
    PlaylistNotFoundError,
    SongImportError,
    SongNotFoundError,
    StoreError,
    ValidationError,
)
from song_locker.core.file_store import PickedFile
from song_locker.library.catalog_store import FAVORITES_KEY, PLAYLISTS_KEY, SONGS_KEY
from song_locker.library.manager import LibraryManager
from song_locker.library.models import Song


def assert_references_intact(library):
    """Favorites and playlists only name catalog songs, and never twice"""
    known = {song.id for song in library.songs}
    assert library.favorites <= known
    for playlist in library.playlists:
        assert set(playlist.songs) <= known
        assert len(playlist.songs) == len(set(playlist.songs))


def seed_store(kv_store, file_store, songs, favorites, playlists):
    """Write raw catalog records, creating backing files for the songs"""
    records = []
    for song_id, name in songs:
        path = file_store.music_dir / name
        path.write_bytes(b"audio")
        records.append({"id": song_id, "name": name, "uri": str(path)})
    kv_store.set(SONGS_KEY, json.dumps(records))
    kv_store.set(FAVORITES_KEY, json.dumps(favorites))
    kv_store.set(PLAYLISTS_KEY, json.dumps(playlists))


class TestAddSong:
    """Test importing songs"""

    def test_add_song_copies_file_and_persists(self, library, make_source, catalog_store):
        song = library.add_song(make_source("a.mp3"))

        assert song.name == "a.mp3"
        assert Path(song.uri).read_bytes() == b"ID3fake-audio-bytes"
        assert library.songs == (song,)
        assert catalog_store.load().songs == (song,)

    def test_add_song_assigns_unique_ids(self, library, make_source):
        first = library.add_song(make_source("a.mp3"))
        second = library.add_song(make_source("b.mp3"))

        assert first.id != second.id
        assert int(second.id) > int(first.id)

    def test_same_filename_twice_keeps_both_files(self, library, make_source):
        first = library.add_song(make_source("a.mp3"))
        second = library.add_song(make_source("a.mp3"))

        assert first.uri != second.uri
        assert Path(second.uri).name == "a (1).mp3"
        assert Path(first.uri).exists() and Path(second.uri).exists()

    def test_nameless_pick_gets_synthetic_name(self, library, make_source):
        picked = make_source("blob")
        song = library.add_song(PickedFile(name="", source_uri=picked.source_uri, size=picked.size))

        assert song.name.startswith("song_")
        assert song.name.endswith(".mp3")

    def test_cancelled_pick_raises_import_error(self, library):
        with pytest.raises(SongImportError):
            library.add_song(None)
        assert library.songs == ()

    def test_copy_failure_leaves_catalog_unchanged(self, library, temp_dir, catalog_store):
        missing = PickedFile(name="gone.mp3", source_uri=str(temp_dir / "gone.mp3"), size=10)

        with pytest.raises(SongImportError):
            library.add_song(missing)

        assert library.songs == ()
        assert catalog_store.load().songs == ()
        assert list(library.file_store.music_dir.iterdir()) == []


class TestDeleteSong:
    """Test deleting songs"""

    def test_delete_scenario_prunes_favorites_and_playlists(self, kv_store, file_store, catalog_store, session):
        seed_store(
            kv_store, file_store,
            songs=[("1", "a.mp3"), ("2", "b.mp3")],
            favorites=["1"],
            playlists=[{"id": "p1", "name": "Mix", "songs": ["1", "2"]}],
        )
        library = LibraryManager(catalog_store, file_store, session)
        library.initialize()

        library.delete_song("2")

        assert [s.id for s in library.songs] == ["1"]
        assert library.favorites == frozenset({"1"})
        playlist = library.get_playlist("p1")
        assert playlist.name == "Mix"
        assert playlist.songs == ["1"]

        reloaded = catalog_store.load()
        assert [s.id for s in reloaded.songs] == ["1"]
        assert reloaded.favorites == frozenset({"1"})
        assert reloaded.playlists[0].songs == ["1"]

    def test_delete_removes_backing_file(self, library, make_source):
        song = library.add_song(make_source("a.mp3"))

        result = library.delete_song(song.id)

        assert result.file_deleted is True
        assert result.file_error is None
        assert not Path(song.uri).exists()

    def test_delete_with_file_already_gone(self, library, make_source):
        song = library.add_song(make_source("a.mp3"))
        Path(song.uri).unlink()

        result = library.delete_song(song.id)

        assert result.file_deleted is False
        assert result.file_error is None
        assert library.songs == ()

    def test_failed_file_delete_still_prunes_catalog(self, library, make_source, mocker):
        song = library.add_song(make_source("a.mp3"))
        playlist = library.create_playlist("Mix")
        library.add_song_to_playlist(playlist.id, song.id)
        library.toggle_favorite(song.id)
        mocker.patch.object(
            library.file_store, "delete_file", side_effect=DeleteError("Permission denied")
        )

        result = library.delete_song(song.id)

        assert isinstance(result.file_error, DeleteError)
        assert library.songs == ()
        assert library.favorites == frozenset()
        assert library.get_playlist(playlist.id).songs == []

    def test_deleting_playing_song_stops_session_first(self, library, make_source, engine):
        song = library.add_song(make_source("a.mp3"))
        library.play(song.id)
        handle = engine.handles[0]
        handle.emit(position_millis=5000, duration_millis=180000)

        observed = {}
        original_delete = library.file_store.delete_file

        def delete_and_observe(uri):
            # Catalog removal has not happened yet at this point
            observed["song_still_listed"] = library.get_song(song.id) is not None
            observed["snapshot"] = library.session.snapshot()
            return original_delete(uri)

        library.file_store.delete_file = delete_and_observe
        library.delete_song(song.id)

        assert observed["song_still_listed"] is True
        snapshot = observed["snapshot"]
        assert snapshot.current_song is None
        assert snapshot.is_playing is False
        assert snapshot.position_millis == 0
        assert snapshot.duration_millis == 0
        assert handle.is_released
        assert engine.live_handles == []

    def test_deleting_playing_song_when_engine_refuses_to_stop(self, library, make_source, engine, mocker):
        song = library.add_song(make_source("a.mp3"))
        library.play(song.id)
        mocker.patch.object(engine.handles[0], "stop", side_effect=EngineError("mixer not initialized"))

        result = library.delete_song(song.id)

        assert result.file_deleted is True
        assert library.songs == ()
        assert library.session.current_song is None
        assert engine.live_handles == []

    def test_deleting_other_song_keeps_playback(self, library, make_source, engine):
        playing = library.add_song(make_source("a.mp3"))
        other = library.add_song(make_source("b.mp3"))
        library.play(playing.id)

        library.delete_song(other.id)

        assert library.session.current_song == playing
        assert len(engine.live_handles) == 1

    def test_delete_unknown_song_raises(self, library):
        with pytest.raises(SongNotFoundError):
            library.delete_song("missing")

    def test_invariants_hold_across_add_delete_sequence(self, library, make_source):
        playlist = library.create_playlist("All")
        songs = [library.add_song(make_source(f"{n}.mp3")) for n in range(5)]
        for song in songs:
            library.add_song_to_playlist(playlist.id, song.id)
            if int(song.name[0]) % 2 == 0:
                library.toggle_favorite(song.id)
            assert_references_intact(library)

        for song in (songs[0], songs[3], songs[4]):
            library.delete_song(song.id)
            assert_references_intact(library)

        assert library.get_playlist(playlist.id).songs == [songs[1].id, songs[2].id]
        assert library.favorites == frozenset({songs[2].id})


class TestFavorites:
    """Test favorite toggling"""

    def test_toggle_favorite_flips_membership(self, library, make_source, catalog_store):
        song = library.add_song(make_source("a.mp3"))

        assert library.toggle_favorite(song.id) is True
        assert catalog_store.load().favorites == frozenset({song.id})
        assert library.toggle_favorite(song.id) is False
        assert catalog_store.load().favorites == frozenset()

    def test_unknown_favorite_is_pruned_on_next_initialize(self, library, catalog_store, file_store, session):
        library.toggle_favorite("stray")
        assert "stray" in library.favorites

        reopened = LibraryManager(catalog_store, file_store, session)
        reopened.initialize()

        assert reopened.favorites == frozenset()
        assert catalog_store.load().favorites == frozenset()

    def test_favorite_songs_in_library_order(self, library, make_source):
        a = library.add_song(make_source("a.mp3"))
        b = library.add_song(make_source("b.mp3"))
        library.toggle_favorite(b.id)
        library.toggle_favorite(a.id)

        assert library.favorite_songs() == [a, b]


class TestPlaylists:
    """Test playlist operations"""

    def test_create_playlist_trims_name(self, library, catalog_store):
        playlist = library.create_playlist("  Road trip  ")

        assert playlist.name == "Road trip"
        assert playlist.songs == []
        assert catalog_store.load().playlists == (playlist,)

    def test_blank_name_raises_validation_error(self, library):
        library.create_playlist("Keep")
        before = library.playlists

        with pytest.raises(ValidationError):
            library.create_playlist("  ")

        assert library.playlists == before

    def test_add_song_to_playlist_is_idempotent(self, library, make_source):
        song = library.add_song(make_source("a.mp3"))
        playlist = library.create_playlist("Mix")

        assert library.add_song_to_playlist(playlist.id, song.id) is True
        assert library.add_song_to_playlist(playlist.id, song.id) is False

        assert library.get_playlist(playlist.id).songs == [song.id]

    def test_add_with_unknown_ids_is_noop(self, library, make_source):
        song = library.add_song(make_source("a.mp3"))
        playlist = library.create_playlist("Mix")

        assert library.add_song_to_playlist("nope", song.id) is False
        assert library.add_song_to_playlist(playlist.id, "nope") is False
        assert library.get_playlist(playlist.id).songs == []

    def test_playlist_keeps_insertion_order(self, library, make_source):
        songs = [library.add_song(make_source(f"{n}.mp3")) for n in "cab"]
        playlist = library.create_playlist("Mix")
        for song in songs:
            library.add_song_to_playlist(playlist.id, song.id)

        assert library.playlist_songs(playlist.id) == songs

    def test_remove_song_from_playlist(self, library, make_source):
        songs = [library.add_song(make_source(f"{n}.mp3")) for n in "abc"]
        playlist = library.create_playlist("Mix")
        for song in songs:
            library.add_song_to_playlist(playlist.id, song.id)

        assert library.remove_song_from_playlist(playlist.id, songs[1].id) is True
        assert library.remove_song_from_playlist(playlist.id, songs[1].id) is False
        assert library.get_playlist(playlist.id).songs == [songs[0].id, songs[2].id]

    def test_rename_playlist(self, library):
        playlist = library.create_playlist("Old")

        renamed = library.rename_playlist(playlist.id, " New ")

        assert renamed.name == "New"
        with pytest.raises(ValidationError):
            library.rename_playlist(playlist.id, "")
        with pytest.raises(PlaylistNotFoundError):
            library.rename_playlist("missing", "Name")

    def test_delete_playlist_keeps_songs(self, library, make_source, catalog_store):
        song = library.add_song(make_source("a.mp3"))
        playlist = library.create_playlist("Mix")
        library.add_song_to_playlist(playlist.id, song.id)

        assert library.delete_playlist(playlist.id) is True
        assert library.delete_playlist(playlist.id) is False

        assert library.playlists == ()
        assert library.songs == (song,)
        assert catalog_store.load().playlists == ()

    def test_returned_playlist_is_a_copy(self, library, make_source):
        playlist = library.create_playlist("Mix")
        playlist.songs.append("injected")

        assert library.get_playlist(playlist.id).songs == []


class TestInitialize:
    """Test loading and reconciliation"""

    def test_dangling_playlist_reference_is_pruned_and_persisted(self, kv_store, file_store, catalog_store, session):
        seed_store(
            kv_store, file_store,
            songs=[("1", "a.mp3")],
            favorites=[],
            playlists=[{"id": "p1", "name": "Mix", "songs": ["1", "ghost"]}],
        )
        library = LibraryManager(catalog_store, file_store, session)

        catalog = library.initialize()

        assert catalog.playlists[0].songs == ["1"]
        assert json.loads(kv_store.get(PLAYLISTS_KEY)) == [
            {"id": "p1", "name": "Mix", "songs": ["1"]}
        ]

    def test_duplicate_playlist_entries_collapse(self, kv_store, file_store, catalog_store, session):
        seed_store(
            kv_store, file_store,
            songs=[("1", "a.mp3"), ("2", "b.mp3")],
            favorites=["2", "ghost"],
            playlists=[{"id": "p1", "name": "Mix", "songs": ["2", "1", "2"]}],
        )
        library = LibraryManager(catalog_store, file_store, session)
        library.initialize()

        assert library.get_playlist("p1").songs == ["2", "1"]
        assert library.favorites == frozenset({"2"})
        assert json.loads(kv_store.get(FAVORITES_KEY)) == ["2"]

    def test_song_with_missing_file_cascades(self, kv_store, file_store, catalog_store, session):
        seed_store(
            kv_store, file_store,
            songs=[("1", "a.mp3"), ("2", "b.mp3")],
            favorites=["2"],
            playlists=[{"id": "p1", "name": "Mix", "songs": ["2", "1"]}],
        )
        (file_store.music_dir / "b.mp3").unlink()

        library = LibraryManager(catalog_store, file_store, session)
        library.initialize()

        assert [s.id for s in library.songs] == ["1"]
        assert library.favorites == frozenset()
        assert library.get_playlist("p1").songs == ["1"]
        assert_references_intact(library)

    def test_new_ids_sort_after_loaded_ids(self, kv_store, file_store, catalog_store, session, make_source):
        far_future = "99999999999999"
        seed_store(kv_store, file_store, songs=[(far_future, "a.mp3")], favorites=[], playlists=[])
        library = LibraryManager(catalog_store, file_store, session)
        library.initialize()

        song = library.add_song(make_source("b.mp3"))

        assert int(song.id) > int(far_future)

    def test_repair_save_failure_is_not_fatal(self, kv_store, file_store, catalog_store, session, mocker):
        seed_store(kv_store, file_store, songs=[("1", "a.mp3")], favorites=["ghost"], playlists=[])
        mocker.patch.object(catalog_store, "save_favorites", side_effect=StoreError("disk full"))
        library = LibraryManager(catalog_store, file_store, session)

        library.initialize()

        assert library.favorites == frozenset()


class TestPersistenceFailure:
    """Test behavior when the store rejects a write"""

    def test_store_error_propagates_after_memory_update(self, library, catalog_store, mocker):
        mocker.patch.object(catalog_store, "save_playlists", side_effect=StoreError("disk full"))

        with pytest.raises(StoreError):
            library.create_playlist("Mix")

        assert [p.name for p in library.playlists] == ["Mix"]


class TestPlay:
    """Test starting playback through the library"""

    def test_play_resolves_catalog_song(self, library, make_source, engine):
        song = library.add_song(make_source("a.mp3"))

        assert library.play(song.id) == song
        assert engine.handles[0].uri == song.uri
        assert library.session.current_song == song

    def test_play_unknown_song_raises(self, library):
        with pytest.raises(SongNotFoundError):
            library.play("missing")

    def test_snapshot_is_detached(self, library, make_source):
        song = library.add_song(make_source("a.mp3"))
        snapshot = library.snapshot()

        library.delete_song(song.id)

        assert snapshot.songs == (song,)
        assert isinstance(snapshot.songs[0], Song)
