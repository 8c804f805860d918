"""Test configuration and fixtures"""

import tempfile
from pathlib import Path

import pygame
import pytest

from song_locker.core.exceptions import EngineError
from song_locker.core.file_store import FileStore, PickedFile
from song_locker.core.kv_store import KeyValueStore
from song_locker.library.catalog_store import CatalogStore
from song_locker.library.manager import LibraryManager
from song_locker.playback.engine import AudioEngine, EngineHandle, EngineStatus
from song_locker.playback.session import PlaybackSession


class FakeHandle(EngineHandle):
    """Engine handle that records the commands it receives"""

    def __init__(self, uri, on_status):
        self.uri = uri
        self.on_status = on_status
        self.commands = ["play"]
        self._released = False

    def play(self):
        self.commands.append("play")

    def pause(self):
        self.commands.append("pause")

    def stop(self):
        self.commands.append("stop")

    def seek(self, position_millis):
        self.commands.append(("seek", position_millis))

    def release(self):
        self.commands.append("release")
        self._released = True

    @property
    def is_released(self):
        return self._released

    def emit(self, position_millis=0, duration_millis=0, is_playing=True, did_just_finish=False):
        """Deliver a status report as the engine's polling thread would"""
        self.on_status(EngineStatus(
            position_millis=position_millis,
            duration_millis=duration_millis,
            is_playing=is_playing,
            did_just_finish=did_just_finish,
        ))


class FakeEngine(AudioEngine):
    """In-memory audio engine; uris listed in fail_uris cannot be played"""

    def __init__(self):
        self.handles = []
        self.fail_uris = set()

    def create(self, uri, on_status):
        if uri in self.fail_uris:
            raise EngineError(f"Unsupported file: {uri}", details={"uri": uri})
        handle = FakeHandle(uri, on_status)
        self.handles.append(handle)
        return handle

    @property
    def live_handles(self):
        return [h for h in self.handles if not h.is_released]


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def file_store(temp_dir):
    return FileStore(temp_dir / "library" / "music")


@pytest.fixture
def kv_store(temp_dir):
    (temp_dir / "library").mkdir(exist_ok=True)
    store = KeyValueStore(temp_dir / "library" / "library.db")
    yield store
    store.close()


@pytest.fixture
def catalog_store(kv_store, file_store):
    return CatalogStore(kv_store, file_store)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def session(engine):
    return PlaybackSession(engine)


@pytest.fixture
def library(catalog_store, file_store, session):
    manager = LibraryManager(catalog_store, file_store, session)
    manager.initialize()
    return manager


@pytest.fixture
def make_source(temp_dir):
    """Factory for source audio files outside the library"""
    downloads = temp_dir / "downloads"
    downloads.mkdir()

    def _make(name="track.mp3", content=b"ID3fake-audio-bytes"):
        path = downloads / name
        path.write_bytes(content)
        return PickedFile(name=name, source_uri=str(path), size=len(content))

    return _make


@pytest.fixture
def mixer(mocker):
    """Replace pygame.mixer as seen by the engine module; every track is 10 s long"""
    fake_pygame = mocker.patch("song_locker.playback.engine.pygame")
    fake_pygame.error = pygame.error
    fake_pygame.mixer.get_init.return_value = True
    fake_pygame.mixer.music.get_busy.return_value = True
    fake_pygame.mixer.music.get_pos.return_value = 0
    mocker.patch("song_locker.playback.engine.read_duration_millis", return_value=10000)
    return fake_pygame.mixer

