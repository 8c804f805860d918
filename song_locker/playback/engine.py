"""
Audio engine for song-locker.

The engine decodes one file at a time and reports its status on a fixed
polling interval. The playback session is its only client: it asks for a
handle with create(uri, on_status), drives it with play/pause/stop/seek,
and gives it back with release().

Status delivery:
    The handle calls on_status(EngineStatus) from its polling thread. A
    report always describes a state the engine has already reached; the
    session applies it under its own lock and discards reports from
    handles it has already released.

Exclusivity:
    pygame's mixer holds a single music stream, so PygameAudioEngine hands
    out at most one live handle. Asking for a second one before the first
    is released raises EngineError.

Usage:
    engine = PygameAudioEngine(poll_interval_ms=100)
    handle = engine.create("/music/a.mp3", on_status=print)   # already playing
    handle.seek(30_000)
    handle.release()
"""

import os
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator

# Keep pygame's import banner out of the CLI output
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import mutagen
import pygame

from song_locker.core.config import DEFAULT_POLL_INTERVAL_MS
from song_locker.core.exceptions import EngineError
from song_locker.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EngineStatus:
    """
    One status report from a live engine handle.

    Attributes:
        position_millis: Elapsed position in the track.
        duration_millis: Total track length, 0 while unknown.
        is_playing: True while audio is actually advancing.
        did_just_finish: True exactly once, when the track reaches its end.
    """
    position_millis: int
    duration_millis: int
    is_playing: bool
    did_just_finish: bool = False


StatusCallback = Callable[[EngineStatus], None]


class EngineHandle(ABC):
    """One decoded, controllable audio stream."""

    @abstractmethod
    def play(self) -> None:
        """Start or resume; after a finished track, restart from the top."""

    @abstractmethod
    def pause(self) -> None: ...

    @abstractmethod
    def stop(self) -> None:
        """Halt playback and rewind to 0. The handle stays usable."""

    @abstractmethod
    def seek(self, position_millis: int) -> None: ...

    @abstractmethod
    def release(self) -> None:
        """Free the stream. Idempotent; every other call becomes a no-op."""

    @property
    @abstractmethod
    def is_released(self) -> bool: ...


class AudioEngine(ABC):
    """Factory for engine handles."""

    @abstractmethod
    def create(self, uri: str, on_status: StatusCallback) -> EngineHandle:
        """
        Open uri and start playing it.

        Raises:
            EngineError: If the file cannot be decoded or no device is available.
                         No half-open handle is left behind.
        """


def read_duration_millis(uri: str) -> int:
    """
    Read the track length with mutagen.

    pygame's music stream does not expose a duration, so it is taken from
    the file's stream info. Returns 0 when the format is not recognized.
    """
    try:
        audio = mutagen.File(uri)
    except (mutagen.MutagenError, OSError) as e:
        logger.debug(f"Could not read stream info from {uri}: {e}")
        return 0

    if audio is None or getattr(audio, "info", None) is None:
        return 0
    return max(0, int(round(audio.info.length * 1000)))


class PygameEngineHandle(EngineHandle):
    """
    Live pygame.mixer.music stream with a status polling thread.

    pygame reports elapsed time only since the last play() call, so the
    handle keeps the offset of the last seek and adds it to get_pos().
    """

    def __init__(
        self,
        engine: "PygameAudioEngine",
        uri: str,
        duration_millis: int,
        on_status: StatusCallback,
        poll_interval_ms: int,
    ) -> None:
        self._engine = engine
        self.uri = uri
        self._duration_millis = duration_millis
        self._on_status = on_status
        self._poll_interval = poll_interval_ms / 1000

        self._lock = threading.Lock()
        self._released = False
        self._playing = False
        self._paused = False
        self._offset_millis = 0

        self._stop_poll = threading.Event()
        self._poll_thread = threading.Thread(
            target=self._poll_loop,
            name=f"engine-poll-{os.path.basename(uri)}",
            daemon=True,
        )

    # =========================================================================
    # Transport
    # =========================================================================

    def start(self) -> None:
        """Begin playback and status polling. Called once by the engine."""
        with self._lock:
            pygame.mixer.music.play()
            self._playing = True
        self._poll_thread.start()

    def play(self) -> None:
        with self._lock:
            if self._released:
                return
            with self._mixer_errors("resume"):
                if self._paused:
                    pygame.mixer.music.unpause()
                elif not self._playing:
                    self._offset_millis = 0
                    pygame.mixer.music.play()
            self._playing = True
            self._paused = False

    def pause(self) -> None:
        with self._lock:
            if self._released or not self._playing:
                return
            with self._mixer_errors("pause"):
                pygame.mixer.music.pause()
            self._playing = False
            self._paused = True

    def stop(self) -> None:
        with self._lock:
            if self._released:
                return
            # Rewound even if the mixer refuses
            self._playing = False
            self._paused = False
            self._offset_millis = 0
            with self._mixer_errors("stop"):
                pygame.mixer.music.stop()

    def seek(self, position_millis: int) -> None:
        with self._lock:
            if self._released:
                return
            target = max(0, position_millis)
            if self._duration_millis:
                target = min(target, self._duration_millis)
            try:
                pygame.mixer.music.play(start=target / 1000)
            except pygame.error as e:
                raise EngineError(
                    f"Seeking is not supported for {os.path.basename(self.uri)}: {e}",
                    details={"uri": self.uri, "position_millis": target}
                ) from e
            self._offset_millis = target
            if self._paused or not self._playing:
                with self._mixer_errors("pause"):
                    pygame.mixer.music.pause()
                self._paused = True
                self._playing = False

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            self._stop_poll.set()
            try:
                pygame.mixer.music.stop()
                pygame.mixer.music.unload()
            except pygame.error as e:
                logger.warning(f"Error while releasing {self.uri}: {e}")
            self._playing = False
            self._paused = False
        self._engine._handle_released(self)
        logger.debug(f"Released engine handle for {self.uri}")

    @property
    def is_released(self) -> bool:
        return self._released

    @contextmanager
    def _mixer_errors(self, operation: str) -> Iterator[None]:
        """Re-raise pygame.error from a mixer call as EngineError."""
        try:
            yield
        except pygame.error as e:
            raise EngineError(
                f"Failed to {operation} {os.path.basename(self.uri)}: {e}",
                details={"uri": self.uri, "operation": operation, "original_error": str(e)}
            ) from e

    # =========================================================================
    # Status polling
    # =========================================================================

    def _current_status(self) -> EngineStatus | None:
        with self._lock:
            if self._released:
                return None

            if self._playing and not pygame.mixer.music.get_busy():
                # Reached the end: rewind, keep the stream loaded for replay
                self._playing = False
                self._offset_millis = 0
                return EngineStatus(
                    position_millis=0,
                    duration_millis=self._duration_millis,
                    is_playing=False,
                    did_just_finish=True,
                )

            position = self._offset_millis
            if self._playing or self._paused:
                position += max(0, pygame.mixer.music.get_pos())
            if self._duration_millis:
                position = min(position, self._duration_millis)

            return EngineStatus(
                position_millis=position,
                duration_millis=self._duration_millis,
                is_playing=self._playing,
            )

    def _poll_loop(self) -> None:
        while not self._stop_poll.wait(self._poll_interval):
            try:
                status = self._current_status()
            except pygame.error as e:
                logger.error(f"Engine polling failed for {self.uri}: {e}")
                return
            if status is None:
                return
            # Delivered outside self._lock: the callback takes the session lock
            self._on_status(status)


class PygameAudioEngine(AudioEngine):
    """
    AudioEngine backed by pygame.mixer.music.

    The mixer is initialized lazily on the first create() call and shut
    down by close().
    """

    def __init__(self, poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS) -> None:
        self.poll_interval_ms = poll_interval_ms
        self._lock = threading.Lock()
        self._live_handle: PygameEngineHandle | None = None

    def create(self, uri: str, on_status: StatusCallback) -> EngineHandle:
        with self._lock:
            if self._live_handle is not None:
                raise EngineError(
                    "An engine handle is already live; release it first",
                    details={"uri": uri, "live_uri": self._live_handle.uri}
                )

            try:
                if not pygame.mixer.get_init():
                    pygame.mixer.init()
                pygame.mixer.music.load(uri)
            except pygame.error as e:
                raise EngineError(
                    f"Cannot play {os.path.basename(uri)}: {e}",
                    details={"uri": uri, "original_error": str(e)}
                ) from e

            handle = PygameEngineHandle(
                engine=self,
                uri=uri,
                duration_millis=read_duration_millis(uri),
                on_status=on_status,
                poll_interval_ms=self.poll_interval_ms,
            )
            try:
                handle.start()
            except pygame.error as e:
                pygame.mixer.music.unload()
                raise EngineError(
                    f"Cannot start {os.path.basename(uri)}: {e}",
                    details={"uri": uri, "original_error": str(e)}
                ) from e

            self._live_handle = handle
            logger.debug(f"Engine handle created for {uri}")
            return handle

    def _handle_released(self, handle: PygameEngineHandle) -> None:
        with self._lock:
            if self._live_handle is handle:
                self._live_handle = None

    def close(self) -> None:
        """Release any live handle and shut the mixer down."""
        handle = self._live_handle
        if handle is not None:
            handle.release()
        if pygame.mixer.get_init():
            pygame.mixer.quit()
