"""
Playback session for song-locker.

Owns the single live engine handle and the reference to the current song,
exposes transport commands, and derives position/duration/playing state
from the engine's status reports.

States:
    IDLE     - no current song, no handle
    PLAYING  - a song is loaded and advancing
    PAUSED   - a song is loaded and not advancing (also after it finished)

Transitions:
    play(song)   any    -> PLAYING   (old handle released first)
    pause()      PLAYING -> PAUSED   (no-op when IDLE)
    resume()     PAUSED  -> PLAYING  (no-op when IDLE)
    stop()       any    -> IDLE      (handle released, counters reset)
    seek(ms)     same state; position follows the next status report

A finished track stays loaded: the session reports is_playing=False and
position 0, keeps current_song and the handle, and resume() replays it.

Thread Safety:
    Commands and status reports are serialized through one re-entrant
    lock. Reports carry no handle reference; each handle gets its own
    callback bound to it, and reports from a handle that is no longer
    current are discarded.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from song_locker.core.exceptions import EngineError, PlaybackError
from song_locker.core.logger import get_logger
from song_locker.playback.engine import AudioEngine, EngineHandle, EngineStatus

if TYPE_CHECKING:
    from song_locker.library.models import Song

logger = get_logger(__name__)


class PlaybackState(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class SessionSnapshot:
    """
    Read-only view of the session for the presentation layer.

    Position and duration may lag the engine by up to one poll interval.
    """
    current_song: Song | None
    is_playing: bool
    position_millis: int
    duration_millis: int

    @property
    def state(self) -> PlaybackState:
        if self.current_song is None:
            return PlaybackState.IDLE
        return PlaybackState.PLAYING if self.is_playing else PlaybackState.PAUSED


class PlaybackSession:
    """
    The one active playback session.

    Attributes:
        engine: Factory used to open a handle for each played song.
    """

    def __init__(self, engine: AudioEngine) -> None:
        self.engine = engine
        self._lock = threading.RLock()
        self._handle: EngineHandle | None = None
        self._current_song: Song | None = None
        self._is_playing = False
        self._position_millis = 0
        self._duration_millis = 0

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def current_song(self) -> Song | None:
        return self._current_song

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def position_millis(self) -> int:
        return self._position_millis

    @property
    def duration_millis(self) -> int:
        return self._duration_millis

    @property
    def state(self) -> PlaybackState:
        return self.snapshot().state

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                current_song=self._current_song,
                is_playing=self._is_playing,
                position_millis=self._position_millis,
                duration_millis=self._duration_millis,
            )

    def is_current(self, song_id: str) -> bool:
        with self._lock:
            return self._current_song is not None and self._current_song.id == song_id

    # =========================================================================
    # Transport
    # =========================================================================

    def play(self, song: Song) -> None:
        """
        Make song the current track and start it from the beginning.

        Any live handle is stopped and released before the new one is
        requested, so at most one handle exists at any time. This is the
        only way current_song changes to another song.

        Raises:
            PlaybackError: If the engine cannot open the file. The session
                           is left IDLE with no handle.
        """
        with self._lock:
            try:
                self._release_handle()
            finally:
                self._reset()

            handle_ref: list[EngineHandle] = []

            def on_status(status: EngineStatus) -> None:
                self._on_status(handle_ref[0] if handle_ref else None, status)

            try:
                handle = self.engine.create(song.uri, on_status)
            except EngineError as e:
                logger.error(f"Cannot play {song.name}: {e.message}")
                raise PlaybackError(
                    f"Failed to play {song.name}",
                    details={"song_id": song.id, "uri": song.uri, "original_error": e.message}
                ) from e

            handle_ref.append(handle)
            self._handle = handle
            self._current_song = song
            self._is_playing = True
            logger.info(f"Playing {song.name}")

    def pause(self) -> None:
        """
        Raises:
            PlaybackError: If the engine refuses. The state is unchanged.
        """
        with self._lock:
            if self._handle is None:
                return
            self._drive(self._handle.pause, "pause")
            self._is_playing = False

    def resume(self) -> None:
        with self._lock:
            if self._handle is None:
                return
            self._drive(self._handle.play, "resume")
            self._is_playing = True

    def toggle(self) -> None:
        """Pause when playing, resume when paused; no-op when IDLE."""
        with self._lock:
            if self._is_playing:
                self.pause()
            else:
                self.resume()

    def stop(self) -> None:
        """
        Release the handle and return to IDLE.

        Clears current_song and resets position and duration to 0. The
        library calls this before deleting the song that is playing.
        """
        with self._lock:
            if self._handle is None and self._current_song is None:
                return
            stopped = self._current_song
            try:
                self._release_handle()
            finally:
                self._reset()
            if stopped is not None:
                logger.info(f"Stopped {stopped.name}")

    def seek(self, target_millis: int) -> None:
        """
        Ask the engine to jump to target_millis.

        Negative targets clamp to 0; when the duration is known, targets
        past the end clamp to it. The reported position is NOT changed
        here: it follows the next status report, so the view never shows
        a position the engine has not reached.

        Raises:
            PlaybackError: If the engine rejects the seek.
        """
        with self._lock:
            if self._handle is None:
                return
            target = max(0, int(target_millis))
            if self._duration_millis:
                target = min(target, self._duration_millis)
            try:
                self._handle.seek(target)
            except EngineError as e:
                raise PlaybackError(
                    f"Failed to seek: {e.message}",
                    details={"target_millis": target}
                ) from e

    def close(self) -> None:
        self.stop()

    # =========================================================================
    # Engine status
    # =========================================================================

    def _on_status(self, handle: EngineHandle | None, status: EngineStatus) -> None:
        with self._lock:
            if handle is None or handle is not self._handle:
                return

            if status.did_just_finish:
                # Track stays loaded for replay
                self._is_playing = False
                self._position_millis = 0
                if status.duration_millis:
                    self._duration_millis = status.duration_millis
                logger.debug(f"Finished {self._current_song.name if self._current_song else ''}")
                return

            self._position_millis = max(0, status.position_millis)
            self._duration_millis = max(0, status.duration_millis)
            self._is_playing = status.is_playing

    # =========================================================================
    # Internals
    # =========================================================================

    def _release_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            handle.stop()
        except EngineError as e:
            logger.warning(f"Engine refused to stop cleanly: {e.message}")
        finally:
            handle.release()

    def _drive(self, command, operation: str) -> None:
        try:
            command()
        except EngineError as e:
            raise PlaybackError(
                f"Failed to {operation}: {e.message}",
                details={"operation": operation, "original_error": e.message}
            ) from e

    def _reset(self) -> None:
        self._current_song = None
        self._is_playing = False
        self._position_millis = 0
        self._duration_millis = 0
