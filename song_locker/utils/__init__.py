"""
Utility functions for song-locker.

This module provides small helpers shared by the library and the CLI:
    - Unique id generation for songs and playlists
    - Fallback filenames for imports without a name
    - Time formatting for playback display

Usage:
    from song_locker.utils import IdGenerator, fallback_song_name, format_time
"""

import threading
import time


class IdGenerator:
    """
    Monotonic millisecond-timestamp ids.

    Ids are the current Unix time in milliseconds as a string. Creation is
    user-paced, so collisions are rare, but two ids requested within the
    same millisecond (or after the clock steps backwards) are bumped to
    last + 1 so every id handed out is unique and increasing.

    Example:
        ids = IdGenerator()
        ids.next_id()  # "1718000000000"
        ids.next_id()  # "1718000000001" if called in the same millisecond
    """

    def __init__(self, clock=time.time) -> None:
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now = int(self._clock() * 1000)
            self._last = max(now, self._last + 1)
            return str(self._last)

    def observe(self, existing_id: str) -> None:
        """Make sure future ids sort after an id loaded from storage."""
        if existing_id.isdigit():
            with self._lock:
                self._last = max(self._last, int(existing_id))


def fallback_song_name(clock=time.time) -> str:
    """
    Synthetic filename for a picked file that has no name.

    Example:
        fallback_song_name()  # "song_1718000000000.mp3"
    """
    return f"song_{int(clock() * 1000)}.mp3"


def format_time(millis: int | float) -> str:
    """
    Format a position or duration in milliseconds as m:ss.

    Args:
        millis: Milliseconds; negative values are treated as 0.

    Returns:
        Minutes (unpadded) and zero-padded seconds.

    Examples:
        format_time(0)        # "0:00"
        format_time(65_000)   # "1:05"
        format_time(59_999)   # "1:00"
        format_time(3_600_000)  # "60:00"
    """
    total_seconds = round(max(0, millis) / 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"
