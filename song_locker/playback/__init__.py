"""
Playback layer: the audio engine and the single playback session.

Usage:
    from song_locker.playback import PlaybackSession, PygameAudioEngine

    session = PlaybackSession(PygameAudioEngine(poll_interval_ms=100))
    session.play(song)
"""

from song_locker.playback.engine import (
    AudioEngine,
    EngineHandle,
    EngineStatus,
    PygameAudioEngine,
    read_duration_millis,
)
from song_locker.playback.session import PlaybackSession, PlaybackState, SessionSnapshot

__all__ = [
    "AudioEngine",
    "EngineHandle",
    "EngineStatus",
    "PygameAudioEngine",
    "read_duration_millis",
    "PlaybackSession",
    "PlaybackState",
    "SessionSnapshot",
]
