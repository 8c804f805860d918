"""
Exception classes for song-locker.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, and distinguishes one failure mode of the library from another.

Exception Hierarchy:
    SongLockerError (base)
        ConfigError - Configuration file issues
        StoreError - Key-value store read/write issues
        SongImportError - Picking or copying a new song failed
        ValidationError - User input rejected (e.g. blank playlist name)
        FileStoreError - Content area failures
            CopyError - Copy into permanent storage failed
            DeleteError - Removing a backing file failed
        EngineError - Audio engine could not open or drive a stream
        PlaybackError - Playback session could not start a track
        SongNotFoundError - Unknown song id
        PlaylistNotFoundError - Unknown playlist id
"""


class SongLockerError(Exception):
    """
    Base exception for all song-locker errors.

    All custom exceptions in this project inherit from this class,
    allowing callers (the CLI in particular) to catch every library
    failure with a single except clause.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g. song id, path).

    Example:
        try:
            library.delete_song(song_id)
        except SongLockerError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'song_id': Song involved in the error
                     - 'path': File path that caused the error
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(SongLockerError):
    """
    Raised when there's an issue with the configuration file.

    Common causes:
        - An explicitly requested config.yaml does not exist
        - config.yaml has invalid YAML syntax
        - A section is not a dictionary
        - Invalid field values (e.g. poll interval out of range)
    """
    pass


class StoreError(SongLockerError):
    """
    Raised when the durable key-value store cannot be read or written.

    When this is raised by a save, the in-memory catalog has already been
    updated: the process keeps running with unpersisted drift until the
    next successful save, and reconciliation on the next start repairs
    any dangling references the drift leaves behind.

    Example:
        raise StoreError(
            "Failed to write key '@playlists'",
            details={'key': '@playlists', 'original_error': 'disk I/O error'}
        )
    """
    pass


class SongImportError(SongLockerError):
    """
    Raised when a song could not be added to the library.

    The catalog is always left unchanged: no song record is created
    without a backing file.

    Common causes:
        - The picker was cancelled or yielded no file
        - Copying into permanent storage failed (see CopyError)
    """
    pass


class ValidationError(SongLockerError):
    """Raised when user input is rejected before any state is touched."""
    pass


class FileStoreError(SongLockerError):
    """Base class for failures of the on-disk content area."""
    pass


class CopyError(FileStoreError):
    """
    Raised when a source file cannot be copied into permanent storage.

    Any partially written destination file is removed before raising.
    """
    pass


class DeleteError(FileStoreError):
    """
    Raised when a backing file cannot be deleted.

    This is a NON-CRITICAL error: the library logs and reports it, but
    still removes the song from the catalog.
    """
    pass


class EngineError(SongLockerError):
    """
    Raised by the audio engine when it cannot open or drive a stream.

    Common causes:
        - Corrupt or unsupported audio file
        - No audio device available
        - A second live handle was requested while one is still open
    """
    pass


class PlaybackError(SongLockerError):
    """
    Raised by the playback session when a track cannot be started.

    The session is always Idle afterwards, with no engine handle held.
    """
    pass


class SongNotFoundError(SongLockerError):
    """Raised when an operation needs a song id that is not in the catalog."""
    pass


class PlaylistNotFoundError(SongLockerError):
    """Raised when an operation needs a playlist id that does not exist."""
    pass
