"""
File management for song-locker.

This module owns the content area where imported songs are kept and the
"picker" that turns a user-supplied path into an importable file.

Architecture:
    library_directory/
    ├── library.db                  # Catalog (key-value store)
    ├── logs/
    └── music/                      # Permanent copies of imported songs
        ├── Bohemian Rhapsody.mp3
        ├── Bohemian Rhapsody (1).mp3
        └── song_1718000000000.mp3

File Naming:
    - Permanent copies keep the original filename (sanitized)
    - Name collisions are resolved by suffixing " (1)", " (2)", ...
      before the extension. Existing files are never overwritten, so two
      catalog records never share one backing file.

Usage:
    from song_locker.core.file_store import FileStore, pick_audio_file

    store = FileStore(library_dir / "music")
    picked = pick_audio_file(Path("~/Downloads/track.mp3"))
    uri = store.copy_to_permanent_storage(picked.source_uri, picked.name)
"""

import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from tqdm import tqdm

from song_locker.core.exceptions import CopyError, DeleteError
from song_locker.core.logger import get_logger

logger = get_logger(__name__)


# Characters that are invalid in filenames on various operating systems
_INVALID_CHARS_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

# Maximum filename length (conservative for cross-platform compatibility)
_MAX_FILENAME_LENGTH = 200

_COPY_CHUNK_SIZE = 1024 * 1024

# Files above this size get a progress bar when copied with show_progress
_PROGRESS_THRESHOLD_BYTES = 8 * 1024 * 1024

# Extensions offered by the picker ("audio/*")
AUDIO_EXTENSIONS = frozenset({
    ".mp3", ".m4a", ".aac", ".wav", ".flac", ".ogg", ".oga", ".opus", ".wma", ".aiff", ".aif",
})


def sanitize_filename(name: str) -> str:
    """
    Sanitize a string for use in a filename.

    Args:
        name: The string to sanitize.

    Returns:
        A sanitized string safe for use in filenames, or "" when nothing
        usable is left (callers pick their own fallback).

    Behavior:
        - Replaces invalid characters with underscores
        - Strips leading/trailing whitespace and dots
        - Truncates to maximum length, keeping the extension
    """
    if not name:
        return ""

    result = _INVALID_CHARS_PATTERN.sub("_", name)

    # Strip whitespace and dots (dots at start can hide files on Unix)
    result = result.strip(" .")

    if len(result) > _MAX_FILENAME_LENGTH:
        stem, suffix = os.path.splitext(result)
        keep = max(1, _MAX_FILENAME_LENGTH - len(suffix))
        result = stem[:keep].rstrip(" .") + suffix

    return result


@dataclass(frozen=True)
class PickedFile:
    """
    A user-chosen audio file, ready to be imported.

    Attributes:
        name: Display filename of the source ("" when the source has none).
        source_uri: Absolute path of the source file.
        size: Size in bytes.
    """
    name: str
    source_uri: str
    size: int


def pick_audio_file(path: Path) -> PickedFile | None:
    """
    Resolve a user-supplied path into a PickedFile.

    This is the command-line stand-in for a document picker: a path that
    does not name an existing regular file counts as a cancelled pick.

    Args:
        path: Path typed by the user (~ is expanded).

    Returns:
        PickedFile, or None if nothing usable was picked.
    """
    resolved = Path(path).expanduser()
    if not resolved.is_file():
        logger.debug(f"Nothing to pick at {resolved}")
        return None

    if resolved.suffix.lower() not in AUDIO_EXTENSIONS:
        logger.warning(f"{resolved.name} does not look like an audio file, importing anyway")

    return PickedFile(
        name=resolved.name,
        source_uri=str(resolved.resolve()),
        size=resolved.stat().st_size,
    )


class FileStore:
    """
    Copy, existence-check and delete primitives over the music directory.

    Attributes:
        music_dir: Directory holding the permanent copies.
    """

    def __init__(self, music_dir: Path) -> None:
        """
        Initialize FileStore.

        Args:
            music_dir: Content directory. Created if it doesn't exist.
        """
        self.music_dir = music_dir
        self.music_dir.mkdir(parents=True, exist_ok=True)

    def get_available_path(self, dest_name: str) -> Path:
        """
        Return a path in music_dir for dest_name that does not exist yet.

        Example:
            # music/ already holds "Song.mp3" and "Song (1).mp3"
            get_available_path("Song.mp3")
            # Returns: music/Song (2).mp3
        """
        candidate = self.music_dir / dest_name
        if not candidate.exists():
            return candidate

        stem, suffix = os.path.splitext(dest_name)
        counter = 1
        while True:
            candidate = self.music_dir / f"{stem} ({counter}){suffix}"
            if not candidate.exists():
                return candidate
            counter += 1

    def copy_to_permanent_storage(
        self,
        source_uri: str,
        dest_name: str,
        show_progress: bool = False
    ) -> str:
        """
        Copy a source file into the music directory.

        Args:
            source_uri: Path of the file to copy.
            dest_name: Desired filename (sanitized here; suffixed on collision).
            show_progress: Display a tqdm bar for large files.

        Returns:
            The permanent path of the copy, as a string.

        Raises:
            CopyError: If the name is unusable or the copy fails. A partially
                       written destination is removed before raising.
        """
        safe_name = sanitize_filename(dest_name)
        if not safe_name:
            raise CopyError(
                f"Cannot derive a filename from '{dest_name}'",
                details={"dest_name": dest_name}
            )

        source = Path(source_uri)
        destination = self.get_available_path(safe_name)

        created = False
        try:
            total = source.stat().st_size
            with open(source, "rb") as src, open(destination, "xb") as dst:
                created = True
                with tqdm(
                    total=total,
                    unit="B",
                    unit_scale=True,
                    desc=f"Copying {safe_name}",
                    disable=not show_progress or total < _PROGRESS_THRESHOLD_BYTES,
                    leave=False,
                ) as bar:
                    while True:
                        chunk = src.read(_COPY_CHUNK_SIZE)
                        if not chunk:
                            break
                        dst.write(chunk)
                        bar.update(len(chunk))
            shutil.copystat(source, destination)
        except OSError as e:
            if created:
                self._discard_partial(destination)
            raise CopyError(
                f"Failed to copy {source.name}: {e}",
                details={"source": source_uri, "destination": str(destination), "original_error": str(e)}
            ) from e

        logger.debug(f"Copied {source} -> {destination}")
        return str(destination)

    def file_exists(self, uri: str) -> bool:
        return Path(uri).is_file()

    def delete_file(self, uri: str) -> bool:
        """
        Delete a backing file.

        Returns:
            True if a file was removed, False if it was already gone.

        Raises:
            DeleteError: If the file exists but cannot be removed.
        """
        path = Path(uri)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise DeleteError(
                f"Failed to delete {path.name}: {e}",
                details={"path": uri, "original_error": str(e)}
            ) from e

        logger.debug(f"Deleted {path}")
        return True

    def _discard_partial(self, destination: Path) -> None:
        try:
            destination.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial copy {destination}: {e}")
