"""
Logging configuration for song-locker.

This module sets up the logging system with multiple outputs:
    - Console: tqdm-compatible, colored by level
    - log_full.log: Complete log of all events (DEBUG and above)
    - log_errors.log: Only ERROR and CRITICAL level messages
    - file_failures.log: Imports that could not be copied and backing
      files that could not be deleted

Log File Locations:
    All log files are created in the 'logs' subdirectory of the library
    directory specified in config.yaml. Each run gets its own timestamped
    set of files.

Usage:
    from song_locker.core.logger import setup_logging, get_logger

    setup_logging(library_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Library loaded")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that prefixes each console line with a colored level name.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        return f"{color}{record.levelname}{Colors.RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to the console without breaking tqdm bars.

    The `play` command keeps a progress bar on screen while the track
    plays; plain stderr logging would tear it. tqdm.write() prints the
    message above any active bar instead.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class FileFailureHandler(logging.Handler):
    """
    Handler that captures file-store failures for the failures report.

    It listens for log records carrying file failure information and
    writes them to file_failures.log in a simple, human-readable format:

        COPY   /home/me/Downloads/track.mp3
        [Errno 28] No space left on device

        DELETE /home/me/Music/SongLocker/music/old.mp3
        [Errno 13] Permission denied

    The handler looks for these extra fields in log records:
        - 'file_failure_operation': "copy" or "delete"
        - 'file_failure_path': The path involved
        - 'file_failure_reason': Why it failed

    Only records containing these fields are written to the report.

    Usage:
        log_file_failure(logger, "delete", song.uri, str(error))
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "file_failure_operation"):
            return

        if self.report_file is None:
            return

        try:
            operation = getattr(record, "file_failure_operation", "unknown")
            path = getattr(record, "file_failure_path", "")
            reason = getattr(record, "file_failure_reason", "")

            self.report_file.write(f"{operation.upper():<6} {path}\n")
            self.report_file.write(f"{reason}\n\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """
        Close the report file handle.

        Called automatically when logging is shut down.
        Safe to call multiple times.
        """
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(library_dir: Path, console_level: int = logging.INFO) -> Path:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before the library is opened.

    Args:
        library_dir: Library root directory. Logs are stored in a 'logs'
                     subdirectory.
        console_level: Minimum level shown on the console.

    Returns:
        The logs directory that was configured.

    Behavior:
        1. Create library_dir/logs if it doesn't exist
        2. Configure root logger level to DEBUG, dropping old handlers
        3. Console handler (TqdmLoggingHandler), colored
        4. Full log file handler (DEBUG+)
        5. Error log file handler (ERROR+ via ErrorOnlyFilter)
        6. File failures report handler

    Thread Safety:
        This function is NOT thread-safe. Call it once from the main
        thread before any playback starts.
    """
    logs_dir = library_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_handler = logging.FileHandler(
        logs_dir / f"log_full_{timestamp}.log", mode="w", encoding="utf-8"
    )
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(
        logs_dir / f"log_errors_{timestamp}.log", mode="w", encoding="utf-8"
    )
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failures_handler = FileFailureHandler(logs_dir / f"file_failures_{timestamp}.log")
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    return logs_dir


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Thin wrapper around logging.getLogger() so every module names its
    logger the same way (get_logger(__name__)).

    Note:
        Loggers obtained before setup_logging() is called propagate to a
        root logger with no handlers; tests rely on pytest's caplog instead.
    """
    return logging.getLogger(name)


def log_file_failure(
    logger: logging.Logger,
    operation: str,
    path: str,
    reason: str
) -> None:
    """
    Log a failed copy or delete in the content area.

    Attaches the extra fields FileFailureHandler uses to write the
    file_failures report. Deletions are logged at WARNING because they
    never block the catalog update; copies are logged at ERROR.

    Args:
        logger: The logger to use for the message.
        operation: "copy" or "delete".
        path: The path involved.
        reason: Description of why the operation failed.
    """
    level = logging.WARNING if operation == "delete" else logging.ERROR
    logger.log(
        level,
        f"File {operation} failed: {path} - {reason}",
        extra={
            "file_failure_operation": operation,
            "file_failure_path": path,
            "file_failure_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and detach every handler on the root logger.

    Called from the CLI's finally block. After this, log records are dropped.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)
