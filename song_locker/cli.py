"""
Command-line interface for song-locker.

This module implements the CLI using Click, with rich-click for the
help and error colors. It is a thin projection of the library manager
and the playback session: every command opens the library, runs one
operation, prints the resulting state and exits.

Commands:
    song-locker songs                           List songs (favorites marked)
    song-locker add <file>...                   Import audio files
    song-locker delete <song-id>                Delete a song everywhere
    song-locker fav <song-id>                   Toggle favorite
    song-locker favorites                       List favorite songs
    song-locker playlist create <name>          Create an empty playlist
    song-locker playlist rename <id> <name>     Rename a playlist
    song-locker playlist delete <id>            Delete a playlist
    song-locker playlist add <id> <song-id>     Add a song to a playlist
    song-locker playlist remove <id> <song-id>  Remove a song from a playlist
    song-locker playlist show [<id>]            List playlists or one playlist
    song-locker play <song-id>                  Play a song with a progress bar

Options:
    --config <path>                             Path to config.yaml

Configuration:
    Without --config, ./config.yaml is used when present and defaults
    apply otherwise (library in ~/Music/SongLocker).
"""

import sys
import time
from pathlib import Path

import rich_click as click
from tqdm import tqdm

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.MAX_WIDTH = 100

from song_locker.core import (
    Config,
    FileStore,
    KeyValueStore,
    SongLockerError,
    get_logger,
    load_config,
    pick_audio_file,
    setup_logging,
    shutdown_logging,
)
from song_locker.library import CatalogStore, LibraryManager
from song_locker.playback import PlaybackSession, PygameAudioEngine
from song_locker.utils import format_time

logger = get_logger(__name__)


__version__ = "0.1.0"


class AppContext:
    """
    Lazily opened library shared by the commands of one invocation.

    Attributes:
        config: Loaded configuration.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self._kv_store: KeyValueStore | None = None
        self._engine: PygameAudioEngine | None = None
        self._session: PlaybackSession | None = None
        self._library: LibraryManager | None = None

    @property
    def library(self) -> LibraryManager:
        if self._library is None:
            library_config = self.config.library
            library_config.directory.mkdir(parents=True, exist_ok=True)

            file_store = FileStore(library_config.music_directory)
            self._kv_store = KeyValueStore(library_config.database_path)
            self._engine = PygameAudioEngine(self.config.playback.poll_interval_ms)
            self._session = PlaybackSession(self._engine)

            self._library = LibraryManager(
                CatalogStore(self._kv_store, file_store),
                file_store,
                self._session,
            )
            self._library.initialize()
        return self._library

    @property
    def session(self) -> PlaybackSession:
        return self.library.session

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
        if self._engine is not None:
            self._engine.close()
        if self._kv_store is not None:
            self._kv_store.close()


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    metavar="<path>",
    help="Path to config.yaml (default: ./config.yaml if present)"
)
@click.version_option(version=__version__, prog_name="song-locker")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """
    [bold]song-locker[/bold]: keep your audio files, favorites and playlists in one place.
    """
    try:
        config = load_config(config_path)
        setup_logging(config.library.directory, config.logging.console_level_number)
    except SongLockerError as e:
        _fail(e)

    app = AppContext(config)
    ctx.obj = app
    ctx.call_on_close(app.close)
    ctx.call_on_close(shutdown_logging)


# =============================================================================
# Songs
# =============================================================================

@cli.command("songs")
@click.pass_obj
def list_songs(app: AppContext) -> None:
    """List all songs. Favorites are marked with a star."""
    library = _run(lambda: app.library)
    songs = library.songs
    if not songs:
        click.echo("No songs yet. Add one with: song-locker add <file>")
        return

    for song in songs:
        star = "*" if library.is_favorite(song.id) else " "
        click.echo(f"{star} {song.id}  {song.name}")


@cli.command("add")
@click.argument("files", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.pass_obj
def add_songs(app: AppContext, files: tuple[Path, ...]) -> None:
    """Import one or more audio files into the library."""
    library = _run(lambda: app.library)
    failures = 0

    for path in files:
        try:
            song = library.add_song(pick_audio_file(path), show_progress=True)
        except SongLockerError as e:
            failures += 1
            click.secho(f"Failed to add {path}: {e.message}", fg="red", err=True)
            continue
        click.secho(f"Added {song.name} ({song.id})", fg="green")

    if failures:
        sys.exit(1)


@cli.command("delete")
@click.argument("song_id")
@click.pass_obj
def delete_song(app: AppContext, song_id: str) -> None:
    """Delete a song, its file, its favorite flag and its playlist entries."""
    result = _run(lambda: app.library.delete_song(song_id))
    click.secho(f"Deleted {result.song.name}", fg="green")
    if result.file_error is not None:
        click.secho(
            f"Warning: the file could not be removed: {result.file_error.message}",
            fg="yellow",
            err=True,
        )


# =============================================================================
# Favorites
# =============================================================================

@cli.command("fav")
@click.argument("song_id")
@click.pass_obj
def toggle_favorite(app: AppContext, song_id: str) -> None:
    """Toggle a song's favorite flag."""
    library = _run(lambda: app.library)
    song = library.get_song(song_id)
    if song is None:
        click.secho(f"Warning: no song with id {song_id}", fg="yellow", err=True)

    now_favorite = _run(lambda: library.toggle_favorite(song_id))
    label = song.name if song else song_id
    click.echo(f"{label} {'added to' if now_favorite else 'removed from'} favorites")


@cli.command("favorites")
@click.pass_obj
def list_favorites(app: AppContext) -> None:
    """List favorite songs."""
    songs = _run(lambda: app.library.favorite_songs())
    if not songs:
        click.echo("No favorites yet.")
        return
    for song in songs:
        click.echo(f"* {song.id}  {song.name}")


# =============================================================================
# Playlists
# =============================================================================

@cli.group("playlist")
def playlist_group() -> None:
    """Create, edit and inspect playlists."""


@playlist_group.command("create")
@click.argument("name")
@click.pass_obj
def create_playlist(app: AppContext, name: str) -> None:
    """Create an empty playlist."""
    playlist = _run(lambda: app.library.create_playlist(name))
    click.secho(f"Created playlist '{playlist.name}' ({playlist.id})", fg="green")


@playlist_group.command("rename")
@click.argument("playlist_id")
@click.argument("name")
@click.pass_obj
def rename_playlist(app: AppContext, playlist_id: str, name: str) -> None:
    """Rename a playlist."""
    playlist = _run(lambda: app.library.rename_playlist(playlist_id, name))
    click.secho(f"Renamed playlist to '{playlist.name}'", fg="green")


@playlist_group.command("delete")
@click.argument("playlist_id")
@click.pass_obj
def delete_playlist(app: AppContext, playlist_id: str) -> None:
    """Delete a playlist (its songs stay in the library)."""
    if _run(lambda: app.library.delete_playlist(playlist_id)):
        click.secho("Playlist deleted", fg="green")
    else:
        click.secho(f"No playlist with id {playlist_id}", fg="yellow", err=True)


@playlist_group.command("add")
@click.argument("playlist_id")
@click.argument("song_id")
@click.pass_obj
def add_to_playlist(app: AppContext, playlist_id: str, song_id: str) -> None:
    """Append a song to a playlist (once)."""
    if _run(lambda: app.library.add_song_to_playlist(playlist_id, song_id)):
        click.secho("Song added to playlist", fg="green")
    else:
        click.echo("Nothing changed (unknown id, or the song is already in the playlist)")


@playlist_group.command("remove")
@click.argument("playlist_id")
@click.argument("song_id")
@click.pass_obj
def remove_from_playlist(app: AppContext, playlist_id: str, song_id: str) -> None:
    """Remove a song from a playlist."""
    if _run(lambda: app.library.remove_song_from_playlist(playlist_id, song_id)):
        click.secho("Song removed from playlist", fg="green")
    else:
        click.echo("Nothing changed")


@playlist_group.command("show")
@click.argument("playlist_id", required=False)
@click.pass_obj
def show_playlist(app: AppContext, playlist_id: str | None) -> None:
    """List playlists, or the songs of one playlist."""
    library = _run(lambda: app.library)

    if playlist_id is None:
        playlists = library.playlists
        if not playlists:
            click.echo("No playlists yet.")
        for playlist in playlists:
            click.echo(f"{playlist.id}  {playlist.name} ({playlist.song_count} songs)")
        return

    songs = _run(lambda: library.playlist_songs(playlist_id))
    playlist = library.get_playlist(playlist_id)
    click.secho(playlist.name, bold=True)
    for position, song in enumerate(songs, start=1):
        click.echo(f"{position:>3}. {song.id}  {song.name}")


# =============================================================================
# Playback
# =============================================================================

@cli.command("play")
@click.argument("song_id")
@click.pass_obj
def play_song(app: AppContext, song_id: str) -> None:
    """Play a song until it ends (Ctrl+C stops it)."""
    song = _run(lambda: app.library.play(song_id))
    session = app.session
    interval = app.config.playback.poll_interval_ms / 1000

    bar = tqdm(
        total=0,
        desc=song.name,
        bar_format="{desc} |{bar}| {postfix}",
        leave=True,
    )
    try:
        while True:
            time.sleep(interval)
            snapshot = session.snapshot()
            if snapshot.current_song is None or not snapshot.is_playing:
                break
            if snapshot.duration_millis and bar.total != snapshot.duration_millis:
                bar.total = snapshot.duration_millis
            bar.n = snapshot.position_millis
            bar.set_postfix_str(
                f"{format_time(snapshot.position_millis)} / {format_time(snapshot.duration_millis)}"
            )
    except KeyboardInterrupt:
        logger.debug("Playback interrupted by user")
    finally:
        bar.close()
        session.stop()


# =============================================================================
# Helpers
# =============================================================================

def _run(operation):
    """Run a library operation, turning SongLockerError into a clean exit."""
    try:
        return operation()
    except SongLockerError as e:
        _fail(e)


def _fail(error: SongLockerError) -> None:
    logger.debug(f"Command failed: {error.message} {error.details}")
    click.secho(f"Error: {error.message}", fg="red", err=True)
    sys.exit(1)


def main() -> None:
    """Entry point for the song-locker console script."""
    cli()


if __name__ == "__main__":
    main()
