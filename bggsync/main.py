"""Main entry point for the bggsync command-line application.

This module provides the application entry point with:
- Command-line argument parsing
- Application initialization and dependency injection
- Cancellation of the running sync on SIGINT/SIGTERM
"""

import argparse
import asyncio
import signal
import sys
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import httpx
import structlog

from . import __version__
from .models import AppConfig, CollectionRecord, PlayRecord, SyncReport
from .services.backoff import BackoffPolicy
from .services.collection_fetcher import CollectionFetcher
from .services.config import VALID_LOG_LEVELS, ConfigurationService
from .services.errors import AppError, NotLoggedInError, get_error_service
from .services.http_client import HttpClientService
from .services.logging import setup_logging
from .services.middleware import build_request_hooks
from .services.plays_fetcher import PlaysFetcher
from .services.retry import RetryLoop
from .services.stats import StatsService
from .services.storage import JsonRecordCache, JsonSyncTimeStore, StaticIdentityProvider
from .services.sync import SyncService

log = structlog.stdlib.get_logger()

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NOT_LOGGED_IN = 2
EXIT_INTERRUPTED = 130

COMMANDS = ("collection", "plays", "all", "status")


class ApplicationContext:
    """Container for application services and state.

    This class manages the lifecycle of all application services and wires
    them together on first use.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        username: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the application context.

        Args:
            config_path: Path to configuration file
            username: Username overriding the configured one
            transport: Optional HTTP transport override
        """
        self._config_path: Path | None = config_path
        self._username: str | None = username
        self._transport = transport

        # Services (initialized lazily)
        self._config_service: ConfigurationService | None = None
        self._config: AppConfig | None = None
        self._http_client: HttpClientService | None = None
        self._collection_cache: JsonRecordCache[CollectionRecord] | None = None
        self._plays_cache: JsonRecordCache[PlayRecord] | None = None
        self._sync_times: JsonSyncTimeStore | None = None
        self._sync_service: SyncService | None = None
        self._stats_service: StatsService | None = None

    @property
    def config_service(self) -> ConfigurationService:
        """Get the configuration service (lazy initialization)."""
        if self._config_service is None:
            self._config_service = ConfigurationService(config_path=self._config_path)
        return self._config_service

    @property
    def config(self) -> AppConfig:
        """Get the current application configuration."""
        if self._config is None:
            config = self.config_service.load_config()
            if self._username:
                config = replace(config, username=self._username)
            self._config = config
        return self._config

    @property
    def http_client(self) -> HttpClientService:
        """Get the HTTP client service (lazy initialization)."""
        if self._http_client is None:
            self._http_client = HttpClientService(
                base_url=self.config.base_url,
                connect_timeout=self.config.connect_timeout,
                read_timeout=self.config.read_timeout,
                rate_limit_delay=self.config.request_delay,
                request_hooks=build_request_hooks(self.config),
                transport=self._transport,
            )
        return self._http_client

    @property
    def collection_cache(self) -> JsonRecordCache[CollectionRecord]:
        if self._collection_cache is None:
            self._collection_cache = JsonRecordCache.for_collection(self.config.cache_directory)
        return self._collection_cache

    @property
    def plays_cache(self) -> JsonRecordCache[PlayRecord]:
        if self._plays_cache is None:
            self._plays_cache = JsonRecordCache.for_plays(self.config.cache_directory)
        return self._plays_cache

    @property
    def sync_times(self) -> JsonSyncTimeStore:
        if self._sync_times is None:
            self._sync_times = JsonSyncTimeStore.in_directory(self.config.cache_directory)
        return self._sync_times

    @property
    def sync_service(self) -> SyncService:
        """Get the sync service with its fetchers (lazy initialization)."""
        if self._sync_service is None:
            config = self.config
            retry_loop = RetryLoop(
                BackoffPolicy(config.initial_backoff, config.backoff_multiplier, config.max_backoff),
                max_attempts=config.max_attempts,
            )
            self._sync_service = SyncService(
                identity=StaticIdentityProvider(config.username),
                collection_fetcher=CollectionFetcher(
                    self.http_client,
                    retry_loop,
                    subfetch_delay=config.subfetch_delay,
                    concurrent=config.concurrent_subfetches,
                ),
                plays_fetcher=PlaysFetcher(self.http_client, retry_loop),
                collection_cache=self.collection_cache,
                plays_cache=self.plays_cache,
                sync_times=self.sync_times,
                page_delay=config.page_delay,
            )
        return self._sync_service

    @property
    def stats_service(self) -> StatsService:
        if self._stats_service is None:
            self._stats_service = StatsService(self.collection_cache, self.plays_cache)
        return self._stats_service

    async def cleanup(self) -> None:
        """Clean up resources and close connections."""
        if self._http_client is not None:
            await self._http_client.close()
        log.debug("Application cleanup complete")


class ParsedArgs:
    """Type-safe container for parsed command-line arguments."""

    def __init__(
        self,
        command: str,
        config: Path | None,
        log_level: str,
        log_dir: Path | None,
        username: str | None,
        quiet: bool,
        game: int | None = None,
    ) -> None:
        self.command: str = command
        self.config: Path | None = config
        self.log_level: str = log_level
        self.log_dir: Path | None = log_dir
        self.username: str | None = username
        self.game: int | None = game
        self.quiet: bool = quiet


def parse_arguments(argv: Sequence[str] | None = None) -> ParsedArgs:
    """Parse command-line arguments.

    Args:
        argv: Arguments to parse (defaults to sys.argv[1:])

    Returns:
        Parsed arguments container
    """
    parser = argparse.ArgumentParser(
        prog="bggsync",
        description="Synchronize a BoardGameGeek collection and play history into a local cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bggsync all                         Sync collection and plays
  bggsync --username alice plays      Sync plays for a specific user
  bggsync --log-level DEBUG collection
  bggsync status                      Show cached statistics and last sync times
  bggsync status --game 13            Also list the cached plays of one game
        """,
    )

    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    _ = parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: ~/.config/bggsync/config.json)",
    )

    _ = parser.add_argument(
        "--log-level",
        choices=list(VALID_LOG_LEVELS),
        default=None,
        help="Set the logging level (default: from configuration, INFO)",
    )

    _ = parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for rotating log files (default: console only)",
    )

    _ = parser.add_argument(
        "--username",
        default=None,
        help="BoardGameGeek username (overrides configuration and BGGSYNC_USERNAME)",
    )

    _ = parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only show warnings and errors on the console",
    )

    _ = parser.add_argument(
        "--game",
        type=int,
        default=None,
        metavar="ID",
        help="With status: list the cached plays of this BoardGameGeek game id",
    )

    _ = parser.add_argument("command", choices=COMMANDS, help="What to sync, or 'status'")

    ns = parser.parse_args(argv)

    return ParsedArgs(
        command=str(ns.command),
        config=ns.config,
        log_level=ns.log_level or "",
        log_dir=ns.log_dir,
        username=ns.username,
        quiet=bool(ns.quiet),
        game=ns.game,
    )


def setup_signal_handlers(task: asyncio.Task[int]) -> None:
    """Cancel the running command when SIGINT or SIGTERM arrives.

    Args:
        task: Task running the command
    """
    loop = asyncio.get_running_loop()

    def cancel(signum: signal.Signals) -> None:
        log.info("Received signal", signal=signum.name)
        task.cancel()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, cancel, signum)
        except NotImplementedError:
            # Not supported on Windows event loops; Ctrl+C still raises KeyboardInterrupt
            log.debug("Signal handlers unavailable", signal=signum.name)


def format_report(report: SyncReport) -> str:
    """Render a sync report as a single line."""
    details = ", ".join(f"{key.replace('_', ' ')}: {value}" for key, value in report.details.items())
    line = f"{report.operation.capitalize()} sync complete: {report.item_count} items"
    if report.pages > 1:
        line += f" over {report.pages} pages"
    if details:
        line += f" ({details})"
    return line


def _format_time(value: datetime | None) -> str:
    return value.isoformat(timespec="seconds") if value else "never"


async def show_status(context: ApplicationContext, game: int | None = None) -> None:
    """Print cached statistics and last sync times.

    Args:
        context: Application context with lazily built services
        game: Optional game id whose cached plays are listed
    """
    stats = context.stats_service
    overview = await stats.overview()
    play_stats = await stats.play_stats()
    times = await context.sync_times.get()

    print(f"User:            {context.config.username or '(not set)'}")
    print(f"Cache directory: {context.config.cache_directory}")
    print(
        f"Collection:      {overview.games_count} items, {overview.unplayed_count} unplayed, "
        f"last synced {_format_time(times.collection)}"
    )
    print(
        f"Plays:           {play_stats.total_plays} plays of {play_stats.unique_games} games, "
        f"last synced {_format_time(times.plays)}"
    )
    print(f"This year:       {play_stats.plays_this_year} plays in {play_stats.current_year}")
    print(f"This month:      {overview.plays_this_month} plays")
    print(f"Full sync:       last completed {_format_time(times.full)}")

    if game is not None:
        plays = await stats.plays_for_game(game)
        print(f"\nPlays of game {game}: {len(plays)}")
        for play in plays:
            suffix = f" x{play.quantity}" if play.quantity > 1 else ""
            print(f"  {play.date.isoformat()}  {play.game_name}{suffix}")


async def run_command(context: ApplicationContext, command: str, game: int | None = None) -> int:
    """Run one command and map its outcome onto an exit code.

    Args:
        context: Application context with lazily built services
        command: One of COMMANDS
        game: Game id whose plays the status command lists

    Returns:
        Exit code
    """
    current = asyncio.current_task()
    if current is not None:
        setup_signal_handlers(current)

    error_service = get_error_service()

    try:
        if command == "status":
            await show_status(context, game)
            return EXIT_OK

        sync = context.sync_service
        if command == "collection":
            report = await sync.sync_collection()
        elif command == "plays":
            report = await sync.sync_plays()
        else:
            report = await sync.sync_all()

        print(format_report(report))
        return EXIT_OK

    except NotLoggedInError as e:
        friendly = error_service.handle_error(e, operation=command, component="cli")
        print(error_service.create_user_message(friendly), file=sys.stderr)
        return EXIT_NOT_LOGGED_IN

    except AppError as e:
        friendly = error_service.handle_error(e, operation=command, component="cli")
        print(error_service.create_user_message(friendly), file=sys.stderr)
        return EXIT_FAILURE

    except Exception as e:
        log.error("Unexpected error while running command", command=command, exc_info=True)
        friendly = error_service.handle_error(e, operation=command, component="cli")
        print(error_service.create_user_message(friendly), file=sys.stderr)
        return EXIT_FAILURE

    finally:
        await context.cleanup()


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point for the application."""
    args = parse_arguments(argv)

    # Configured before the config file is read so its warnings reach the handlers
    logging_service = setup_logging(
        log_level=args.log_level or "INFO",
        log_dir=args.log_dir,
        quiet=args.quiet,
    )

    context = ApplicationContext(config_path=args.config, username=args.username)
    if not args.log_level:
        logging_service.set_level(context.config.log_level)

    log.info(
        "Starting bggsync",
        version=__version__,
        command=args.command,
        config_path=str(context.config_service.config_path),
    )

    try:
        exit_code = asyncio.run(run_command(context, args.command, args.game))

    except (KeyboardInterrupt, asyncio.CancelledError):
        log.info("Sync interrupted by user")
        print("Interrupted", file=sys.stderr)
        exit_code = EXIT_INTERRUPTED

    except Exception as e:
        log.error("Unhandled exception", error=str(e), exc_info=True)
        print(f"Fatal error: {e}", file=sys.stderr)
        exit_code = EXIT_FAILURE

    log.info("Application exiting", exit_code=exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
