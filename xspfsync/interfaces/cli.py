import argparse
import logging
import signal
import sys
import time
from datetime import datetime
from typing import List, Optional

from xspfsync.application.sync import SyncCoordinator, SyncRun
from xspfsync.application.verification import MatchPolicy
from xspfsync.crosscutting.config import ConfigError, Settings, get_settings, setup_config
from xspfsync.crosscutting.logging import CorrelationContext, setup_logging
from xspfsync.crosscutting.reporting import SyncReport
from xspfsync.domain.errors import AuthorizationError, InputError
from xspfsync.domain.entities import Playlist
from xspfsync.infrastructure.providers.factory import PLATFORMS, create_provider
from xspfsync.infrastructure.sources.xspf import load_from_file, load_from_url


class CLI:
    """Command Line Interface for xspfsync."""

    def __init__(self):
        """Initialize CLI."""
        self.parser = self._create_parser()
        self._setup_signal_handlers()
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='xspfsync',
            description='Export XSPF playlists to Subsonic servers, Spotify and YouTube'
        )

        common = argparse.ArgumentParser(add_help=False)
        common.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default='INFO',
            help='Set logging level'
        )
        common.add_argument(
            '--log-format',
            choices=['text', 'json'],
            default='text',
            help='Log line format (default: text)'
        )
        common.add_argument(
            '--log-file',
            default=None,
            help='Also write logs to this file'
        )
        common.add_argument(
            '--env-file',
            default=None,
            help='Read configuration from this dotenv file in addition to the environment'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        # One sync command per platform
        for platform in PLATFORMS:
            sync_parser = subparsers.add_parser(
                platform, parents=[common], help=f'Export a playlist to {platform}'
            )
            sync_parser.add_argument(
                'xspf',
                nargs='?',
                help='Path to the XSPF playlist file'
            )
            sync_parser.add_argument(
                '--url',
                help='Fetch the playlist from its hosting URL instead of a file'
            )
            sync_parser.add_argument(
                '--name',
                help='Name of the remote playlist (default: playlist title)'
            )
            sync_parser.add_argument(
                '--no-create',
                action='store_true',
                help='Only resolve tracks, do not create the remote playlist'
            )
            sync_parser.add_argument(
                '--workers',
                type=int,
                default=None,
                help='Number of concurrent searches (default from XSPFSYNC_WORKERS or 1)'
            )
            sync_parser.add_argument(
                '--match-policy',
                choices=[p.value for p in MatchPolicy],
                default=None,
                help='Override the platform verification policy'
            )
            sync_parser.add_argument(
                '--report-path',
                default=None,
                help='Directory to write a JSON report to'
            )
            sync_parser.add_argument(
                '--run-id',
                help='Identifier of this run, used in logs and report names'
            )

        serve_parser = subparsers.add_parser('serve', parents=[common], help='Run the web exporter')
        serve_parser.add_argument('--host', default='127.0.0.1', help='Interface to bind')
        serve_parser.add_argument('--port', type=int, default=8888, help='Port to bind')
        serve_parser.add_argument('--debug', action='store_true', help='Enable Flask debug mode')

        return parser

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            logger = logging.getLogger(__name__)
            logger.warning(f"Received signal {signum}, shutting down...")
            self._cleanup_resources()
            sys.exit(130)  # Standard exit code for signal termination

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _cleanup_resources(self) -> None:
        """Log execution time on exit."""
        logger = logging.getLogger(__name__)
        if self._start_time:
            duration = time.time() - self._start_time
            logger.debug(f"CLI execution time: {duration:.2f}s")

    def _validate_arguments(self, args: argparse.Namespace) -> None:
        """Validate CLI arguments."""
        if args.command in PLATFORMS:
            if bool(args.xspf) == bool(args.url):
                raise ValueError("Give either an XSPF file or --url, not both")
            if args.workers is not None and args.workers < 1:
                raise ValueError("--workers must be at least 1")

    def _create_run_id(self) -> str:
        """Create unique run identifier."""
        return f"xspfsync_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

    def _load_settings(self, args: argparse.Namespace) -> Settings:
        if args.env_file:
            return setup_config(args.env_file)
        return get_settings()

    def _load_playlist(self, args: argparse.Namespace, settings: Settings) -> Playlist:
        if args.url:
            return load_from_url(args.url, settings.get_playlist_host())
        return load_from_file(args.xspf)

    def _sync_playlist(self, args: argparse.Namespace, run_id: str) -> int:
        """Resolve a playlist on the chosen platform and create it there.

        Returns:
            Process exit code
        """
        logger = logging.getLogger(__name__)
        settings = self._load_settings(args)

        playlist = self._load_playlist(args, settings)
        adapter = create_provider(args.command, settings, policy=args.match_policy)
        workers = args.workers or settings.get_search_workers()

        coordinator = SyncCoordinator(adapter, max_workers=workers)
        try:
            sync_run = coordinator.run(playlist, name=args.name, create=not args.no_create)
        except AuthorizationError as e:
            if e.sync_run is not None:
                self._report(args, run_id, e.sync_run)
            raise

        self._report(args, run_id, sync_run)

        if sync_run.failed:
            logger.error(f"Playlist creation failed: {sync_run.error}")
            return 1
        return 0

    def _report(self, args: argparse.Namespace, run_id: str, sync_run: SyncRun) -> None:
        """Print the run summary and save the JSON report if requested."""
        logger = logging.getLogger(__name__)
        report = SyncReport.from_run(run_id, args.command, sync_run)
        print(report.summary_line())
        if sync_run.remote_playlist:
            remote = sync_run.remote_playlist
            print(f"Created playlist '{sync_run.playlist_name}': {remote.url} (id {remote.external_id})")

        if args.report_path:
            try:
                path = report.save(args.report_path)
                logger.info(f"Report saved to: {path}")
            except OSError as e:
                logger.error(f"Failed to save report: {e}")

    def _serve(self, args: argparse.Namespace) -> int:
        from xspfsync.interfaces.http import HTTPServer

        settings = self._load_settings(args)
        for platform, configured in settings.validate_configuration().items():
            if not configured:
                logging.getLogger(__name__).warning(f"{platform} is not configured")

        server = HTTPServer(host=args.host, port=args.port, debug=args.debug, settings=settings)
        server.run()
        return 0

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Run the CLI and exit with the command's status."""
        self._start_time = time.time()
        exit_code = 0

        try:
            args = self.parser.parse_args(argv)

            if not args.command:
                self.parser.print_help()
                sys.exit(1)

            run_id = getattr(args, 'run_id', None) or self._create_run_id()
            setup_logging(args.log_level, log_file=args.log_file, fmt=args.log_format)

            self._validate_arguments(args)

            with CorrelationContext(run_id=run_id):
                if args.command == 'serve':
                    exit_code = self._serve(args)
                else:
                    exit_code = self._sync_playlist(args, run_id)

        except KeyboardInterrupt:
            logger = logging.getLogger(__name__)
            logger.warning("Operation cancelled by user")
            exit_code = 130
        except (ConfigError, InputError, AuthorizationError, ValueError) as e:
            logger = logging.getLogger(__name__)
            logger.error(f"{type(e).__name__}: {e}")
            exit_code = 1
        finally:
            self._cleanup_resources()

        sys.exit(exit_code)


def main():
    """Main entry point."""
    cli = CLI()
    cli.run()


if __name__ == '__main__':
    main()
