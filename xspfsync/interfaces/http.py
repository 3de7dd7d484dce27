import logging
import os
import secrets
from datetime import datetime
from typing import Callable, Optional

from flask import Flask, abort, jsonify, redirect, request, session, url_for

from xspfsync.application.authorization import AuthorizationFlow
from xspfsync.application.sync import SyncCoordinator
from xspfsync.crosscutting.config import ConfigError, Settings, get_settings
from xspfsync.domain.errors import AuthorizationError, InputError
from xspfsync.infrastructure.providers.factory import (
    DISPLAY_NAMES, OAUTH_PLATFORMS, PLATFORMS, create_oauth_client, create_provider,
)
from xspfsync.infrastructure.sources.xspf import load_from_url
from xspfsync.interfaces import pages

VERSION = "0.1.0"


class HTTPServer:
    """Web front end running the authorization flow and synchronizations."""

    def __init__(self,
                 host: str = 'localhost',
                 port: int = 8888,
                 debug: bool = False,
                 settings: Optional[Settings] = None,
                 playlist_loader: Callable = load_from_url,
                 provider_factory: Callable = create_provider,
                 oauth_factory: Callable = create_oauth_client):
        """Initialize HTTP server.

        Args:
            host: Interface to bind
            port: Port to bind
            debug: Flask debug mode
            settings: Configuration source, defaults to the global settings
            playlist_loader: Callable(url, default_host) returning a Playlist
            provider_factory: Callable(platform, settings, access_token=) returning an adapter
            oauth_factory: Callable(platform, settings) returning an OAuthClient
        """
        self.host = host
        self.port = port
        self.debug = debug
        self.settings = settings or get_settings()
        self.playlist_loader = playlist_loader
        self.provider_factory = provider_factory
        self.oauth_factory = oauth_factory
        self.logger = logging.getLogger(__name__)

        self.version = VERSION
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self.app = Flask(__name__)
        # Sessions do not survive a restart unless a key is configured
        self.app.secret_key = self.settings.get_secret_key() or secrets.token_hex(32)

        self._setup_routes()

    def _flow(self, platform: str) -> AuthorizationFlow:
        if platform not in OAUTH_PLATFORMS:
            abort(404)
        return AuthorizationFlow(platform, self.oauth_factory(platform, self.settings), session)

    def _error(self, status: int, title: str, message: str, retry_url: Optional[str] = None):
        return pages.render_error(title, message, retry_url), status

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @self.app.route('/', methods=['GET'])
        def home():
            platforms = [
                {'slug': p, 'display': DISPLAY_NAMES[p], 'web': p in OAUTH_PLATFORMS}
                for p in PLATFORMS
            ]
            return pages.render_home(platforms)

        @self.app.route('/<platform>/login', methods=['GET'])
        def login(platform: str):
            """Start the authorization flow, remembering the target if given."""
            try:
                flow = self._flow(platform)
            except ConfigError as e:
                self.logger.error(f"{platform} login not configured: {e}")
                return self._error(500, 'Not configured', str(e))

            auth_url = flow.login_url(request.args.get('target'))
            return redirect(auth_url)

        @self.app.route('/<platform>/callback', methods=['GET'])
        def callback(platform: str):
            """OAuth callback endpoint."""
            try:
                flow = self._flow(platform)
            except ConfigError as e:
                self.logger.error(f"{platform} callback not configured: {e}")
                return self._error(500, 'Not configured', str(e))

            login_url = url_for('login', platform=platform)

            error = request.args.get('error')
            if error:
                self.logger.error(f"OAuth error: {error}")
                flow.abort()
                return self._error(400, 'Authorization failed', error, login_url)

            try:
                target = flow.complete(request.args.get('code'))
            except AuthorizationError as e:
                self.logger.error(f"{platform} authorization failed: {e}")
                return self._error(401, 'Authorization failed', str(e), login_url)

            if target:
                return redirect(url_for('create', platform=platform, target=target))

            return pages.render_prompt(platform, DISPLAY_NAMES[platform])

        @self.app.route('/<platform>/create', methods=['GET'])
        def create(platform: str):
            """Resolve the target playlist and create it on the platform."""
            try:
                flow = self._flow(platform)
            except ConfigError as e:
                self.logger.error(f"{platform} not configured: {e}")
                return self._error(500, 'Not configured', str(e))

            target = request.args.get('target')
            if not flow.access_token:
                return redirect(url_for('login', platform=platform, target=target))
            if not target:
                return pages.render_prompt(platform, DISPLAY_NAMES[platform])

            try:
                playlist = self.playlist_loader(target, self.settings.get_playlist_host())
                adapter = self.provider_factory(platform, self.settings, access_token=flow.require_token())
                sync_run = SyncCoordinator(adapter, self.settings.get_search_workers()).run(playlist)
            except AuthorizationError as e:
                # Stored token is left in place; logging in again overwrites it
                self.logger.warning(f"{platform} authorization error, restarting login: {e}")
                return redirect(url_for('login', platform=platform, target=target))
            except InputError as e:
                self.logger.error(f"Failed to load playlist {target}: {e}")
                return self._error(400, 'Unable to read playlist', str(e))
            except ConfigError as e:
                self.logger.error(f"Configuration error: {e}")
                return self._error(500, 'Not configured', str(e))

            if sync_run.failed:
                return self._error(
                    502,
                    'Playlist creation failed',
                    f"Resolved {len(sync_run.result.resolved)} of {sync_run.result.attempted} tracks, "
                    f"but {DISPLAY_NAMES[platform]} refused the playlist: {sync_run.error}",
                    url_for('create', platform=platform, target=target),
                )

            return pages.render_created(DISPLAY_NAMES[platform], sync_run)

        @self.app.route('/<platform>/logout', methods=['GET'])
        def logout(platform: str):
            try:
                self._flow(platform).forget()
            except ConfigError as e:
                return self._error(500, 'Not configured', str(e))
            return redirect(url_for('home'))

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting xspfsync HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_app(settings: Optional[Settings] = None) -> Flask:
    """Create Flask app, e.g. for a WSGI server."""
    server = HTTPServer(settings=settings)
    return server.app
