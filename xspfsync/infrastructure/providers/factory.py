from typing import Optional

from xspfsync.application.verification import MatchPolicy
from xspfsync.crosscutting.config import ConfigError, Settings
from xspfsync.domain.ports import PlatformAdapter
from xspfsync.infrastructure.oauth import (
    GOOGLE_AUTHORIZE_URL, GOOGLE_TOKEN_URL, SPOTIFY_AUTHORIZE_URL, SPOTIFY_TOKEN_URL, OAuthClient,
)
from xspfsync.infrastructure.providers.spotify import SpotifyProvider
from xspfsync.infrastructure.providers.subsonic import SubsonicProvider
from xspfsync.infrastructure.providers.youtube import YouTubeProvider

PLATFORMS = ('subsonic', 'spotify', 'youtube')
OAUTH_PLATFORMS = ('spotify', 'youtube')

DISPLAY_NAMES = {
    'subsonic': 'Subsonic',
    'spotify': 'Spotify',
    'youtube': 'YouTube',
}


def create_provider(platform: str,
                    settings: Settings,
                    access_token: Optional[str] = None,
                    policy: Optional[MatchPolicy] = None) -> PlatformAdapter:
    """Create the adapter for a platform.

    Args:
        platform: One of PLATFORMS
        settings: Configuration source
        access_token: Token for OAuth platforms; read from the environment when omitted
        policy: Override of the adapter's default verification policy

    Raises:
        ConfigError: If required configuration is missing or the platform is unknown
    """
    kwargs = {'policy': MatchPolicy(policy)} if policy else {}

    if platform == 'subsonic':
        config = settings.get_subsonic_config()
        return SubsonicProvider(
            host=config['host'],
            user=config['user'],
            password=config['password'],
            legacy_auth=config['legacy_auth'],
            **kwargs
        )
    if platform == 'spotify':
        return SpotifyProvider(access_token or settings.get_access_token('spotify'), **kwargs)
    if platform == 'youtube':
        return YouTubeProvider(access_token or settings.get_access_token('youtube'), **kwargs)

    raise ConfigError(f"Unsupported platform: {platform}")


def create_oauth_client(platform: str, settings: Settings) -> OAuthClient:
    """Create the OAuth client of an OAuth-gated platform."""
    if platform == 'spotify':
        config = settings.get_spotify_client_config()
        return OAuthClient(
            authorize_endpoint=SPOTIFY_AUTHORIZE_URL,
            token_endpoint=SPOTIFY_TOKEN_URL,
            client_id=config['client_id'],
            client_secret=config['client_secret'],
            redirect_uri=config['redirect_uri'],
            scopes=config['scopes'],
        )
    if platform == 'youtube':
        config = settings.get_google_client_config()
        return OAuthClient(
            authorize_endpoint=GOOGLE_AUTHORIZE_URL,
            token_endpoint=GOOGLE_TOKEN_URL,
            client_id=config['client_id'],
            client_secret=config['client_secret'],
            redirect_uri=config['redirect_uri'],
            scopes=config['scopes'],
            extra_params={'access_type': 'offline', 'prompt': 'consent'},
        )

    raise ConfigError(f"Platform {platform} does not use OAuth")
