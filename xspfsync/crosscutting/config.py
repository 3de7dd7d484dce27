import os
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values


class ConfigError(Exception):
    """Configuration error."""
    pass


SPOTIFY_SCOPES = [
    'playlist-modify-private',    # Create/modify private playlists
    'playlist-modify-public',     # Create/modify public playlists
]

YOUTUBE_SCOPES = [
    'https://www.googleapis.com/auth/youtube',
]


class Settings:
    """Reads configuration from the process environment and an optional .env file.

    Process environment wins over values from the env file.
    """

    def __init__(self, env_file: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        """Initialize settings.

        Args:
            env_file: Optional dotenv file to read defaults from
            environ: Environment mapping, defaults to os.environ
        """
        self.env_file = env_file
        self._environ = os.environ if environ is None else environ
        self._file_values: Dict[str, str] = {}
        if env_file:
            if not os.path.isfile(env_file):
                raise ConfigError(f"Env file not found: {env_file}")
            self._file_values = {k: v for k, v in dotenv_values(env_file).items() if v is not None}

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return a configuration value, treating blank values as missing."""
        value = self._environ.get(key)
        if value is None or not str(value).strip():
            value = self._file_values.get(key)
        if value is None or not str(value).strip():
            return default
        return value.strip()

    def require(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            raise ConfigError(f"{key} not found in environment")
        return value

    def get_flag(self, key: str) -> bool:
        return (self.get(key) or '').lower() in ('1', 'true', 'yes', 'on')

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"{key} must be an integer, got '{value}'")

    def get_subsonic_config(self) -> Dict[str, object]:
        """Get Subsonic server configuration."""
        return {
            'host': self.require('SUBSONIC_HOST'),
            'user': self.require('SUBSONIC_USER'),
            'password': self.require('SUBSONIC_PASSWORD'),
            'legacy_auth': self.get_flag('SUBSONIC_LEGACY_AUTH'),
        }

    def get_spotify_client_config(self) -> Dict[str, object]:
        """Get Spotify OAuth client configuration."""
        return {
            'client_id': self.require('SPOTIFY_CLIENT_ID'),
            'client_secret': self.require('SPOTIFY_CLIENT_SECRET'),
            'redirect_uri': self.require('SPOTIFY_REDIRECT_URI'),
            'scopes': list(SPOTIFY_SCOPES),
        }

    def get_google_client_config(self) -> Dict[str, object]:
        """Get Google OAuth client configuration used for YouTube."""
        return {
            'client_id': self.require('GOOGLE_CLIENT_ID'),
            'client_secret': self.require('GOOGLE_CLIENT_SECRET'),
            'redirect_uri': self.require('GOOGLE_REDIRECT_URI'),
            'scopes': list(YOUTUBE_SCOPES),
        }

    def get_access_token(self, platform: str) -> str:
        """Get a pre-issued access token for CLI use of an OAuth platform."""
        return self.require(f"{platform.upper()}_ACCESS_TOKEN")

    def get_search_workers(self) -> int:
        workers = self.get_int('XSPFSYNC_WORKERS', 1)
        if workers < 1:
            raise ConfigError("XSPFSYNC_WORKERS must be at least 1")
        return workers

    def get_secret_key(self) -> Optional[str]:
        return self.get('XSPFSYNC_SECRET_KEY')

    def get_playlist_host(self) -> str:
        return self.get('XSPFSYNC_PLAYLIST_HOST', 'mbzlists.com')

    def validate_configuration(self) -> Dict[str, bool]:
        """Report which platforms have complete configuration."""
        def _has(keys: List[str]) -> bool:
            return all(self.get(k) for k in keys)

        return {
            'subsonic': _has(['SUBSONIC_HOST', 'SUBSONIC_USER', 'SUBSONIC_PASSWORD']),
            'spotify': _has(['SPOTIFY_CLIENT_ID', 'SPOTIFY_CLIENT_SECRET', 'SPOTIFY_REDIRECT_URI']),
            'youtube': _has(['GOOGLE_CLIENT_ID', 'GOOGLE_CLIENT_SECRET', 'GOOGLE_REDIRECT_URI']),
        }


# Global instance
settings = Settings()


def get_settings() -> Settings:
    """Get global settings instance."""
    return settings


def setup_config(env_file: Optional[str] = None) -> Settings:
    """Setup configuration with a custom env file."""
    global settings
    settings = Settings(env_file)
    return settings
