import pytest

from xspfsync.crosscutting import config as config_module
from xspfsync.crosscutting.config import (
    SPOTIFY_SCOPES, YOUTUBE_SCOPES, ConfigError, Settings, get_settings, setup_config,
)


class TestSettings:
    """Tests for the Settings class."""

    def test_environment_values(self):
        """Test reading values from an explicit environment mapping."""
        settings = Settings(environ={'SUBSONIC_HOST': ' https://music.example.org '})

        assert settings.get('SUBSONIC_HOST') == 'https://music.example.org'
        assert settings.get('MISSING') is None
        assert settings.get('MISSING', 'fallback') == 'fallback'

    def test_blank_values_are_missing(self):
        settings = Settings(environ={'SUBSONIC_USER': '   '})

        with pytest.raises(ConfigError, match='SUBSONIC_USER'):
            settings.require('SUBSONIC_USER')

    def test_env_file_defaults_and_precedence(self, tmp_path):
        """Test that the process environment wins over the env file."""
        env_file = tmp_path / '.env'
        env_file.write_text(
            "SUBSONIC_HOST=https://from-file.example.org\n"
            "SUBSONIC_USER=file-user\n"
            "SUBSONIC_PASSWORD=file-pass\n"
        )

        settings = Settings(str(env_file), environ={'SUBSONIC_USER': 'env-user'})
        config = settings.get_subsonic_config()

        assert config == {
            'host': 'https://from-file.example.org',
            'user': 'env-user',
            'password': 'file-pass',
            'legacy_auth': False,
        }

    def test_missing_env_file(self, tmp_path):
        with pytest.raises(ConfigError):
            Settings(str(tmp_path / 'nope.env'), environ={})

    def test_subsonic_missing_password(self):
        settings = Settings(environ={'SUBSONIC_HOST': 'h', 'SUBSONIC_USER': 'u'})

        with pytest.raises(ConfigError, match='SUBSONIC_PASSWORD'):
            settings.get_subsonic_config()

    @pytest.mark.parametrize('value,expected', [
        ('1', True), ('true', True), ('YES', True), ('on', True),
        ('0', False), ('false', False), ('', False),
    ])
    def test_legacy_auth_flag(self, value, expected):
        settings = Settings(environ={'SUBSONIC_LEGACY_AUTH': value})

        assert settings.get_flag('SUBSONIC_LEGACY_AUTH') is expected

    def test_oauth_client_configs(self):
        """Test Spotify and Google client configuration with their scopes."""
        settings = Settings(environ={
            'SPOTIFY_CLIENT_ID': 'sid', 'SPOTIFY_CLIENT_SECRET': 'ssecret',
            'SPOTIFY_REDIRECT_URI': 'http://127.0.0.1:8888/spotify/callback',
            'GOOGLE_CLIENT_ID': 'gid', 'GOOGLE_CLIENT_SECRET': 'gsecret',
            'GOOGLE_REDIRECT_URI': 'http://127.0.0.1:8888/youtube/callback',
        })

        spotify = settings.get_spotify_client_config()
        google = settings.get_google_client_config()

        assert spotify['client_id'] == 'sid'
        assert spotify['scopes'] == SPOTIFY_SCOPES
        assert google['redirect_uri'] == 'http://127.0.0.1:8888/youtube/callback'
        assert google['scopes'] == YOUTUBE_SCOPES

    def test_access_token_per_platform(self):
        settings = Settings(environ={'SPOTIFY_ACCESS_TOKEN': 'tok'})

        assert settings.get_access_token('spotify') == 'tok'
        with pytest.raises(ConfigError, match='YOUTUBE_ACCESS_TOKEN'):
            settings.get_access_token('youtube')

    def test_search_workers(self):
        assert Settings(environ={}).get_search_workers() == 1
        assert Settings(environ={'XSPFSYNC_WORKERS': '4'}).get_search_workers() == 4

        with pytest.raises(ConfigError):
            Settings(environ={'XSPFSYNC_WORKERS': 'many'}).get_search_workers()
        with pytest.raises(ConfigError):
            Settings(environ={'XSPFSYNC_WORKERS': '0'}).get_search_workers()

    def test_playlist_host_default(self):
        assert Settings(environ={}).get_playlist_host() == 'mbzlists.com'
        assert Settings(environ={'XSPFSYNC_PLAYLIST_HOST': 'lists.example.org'}).get_playlist_host() == 'lists.example.org'

    def test_validate_configuration(self):
        settings = Settings(environ={
            'SUBSONIC_HOST': 'h', 'SUBSONIC_USER': 'u', 'SUBSONIC_PASSWORD': 'p',
            'SPOTIFY_CLIENT_ID': 'sid',
        })

        assert settings.validate_configuration() == {
            'subsonic': True,
            'spotify': False,
            'youtube': False,
        }


def test_setup_config_replaces_global(tmp_path, monkeypatch):
    """Test that setup_config installs a new global instance."""
    monkeypatch.setattr(config_module, 'settings', config_module.settings)
    env_file = tmp_path / '.env'
    env_file.write_text("XSPFSYNC_WORKERS=3\n")

    settings = setup_config(str(env_file))

    assert get_settings() is settings
    assert get_settings().get_search_workers() == 3
