import hashlib
import logging
import secrets
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from xspfsync.application.verification import MatchPolicy
from xspfsync.domain.entities import Candidate, RemotePlaylist, Track
from xspfsync.domain.errors import NotFound, PlatformError, TransientError
from xspfsync.domain.ports import PlatformAdapter

logger = logging.getLogger(__name__)

API_VERSION = '1.16.1'
CLIENT_NAME = 'xspfsync'


class SubsonicProvider(PlatformAdapter):
    """Adapter for Subsonic compatible media servers (Navidrome, Airsonic, Gonic...)."""

    name = 'subsonic'

    def __init__(self,
                 host: str,
                 user: str,
                 password: str,
                 policy: MatchPolicy = MatchPolicy.STRICT,
                 legacy_auth: bool = False,
                 timeout: int = 15,
                 session: Optional[requests.Session] = None):
        """Initialize Subsonic provider.

        Args:
            host: Server root, e.g. https://music.example.org
            user: Account name
            password: Account password
            policy: Verification policy for search results
            legacy_auth: Send the hex-encoded password instead of a salted token
            timeout: Per-request timeout in seconds
            session: Optional requests session to reuse connections
        """
        self.root = f"{host.rstrip('/')}/rest"
        self.user = user
        self._password = password
        self.policy = MatchPolicy(policy)
        self.legacy_auth = legacy_auth
        self.timeout = timeout
        self._http = session or requests.Session()

    def _auth_params(self) -> Dict[str, str]:
        params = {'u': self.user, 'v': API_VERSION, 'c': CLIENT_NAME, 'f': 'json'}
        if self.legacy_auth:
            params['p'] = 'enc:' + self._password.encode('utf-8').hex()
        else:
            salt = secrets.token_hex(8)
            params['t'] = hashlib.md5((self._password + salt).encode('utf-8')).hexdigest()
            params['s'] = salt
        return params

    def _request(self, api: str, params: Sequence[Tuple[str, Any]]) -> Dict[str, Any]:
        """Call a Subsonic endpoint and return the inner subsonic-response object.

        Raises:
            TransientError: On transport failures, non-2xx status or a malformed body
        """
        query = list(self._auth_params().items()) + list(params)
        try:
            response = self._http.get(f"{self.root}/{api}", params=query, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientError(f"Subsonic {api} request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransientError(f"Subsonic {api} returned HTTP {response.status_code}",
                                 status_code=response.status_code)

        try:
            body = response.json()['subsonic-response']
            status = body['status']
        except (ValueError, KeyError, TypeError) as e:
            raise TransientError(f"Unexpected Subsonic {api} response: {e}") from e

        if status != 'ok':
            error = body.get('error') or {}
            raise TransientError(
                f"Subsonic {api} failed: {error.get('code')} {error.get('message', '')}".strip()
            )

        return body

    def search(self, track: Track) -> Candidate:
        """Search the server library and return the first song.

        Args:
            track: Track to search for

        Returns:
            Candidate built from the first song of the result
        """
        query = f"{track.title} {track.creator}"
        logger.debug(f"Searching Subsonic: {query}")

        body = self._request('search2', [('query', query)])
        result = body.get('searchResult2') or {}
        if not isinstance(result, dict):
            raise TransientError("Unexpected searchResult2 payload")

        songs = result.get('song') or []
        if not isinstance(songs, list):
            raise TransientError(f"Unexpected song payload in search result: {type(songs).__name__}")
        if not songs:
            raise NotFound(f"No songs for query '{query}'")

        try:
            first = songs[0]
            return Candidate(
                external_id=str(first['id']),
                title=first['title'],
                primary_artist=first['artist'],
            )
        except (KeyError, TypeError) as e:
            raise TransientError(f"Malformed song in search result: {e}") from e

    def create_playlist(self, name: str, tracks: List[Candidate]) -> RemotePlaylist:
        """Create a playlist on the server and fill it with the given songs.

        Args:
            name: Playlist name
            tracks: Resolved candidates, in playlist order

        Returns:
            RemotePlaylist whose url is the getPlaylist API locator. Subsonic
            has no standard web page for a playlist and the locator carries no
            credentials, so it identifies the playlist rather than opening it.
        """
        try:
            body = self._request('createPlaylist', [('name', name)])
            playlist_id = str(body['playlist']['id'])
        except TransientError as e:
            raise PlatformError(f"Failed to create playlist '{name}': {e}") from e
        except (KeyError, TypeError) as e:
            raise PlatformError(f"createPlaylist response has no playlist id: {e}") from e

        logger.info(f"Created Subsonic playlist {playlist_id}, adding {len(tracks)} songs")

        try:
            self._request(
                'updatePlaylist',
                [('playlistId', playlist_id)] + [('songIdToAdd', t.external_id) for t in tracks],
            )
        except TransientError as e:
            # Playlist stays behind empty; no rollback
            raise PlatformError(f"Playlist {playlist_id} created but adding songs failed: {e}") from e

        return RemotePlaylist(
            external_id=playlist_id,
            url=f"{self.root}/getPlaylist?id={playlist_id}",
        )
