import html
import logging
from typing import Any, Dict, List, Optional

import requests

from xspfsync.application.verification import MatchPolicy
from xspfsync.domain.entities import Candidate, RemotePlaylist, Track
from xspfsync.domain.errors import AuthorizationError, NotFound, PlatformError, TransientError
from xspfsync.domain.ports import PlatformAdapter

logger = logging.getLogger(__name__)

API_ROOT = 'https://www.googleapis.com/youtube/v3'
PLAYLIST_URL = 'https://www.youtube.com/playlist?list={playlist_id}'
PLAYLIST_DESCRIPTION = 'Imported from an XSPF playlist'


class YouTubeProvider(PlatformAdapter):
    """YouTube Data API v3 adapter."""

    name = 'youtube'

    def __init__(self,
                 access_token: str,
                 policy: MatchPolicy = MatchPolicy.FIRST_RESULT,
                 privacy_status: str = 'private',
                 timeout: int = 15,
                 session: Optional[requests.Session] = None):
        """Initialize YouTube provider.

        Args:
            access_token: Google OAuth access token with the youtube scope
            policy: Verification policy for search results
            privacy_status: Privacy of created playlists
            timeout: Per-request timeout in seconds
            session: Optional requests session to reuse connections
        """
        if not access_token:
            raise AuthorizationError("YouTube access token is missing")

        self.access_token = access_token
        self.policy = MatchPolicy(policy)
        self.privacy_status = privacy_status
        self.timeout = timeout
        self._http = session or requests.Session()

    def _call(self, method: str, path: str, error_cls=TransientError, **kwargs) -> Dict[str, Any]:
        """Send an authenticated request and decode its JSON body."""
        headers = {'Authorization': f"Bearer {self.access_token}"}
        try:
            response = self._http.request(method, f"{API_ROOT}/{path}", headers=headers,
                                          timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise error_cls(f"YouTube {path} request failed: {e}") from e

        if response.status_code == 401:
            raise AuthorizationError(f"YouTube rejected the access token for {path}")
        if not 200 <= response.status_code < 300:
            raise error_cls(f"YouTube {path} returned HTTP {response.status_code}: {response.text[:200]}")

        try:
            body = response.json()
        except ValueError as e:
            raise error_cls(f"YouTube {path} returned invalid JSON: {e}") from e
        if not isinstance(body, dict):
            raise error_cls(f"Unexpected YouTube {path} response")
        return body

    def search(self, track: Track) -> Candidate:
        """Search YouTube videos and return the first one.

        The channel title stands in for the primary artist.
        """
        query = f"{track.title} {track.creator}"
        logger.debug(f"Searching YouTube: {query}")

        body = self._call('GET', 'search', params={
            'part': 'snippet',
            'type': 'video',
            'maxResults': 1,
            'q': query,
        })

        items = body.get('items')
        if not isinstance(items, list):
            raise TransientError("YouTube search response has no items list")
        if not items:
            raise NotFound(f"No YouTube videos for query '{query}'")

        first = items[0]
        try:
            return Candidate(
                external_id=first['id']['videoId'],
                title=html.unescape(first['snippet']['title']),
                primary_artist=html.unescape(first['snippet'].get('channelTitle', '')),
            )
        except (KeyError, TypeError) as e:
            raise TransientError(f"Malformed YouTube search item: {e}") from e

    def create_playlist(self, name: str, tracks: List[Candidate]) -> RemotePlaylist:
        """Create a playlist on the authenticated channel and insert the videos.

        The playlistItems endpoint takes one video per request.
        """
        body = self._call('POST', 'playlists', error_cls=PlatformError,
                          params={'part': 'snippet,status'},
                          json={
                              'snippet': {'title': name, 'description': PLAYLIST_DESCRIPTION},
                              'status': {'privacyStatus': self.privacy_status},
                          })
        playlist_id = body.get('id')
        if not playlist_id:
            raise PlatformError("YouTube playlists response has no id")

        logger.info(f"Created YouTube playlist {playlist_id}, adding {len(tracks)} videos")

        for position, candidate in enumerate(tracks):
            try:
                self._call('POST', 'playlistItems', error_cls=PlatformError,
                           params={'part': 'snippet'},
                           json={'snippet': {
                               'playlistId': playlist_id,
                               'position': position,
                               'resourceId': {'kind': 'youtube#video', 'videoId': candidate.external_id},
                           }})
            except PlatformError as e:
                # Videos inserted so far stay in the playlist; no rollback
                raise PlatformError(f"Playlist {playlist_id} created but inserting "
                                    f"{candidate.external_id} failed: {e}") from e

        return RemotePlaylist(external_id=playlist_id, url=PLAYLIST_URL.format(playlist_id=playlist_id))
