import logging
from typing import Any, Dict, List, Optional

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from xspfsync.application.verification import MatchPolicy
from xspfsync.domain.entities import Candidate, RemotePlaylist, Track
from xspfsync.domain.errors import AuthorizationError, NotFound, PlatformError, TransientError
from xspfsync.domain.ports import PlatformAdapter

logger = logging.getLogger(__name__)

# Spotify accepts at most 100 URIs per add-items request
ADD_ITEMS_LIMIT = 100
PLAYLIST_DESCRIPTION = 'Imported from an XSPF playlist'


class SpotifyProvider(PlatformAdapter):
    """Spotify Web API adapter built on spotipy."""

    name = 'spotify'

    def __init__(self,
                 access_token: str,
                 policy: MatchPolicy = MatchPolicy.CASE_FOLDED,
                 search_limit: int = 1,
                 market: Optional[str] = None,
                 requests_timeout: int = 15):
        """Initialize Spotify provider.

        Args:
            access_token: OAuth access token of the user owning the playlist
            policy: Verification policy for search results
            search_limit: Number of results requested per search, only the first is used
            market: Optional market code passed to search
            requests_timeout: Per-request timeout in seconds
        """
        if not access_token:
            raise AuthorizationError("Spotify access token is missing")

        self.access_token = access_token
        self.policy = MatchPolicy(policy)
        self._search_limit = max(1, search_limit)
        self._market = market

        self._client = spotipy.Spotify(
            auth=self.access_token,
            requests_timeout=requests_timeout
        )

    def _translate_error(self, error: Exception, operation: str, error_cls=TransientError) -> Exception:
        """Map spotipy and transport errors to domain errors."""
        status = getattr(error, 'http_status', None)
        if status == 401:
            return AuthorizationError(f"Spotify rejected the access token during {operation}")
        if error_cls is TransientError:
            return TransientError(f"Spotify {operation} failed: {error}", status_code=status)
        return error_cls(f"Spotify {operation} failed: {error}")

    def _spotify_track_to_candidate(self, spotify_track: Dict[str, Any]) -> Candidate:
        """Convert a Spotify track object to a Candidate.

        Raises:
            TransientError: If the object lacks the fields a candidate needs
        """
        try:
            track_id = spotify_track['id']
            return Candidate(
                external_id=track_id,
                title=spotify_track['name'],
                primary_artist=spotify_track['artists'][0]['name'],
                uri=spotify_track.get('uri') or f"spotify:track:{track_id}",
            )
        except (KeyError, IndexError, TypeError) as e:
            raise TransientError(f"Malformed Spotify track in search result: {e}") from e

    def search(self, track: Track) -> Candidate:
        """Search the Spotify catalog and return the first track.

        Args:
            track: Track to search for

        Returns:
            Candidate for the first search result
        """
        query = f"{track.title} artist:{track.creator}"
        logger.debug(f"Searching Spotify: {query} (market={self._market}, limit={self._search_limit})")

        try:
            results = self._client.search(q=query, type='track', limit=self._search_limit, market=self._market)
        except (SpotifyException, requests.RequestException) as e:
            raise self._translate_error(e, "search") from e

        try:
            items = results['tracks']['items']
        except (KeyError, TypeError) as e:
            raise TransientError(f"Unexpected Spotify search response: {e}") from e

        if not items:
            raise NotFound(f"No Spotify tracks for query '{query}'")

        return self._spotify_track_to_candidate(items[0])

    def create_playlist(self, name: str, tracks: List[Candidate]) -> RemotePlaylist:
        """Create a private playlist for the current user and add the tracks.

        Args:
            name: Playlist name
            tracks: Resolved candidates, in playlist order

        Returns:
            RemotePlaylist with the Spotify id and web URL
        """
        try:
            user_id = self._client.current_user()['id']
            result = self._client.user_playlist_create(
                user_id,
                name,
                public=False,
                description=PLAYLIST_DESCRIPTION
            )
            playlist_id = result['id']
            playlist_url = result['external_urls']['spotify']
        except (SpotifyException, requests.RequestException) as e:
            raise self._translate_error(e, "create playlist", PlatformError) from e
        except (KeyError, TypeError) as e:
            raise PlatformError(f"Unexpected Spotify create playlist response: {e}") from e

        logger.info(f"Created Spotify playlist {playlist_id}, adding {len(tracks)} tracks")

        uris = [t.ref for t in tracks]
        try:
            for i in range(0, len(uris), ADD_ITEMS_LIMIT):
                self._client.playlist_add_items(playlist_id, uris[i:i + ADD_ITEMS_LIMIT])
        except (SpotifyException, requests.RequestException) as e:
            # Playlist stays behind, possibly partially filled; no rollback
            raise self._translate_error(e, f"add tracks to playlist {playlist_id}", PlatformError) from e

        return RemotePlaylist(external_id=playlist_id, url=playlist_url)
