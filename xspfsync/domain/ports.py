from __future__ import annotations

from typing import List, Protocol, TYPE_CHECKING

from .entities import Candidate, RemotePlaylist, Track

if TYPE_CHECKING:
    from xspfsync.application.verification import MatchPolicy


class PlatformAdapter(Protocol):
    """Port defining the contract every target platform implements.

    Implementations hold only fixed configuration (endpoint root, credentials)
    and must be reusable for many sequential or concurrent calls.
    """

    name: str
    policy: "MatchPolicy"

    def search(self, track: Track) -> Candidate:
        """Return the first remote result for the track.

        Raises NotFound on an empty result set, TransientError on transport or
        schema failures and AuthorizationError when credentials are rejected.
        """

    def create_playlist(self, name: str, tracks: List[Candidate]) -> RemotePlaylist:
        """Create a playlist owned by the configured account and add the tracks.

        Raises PlatformError. The create and add steps are not atomic.
        """
