from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass(frozen=True)
class Track:
    """Domain entity representing a track to locate on a remote platform."""

    title: str
    creator: str


@dataclass(frozen=True)
class Playlist:
    """Platform-neutral playlist as read from a playlist source."""

    title: str
    tracks: List[Track] = field(default_factory=list)


@dataclass(frozen=True)
class Candidate:
    """Search candidate returned by a platform adapter."""

    external_id: str
    title: str
    primary_artist: str
    # Platform-native reference used when inserting into a playlist
    uri: Optional[str] = None

    @property
    def ref(self) -> str:
        return self.uri or self.external_id


@dataclass(frozen=True)
class Resolved:
    """A track paired with the candidate accepted for it."""

    track: Track
    candidate: Candidate


@dataclass(frozen=True)
class Unresolved:
    """A track that could not be resolved.

    reason is one of "not_found", "rejected" or "error".
    """

    track: Track
    reason: str


ResolutionOutcome = Union[Resolved, Unresolved]


@dataclass
class SyncResult:
    """Aggregated outcome of resolving a playlist."""

    attempted: int = 0
    resolved: List[Candidate] = field(default_factory=list)
    unresolved_count: int = 0

    def record(self, outcome: ResolutionOutcome) -> None:
        self.attempted += 1
        if isinstance(outcome, Resolved):
            self.resolved.append(outcome.candidate)
        else:
            self.unresolved_count += 1


@dataclass(frozen=True)
class RemotePlaylist:
    """Playlist created on a remote platform."""

    external_id: str
    url: str
