import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from xspfsync.application.sync import SyncRun
from xspfsync.domain.entities import Resolved


class TrackStatus(str, Enum):
    """Status of a single track in a synchronization run."""

    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"
    ERROR = "error"


@dataclass
class TrackReport:
    """Per-track line of a report."""

    title: str
    creator: str
    status: TrackStatus
    external_id: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "creator": self.creator,
            "status": self.status.value,
            "externalId": self.external_id,
        }


@dataclass
class SyncReport:
    """Report of a synchronization run."""

    run_id: str
    platform: str
    playlist_name: str
    state: str
    attempted: int
    resolved: int
    unresolved: int
    created_at: datetime = field(default_factory=datetime.now)
    duration_ms: int = 0
    playlist_url: Optional[str] = None
    error: Optional[str] = None
    tracks: List[TrackReport] = field(default_factory=list)

    @classmethod
    def from_run(cls, run_id: str, platform: str, sync_run: SyncRun) -> "SyncReport":
        """Build a report from a finished run."""
        tracks = []
        for outcome in sync_run.outcomes:
            if isinstance(outcome, Resolved):
                tracks.append(TrackReport(outcome.track.title, outcome.track.creator,
                                          TrackStatus.RESOLVED, outcome.candidate.external_id))
            else:
                tracks.append(TrackReport(outcome.track.title, outcome.track.creator,
                                          TrackStatus(outcome.reason)))

        return cls(
            run_id=run_id,
            platform=platform,
            playlist_name=sync_run.playlist_name,
            state=sync_run.state.value,
            attempted=sync_run.result.attempted,
            resolved=len(sync_run.result.resolved),
            unresolved=sync_run.result.unresolved_count,
            duration_ms=sync_run.duration_ms,
            playlist_url=sync_run.remote_playlist.url if sync_run.remote_playlist else None,
            error=str(sync_run.error) if sync_run.error else None,
            tracks=tracks,
        )

    def summary_line(self) -> str:
        return f"Resolved {self.resolved}/{self.attempted} tracks on {self.platform}"

    def to_json(self) -> Dict[str, Any]:
        """Serialize report to JSON."""
        return {
            "runId": self.run_id,
            "platform": self.platform,
            "playlistName": self.playlist_name,
            "createdAt": self.created_at.isoformat(),
            "durationMs": self.duration_ms,
            "state": self.state,
            "totals": {
                "attempted": self.attempted,
                "resolved": self.resolved,
                "unresolved": self.unresolved,
            },
            "playlistUrl": self.playlist_url,
            "error": self.error,
            "tracks": [t.to_json() for t in self.tracks],
        }

    def save(self, directory: str) -> str:
        """Write the report as JSON into directory and return the file path."""
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, f"sync_report_{self.run_id}.json")
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_json(), f, indent=2, ensure_ascii=False)
        return path
