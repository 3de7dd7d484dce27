import contextvars
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from xspfsync.application.verification import verify
from xspfsync.crosscutting.logging import CorrelationContext, log_with_fields
from xspfsync.domain.entities import (
    Playlist, RemotePlaylist, Resolved, ResolutionOutcome, SyncResult, Track, Unresolved,
)
from xspfsync.domain.errors import AuthorizationError, NotFound, PlatformError, SyncError, TransientError
from xspfsync.domain.ports import PlatformAdapter


logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """States of a synchronization run."""

    IDLE = "idle"
    RESOLVING = "resolving"
    CREATING = "creating"
    DONE = "done"
    DONE_EMPTY = "done_empty"


@dataclass
class SyncRun:
    """Outcome of one synchronization run.

    result is kept even when playlist creation fails so callers can still
    report what was resolved.
    """

    playlist_name: str
    state: SyncState = SyncState.IDLE
    result: SyncResult = field(default_factory=SyncResult)
    outcomes: List[ResolutionOutcome] = field(default_factory=list)
    remote_playlist: Optional[RemotePlaylist] = None
    error: Optional[SyncError] = None
    duration_ms: int = 0

    @property
    def created(self) -> bool:
        return self.remote_playlist is not None

    @property
    def failed(self) -> bool:
        return self.error is not None


class ProgressTracker:
    """Tracks resolution progress and provides periodic updates."""

    def __init__(self, total_tracks: int, progress_interval_sec: int = 60):
        """Initialize progress tracker.

        Args:
            total_tracks: Total number of tracks to process
            progress_interval_sec: Interval for progress updates in seconds
        """
        self.total_tracks = total_tracks
        self.processed_tracks = 0
        self.counts = {"resolved": 0, "not_found": 0, "rejected": 0, "error": 0}
        self.last_progress_time = time.time()
        self.progress_interval_sec = progress_interval_sec
        self.start_time = time.time()

    def update(self, outcome: ResolutionOutcome) -> None:
        """Update progress with a new track outcome."""
        self.processed_tracks += 1

        if isinstance(outcome, Resolved):
            self.counts["resolved"] += 1
        else:
            self.counts[outcome.reason] = self.counts.get(outcome.reason, 0) + 1

        current_time = time.time()

        # Log progress every 10 tracks or every progress_interval_sec
        if (self.processed_tracks % 10 == 0 or
                current_time - self.last_progress_time >= self.progress_interval_sec):
            elapsed_sec = current_time - self.start_time
            progress_pct = (self.processed_tracks / self.total_tracks) * 100

            logger.info(f"Progress: {self.processed_tracks}/{self.total_tracks} tracks ({progress_pct:.1f}%) "
                        f"processed in {elapsed_sec:.1f}s. "
                        f"Resolved: {self.counts['resolved']}, Not found: {self.counts['not_found']}, "
                        f"Rejected: {self.counts['rejected']}, Errors: {self.counts['error']}")

            self.last_progress_time = current_time

    def get_final_summary(self) -> Dict[str, Any]:
        """Get final progress summary."""
        total_time = time.time() - self.start_time
        match_rate = (self.counts["resolved"] / self.total_tracks) * 100 if self.total_tracks > 0 else 0

        return {
            "total_tracks": self.total_tracks,
            "processed_tracks": self.processed_tracks,
            "resolved_tracks": self.counts["resolved"],
            "not_found_tracks": self.counts["not_found"],
            "rejected_tracks": self.counts["rejected"],
            "error_tracks": self.counts["error"],
            "match_rate_percent": match_rate,
            "total_time_seconds": total_time,
        }


class SyncCoordinator:
    """Resolves a playlist against one platform and creates the remote copy."""

    def __init__(self, adapter: PlatformAdapter, max_workers: int = 1):
        """Initialize the coordinator.

        Args:
            adapter: Target platform adapter
            max_workers: Upper bound on concurrent searches, 1 means sequential
        """
        self.adapter = adapter
        self.max_workers = max(1, int(max_workers))
        self.state = SyncState.IDLE

    def resolve_track(self, track: Track) -> ResolutionOutcome:
        """Search for a single track and verify the first result.

        NotFound and TransientError are turned into Unresolved outcomes,
        AuthorizationError propagates and aborts the run.
        """
        try:
            candidate = self.adapter.search(track)
        except NotFound:
            logger.info(f"Unable to resolve '{track.title}' by '{track.creator}': not found")
            return Unresolved(track=track, reason="not_found")
        except TransientError as e:
            logger.warning(f"Search failed for '{track.title}' by '{track.creator}': {e}")
            return Unresolved(track=track, reason="error")

        if verify(track, candidate, self.adapter.policy):
            return Resolved(track=track, candidate=candidate)

        logger.debug(f"Rejected candidate {candidate} for '{track.title}' by '{track.creator}'")
        return Unresolved(track=track, reason="rejected")

    def resolve(self, tracks: List[Track]) -> List[ResolutionOutcome]:
        """Resolve tracks, returning one outcome per track in source order."""
        if self.max_workers == 1 or len(tracks) <= 1:
            return [self.resolve_track(track) for track in tracks]

        # Each search runs in a copy of the caller's context so log records keep
        # the run id, platform and stage. Futures are collected in source order.
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(contextvars.copy_context().run, self.resolve_track, track)
                for track in tracks
            ]
            return [future.result() for future in futures]

    def run(self, playlist: Playlist, name: Optional[str] = None, create: bool = True) -> SyncRun:
        """Run a full synchronization of a playlist.

        Args:
            playlist: Source playlist
            name: Remote playlist name, defaults to the source title
            create: When False, stop after resolution without touching remote state

        Returns:
            SyncRun describing the final state

        Raises:
            AuthorizationError: If the token is rejected. When that happens
                during creation the finished run is attached as ``sync_run``.
        """
        start_time = time.time()
        playlist_name = name or playlist.title
        sync_run = SyncRun(playlist_name=playlist_name)

        with CorrelationContext(platform=self.adapter.name, stage=SyncState.RESOLVING.value):
            self.state = sync_run.state = SyncState.RESOLVING
            logger.info(f"Resolving {len(playlist.tracks)} tracks on {self.adapter.name}")

            progress_tracker = ProgressTracker(len(playlist.tracks))
            for outcome in self.resolve(playlist.tracks):
                sync_run.outcomes.append(outcome)
                sync_run.result.record(outcome)
                progress_tracker.update(outcome)

            log_with_fields(logger, 'INFO', 'Resolution finished', progress_tracker.get_final_summary())

        result = sync_run.result
        if not result.resolved or not create:
            if not result.resolved:
                logger.info("Nothing resolved, skipping playlist creation")
            else:
                logger.info(f"Playlist creation disabled, {len(result.resolved)} tracks resolved")
            self.state = sync_run.state = SyncState.DONE_EMPTY
            sync_run.duration_ms = int((time.time() - start_time) * 1000)
            return sync_run

        with CorrelationContext(platform=self.adapter.name, stage=SyncState.CREATING.value):
            self.state = sync_run.state = SyncState.CREATING
            logger.info(f"Creating playlist '{playlist_name}' with {len(result.resolved)} tracks")
            try:
                sync_run.remote_playlist = self.adapter.create_playlist(playlist_name, list(result.resolved))
                logger.info(f"Created playlist: {sync_run.remote_playlist.url}")
            except PlatformError as e:
                logger.error(f"Failed to create playlist '{playlist_name}': {e}")
                sync_run.error = e
            except AuthorizationError as e:
                logger.error(f"Token rejected while creating playlist '{playlist_name}': {e}")
                sync_run.error = e
                self.state = sync_run.state = SyncState.DONE
                sync_run.duration_ms = int((time.time() - start_time) * 1000)
                e.sync_run = sync_run
                raise

        self.state = sync_run.state = SyncState.DONE
        sync_run.duration_ms = int((time.time() - start_time) * 1000)
        return sync_run
