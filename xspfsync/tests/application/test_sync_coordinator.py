from unittest.mock import Mock

import pytest

from xspfsync.application.sync import SyncCoordinator, SyncState
from xspfsync.application.verification import MatchPolicy
from xspfsync.crosscutting.logging import CorrelationContext, platform_var, run_id_var, stage_var
from xspfsync.domain.entities import Candidate, Playlist, RemotePlaylist, Resolved, Track, Unresolved
from xspfsync.domain.errors import AuthorizationError, NotFound, PlatformError, TransientError


def _candidate(title, artist, external_id=None):
    return Candidate(external_id=external_id or f"id-{title}", title=title, primary_artist=artist)


class TestSyncCoordinator:
    """Tests for the synchronization coordinator."""

    def test_single_track_not_found_creates_nothing(self, stub_adapter_cls):
        """Test the empty-search run yields one unresolved track and no playlist."""
        adapter = stub_adapter_cls()
        playlist = Playlist(title="Test", tracks=[Track(title="A", creator="X")])

        sync_run = SyncCoordinator(adapter).run(playlist)

        assert sync_run.result.attempted == 1
        assert sync_run.result.resolved == []
        assert sync_run.result.unresolved_count == 1
        assert sync_run.state == SyncState.DONE_EMPTY
        assert sync_run.remote_playlist is None
        assert adapter.created == []
        assert sync_run.outcomes == [Unresolved(track=Track("A", "X"), reason="not_found")]

    def test_single_track_exact_match_creates_playlist_once(self, stub_adapter_cls):
        """Test the exact-match run creates the playlist with that candidate."""
        candidate = _candidate("A", "X")
        adapter = stub_adapter_cls(results={("A", "X"): candidate})
        playlist = Playlist(title="Test", tracks=[Track(title="A", creator="X")])

        sync_run = SyncCoordinator(adapter).run(playlist)

        assert sync_run.result.attempted == 1
        assert sync_run.result.resolved == [candidate]
        assert sync_run.result.unresolved_count == 0
        assert adapter.created == [("Test", [candidate])]
        assert sync_run.state == SyncState.DONE
        assert sync_run.remote_playlist == RemotePlaylist(external_id='pl-1', url='https://example.org/playlist/pl-1')

    def test_counts_add_up_for_mixed_outcomes(self, stub_adapter_cls):
        """Test resolved + unresolved == attempted for every kind of outcome."""
        tracks = [Track(f"T{i}", "X") for i in range(6)]
        adapter = stub_adapter_cls(results={
            ("T0", "X"): _candidate("T0", "X"),
            ("T1", "X"): _candidate("t1", "x"),        # rejected under strict
            ("T2", "X"): TransientError("boom"),
            ("T4", "X"): _candidate("T4", "X"),
            ("T5", "X"): _candidate("Other", "X"),
        })

        sync_run = SyncCoordinator(adapter).run(Playlist("Mixed", tracks))
        result = sync_run.result

        assert result.attempted == 6
        assert len(result.resolved) + result.unresolved_count == result.attempted
        assert [c.title for c in result.resolved] == ["T0", "T4"]
        reasons = [o.reason for o in sync_run.outcomes if isinstance(o, Unresolved)]
        assert reasons == ["rejected", "error", "not_found", "rejected"]

    def test_transient_error_does_not_stop_other_tracks(self, stub_adapter_cls):
        """Test failure isolation: one TransientError among N tracks."""
        tracks = [Track("One", "A"), Track("Two", "B"), Track("Three", "C")]
        adapter = stub_adapter_cls(results={
            ("One", "A"): _candidate("One", "A"),
            ("Two", "B"): TransientError("HTTP 500"),
            ("Three", "C"): _candidate("Three", "C"),
        })

        sync_run = SyncCoordinator(adapter).run(Playlist("P", tracks))

        assert adapter.searched == tracks
        assert [c.title for c in sync_run.result.resolved] == ["One", "Three"]
        assert sync_run.outcomes[1] == Unresolved(track=Track("Two", "B"), reason="error")
        assert len(adapter.created) == 1

    def test_create_never_called_when_nothing_resolved(self, stub_adapter_cls):
        """Test that an all-rejected playlist never reaches creation."""
        adapter = stub_adapter_cls(results={("A", "X"): _candidate("B", "Y")})

        sync_run = SyncCoordinator(adapter).run(Playlist("P", [Track("A", "X"), Track("C", "Z")]))

        assert adapter.created == []
        assert sync_run.state == SyncState.DONE_EMPTY

    def test_no_create_flag_skips_creation(self, stub_adapter_cls):
        """Test resolve-only runs leave remote state untouched."""
        adapter = stub_adapter_cls(results={("A", "X"): _candidate("A", "X")})

        sync_run = SyncCoordinator(adapter).run(Playlist("P", [Track("A", "X")]), create=False)

        assert adapter.created == []
        assert sync_run.state == SyncState.DONE_EMPTY
        assert len(sync_run.result.resolved) == 1

    def test_name_override(self, stub_adapter_cls):
        """Test that an explicit name wins over the playlist title."""
        adapter = stub_adapter_cls(results={("A", "X"): _candidate("A", "X")})

        sync_run = SyncCoordinator(adapter).run(Playlist("P", [Track("A", "X")]), name="Custom")

        assert adapter.created[0][0] == "Custom"
        assert sync_run.playlist_name == "Custom"

    def test_platform_error_preserves_result(self, stub_adapter_cls):
        """Test that a creation failure is reported without losing resolution work."""
        adapter = stub_adapter_cls(results={("A", "X"): _candidate("A", "X")},
                                   create_error=PlatformError("quota exceeded"))

        sync_run = SyncCoordinator(adapter).run(Playlist("P", [Track("A", "X")]))

        assert sync_run.state == SyncState.DONE
        assert sync_run.failed is True
        assert sync_run.remote_playlist is None
        assert "quota exceeded" in str(sync_run.error)
        assert len(sync_run.result.resolved) == 1

    def test_authorization_error_aborts_run(self, stub_adapter_cls):
        """Test that a rejected token is a run-level error, not a per-track one."""
        adapter = stub_adapter_cls(results={("A", "X"): AuthorizationError("401")})

        with pytest.raises(AuthorizationError):
            SyncCoordinator(adapter).run(Playlist("P", [Track("A", "X"), Track("B", "Y")]))

        assert adapter.created == []

    def test_rejected_token_during_creation_keeps_run(self, stub_adapter_cls):
        """Test that a token rejected at creation still exposes the resolution work."""
        adapter = stub_adapter_cls(results={("A", "X"): _candidate("A", "X")},
                                   create_error=AuthorizationError("401"))
        coordinator = SyncCoordinator(adapter)

        with pytest.raises(AuthorizationError) as exc_info:
            coordinator.run(Playlist("P", [Track("A", "X"), Track("B", "Y")]))

        sync_run = exc_info.value.sync_run
        assert sync_run is not None
        assert sync_run.state == SyncState.DONE
        assert coordinator.state == SyncState.DONE
        assert sync_run.failed is True
        assert sync_run.result.attempted == 2
        assert len(sync_run.result.resolved) == 1
        assert len(adapter.created) == 1

    def test_concurrent_searches_keep_log_context(self, stub_adapter_cls):
        """Test that worker threads see the platform and stage of the run."""
        seen = []

        class RecordingAdapter(stub_adapter_cls):
            def search(self, track):
                seen.append((platform_var.get(), stage_var.get(), run_id_var.get()))
                return super().search(track)

        tracks = [Track(f"Song {i}", "Artist") for i in range(6)]
        adapter = RecordingAdapter(results={(t.title, t.creator): _candidate(t.title, t.creator) for t in tracks})

        with CorrelationContext(run_id='run-7'):
            SyncCoordinator(adapter, max_workers=3).run(Playlist("P", tracks), create=False)

        assert seen == [('stub', 'resolving', 'run-7')] * 6

    def test_case_folded_policy_used_from_adapter(self, stub_adapter_cls):
        """Test that the coordinator applies the adapter's configured policy."""
        adapter = stub_adapter_cls(results={("Yesterday", "The Beatles"): _candidate("yesterday", "the beatles")},
                                   policy=MatchPolicy.CASE_FOLDED)

        sync_run = SyncCoordinator(adapter).run(Playlist("P", [Track("Yesterday", "The Beatles")]))

        assert len(sync_run.result.resolved) == 1
        assert isinstance(sync_run.outcomes[0], Resolved)

    def test_concurrent_resolution_preserves_source_order(self, stub_adapter_cls):
        """Test that parallel searches are reassembled in source order."""
        tracks = [Track(f"Song {i}", "Artist") for i in range(25)]
        results = {(t.title, t.creator): _candidate(t.title, t.creator) for t in tracks if t.title != "Song 7"}
        adapter = stub_adapter_cls(results=results)

        sync_run = SyncCoordinator(adapter, max_workers=4).run(Playlist("P", tracks))

        assert [o.track for o in sync_run.outcomes] == tracks
        assert [c.title for c in sync_run.result.resolved] == [t.title for t in tracks if t.title != "Song 7"]
        assert sync_run.result.unresolved_count == 1
        assert len(adapter.created) == 1

    def test_empty_playlist(self, stub_adapter_cls):
        """Test that a playlist without tracks finishes without creation."""
        adapter = stub_adapter_cls()

        sync_run = SyncCoordinator(adapter).run(Playlist("Empty", []))

        assert sync_run.result.attempted == 0
        assert sync_run.state == SyncState.DONE_EMPTY

    def test_state_progression_visible_on_coordinator(self):
        """Test that the coordinator moves through RESOLVING and CREATING."""
        seen_states = []
        adapter = Mock()
        adapter.name = 'mock'
        adapter.policy = MatchPolicy.STRICT
        coordinator = SyncCoordinator(adapter)

        def search(track):
            seen_states.append(coordinator.state)
            return _candidate(track.title, track.creator)

        def create_playlist(name, tracks):
            seen_states.append(coordinator.state)
            return RemotePlaylist(external_id="1", url="u")

        adapter.search.side_effect = search
        adapter.create_playlist.side_effect = create_playlist

        assert coordinator.state == SyncState.IDLE
        coordinator.run(Playlist("P", [Track("A", "X")]))

        assert seen_states == [SyncState.RESOLVING, SyncState.CREATING]
        assert coordinator.state == SyncState.DONE
        adapter.create_playlist.assert_called_once()

    def test_not_found_exception_from_mock_adapter(self):
        """Test that NotFound from a Mock adapter is handled like the stub's."""
        adapter = Mock()
        adapter.name = 'mock'
        adapter.policy = MatchPolicy.STRICT
        adapter.search.side_effect = NotFound("nothing")

        sync_run = SyncCoordinator(adapter).run(Playlist("P", [Track("A", "X")]))

        adapter.create_playlist.assert_not_called()
        assert sync_run.result.unresolved_count == 1
