import os
import sys
from typing import List

import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()

from xspfsync.application.verification import MatchPolicy  # noqa: E402
from xspfsync.domain.entities import Candidate, RemotePlaylist, Track  # noqa: E402
from xspfsync.domain.errors import NotFound  # noqa: E402


CONFIG_KEYS = [
    'SUBSONIC_HOST', 'SUBSONIC_USER', 'SUBSONIC_PASSWORD', 'SUBSONIC_LEGACY_AUTH',
    'SPOTIFY_CLIENT_ID', 'SPOTIFY_CLIENT_SECRET', 'SPOTIFY_REDIRECT_URI',
    'GOOGLE_CLIENT_ID', 'GOOGLE_CLIENT_SECRET', 'GOOGLE_REDIRECT_URI',
    'SPOTIFY_ACCESS_TOKEN', 'YOUTUBE_ACCESS_TOKEN',
    'XSPFSYNC_WORKERS', 'XSPFSYNC_SECRET_KEY', 'XSPFSYNC_PLAYLIST_HOST',
]


@pytest.fixture(autouse=True)
def _isolate_config_env():
    """Keep credentials from the developer's shell out of the tests."""
    backup = {k: os.environ.get(k) for k in CONFIG_KEYS}
    for k in CONFIG_KEYS:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


class StubAdapter:
    """In-memory platform adapter.

    results maps (title, creator) to a Candidate or an exception instance.
    Missing keys raise NotFound.
    """

    name = 'stub'

    def __init__(self, results=None, policy=MatchPolicy.STRICT, create_error=None):
        self.results = results or {}
        self.policy = policy
        self.create_error = create_error
        self.searched: List[Track] = []
        self.created = []

    def search(self, track: Track) -> Candidate:
        self.searched.append(track)
        result = self.results.get((track.title, track.creator))
        if result is None:
            raise NotFound(track.title)
        if isinstance(result, Exception):
            raise result
        return result

    def create_playlist(self, name, tracks):
        self.created.append((name, list(tracks)))
        if self.create_error:
            raise self.create_error
        return RemotePlaylist(external_id='pl-1', url='https://example.org/playlist/pl-1')


@pytest.fixture
def stub_adapter_cls():
    return StubAdapter


SAMPLE_XSPF = """<?xml version="1.0" encoding="UTF-8"?>
<playlist version="1" xmlns="http://xspf.org/ns/0/">
  <title>Road Trip</title>
  <trackList>
    <track>
      <title>Yesterday</title>
      <creator>The Beatles</creator>
    </track>
    <track>
      <title>Heroes</title>
      <creator>David Bowie</creator>
    </track>
  </trackList>
</playlist>
"""


@pytest.fixture
def sample_xspf() -> str:
    return SAMPLE_XSPF


@pytest.fixture
def xspf_file(tmp_path):
    path = tmp_path / 'road_trip.xspf'
    path.write_text(SAMPLE_XSPF, encoding='utf-8')
    return str(path)
