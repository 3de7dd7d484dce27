"""XSPF playlist source.

Reads playlists either from a local file or from a hosting service that
serves lists as XSPF under /api/list/<view_id>?type=xspf.
"""

import logging
import os
import xml.etree.ElementTree as ET
from typing import Optional
from urllib.parse import urlparse

import requests

from xspfsync.domain.entities import Playlist, Track
from xspfsync.domain.errors import InputError

logger = logging.getLogger(__name__)

DEFAULT_HOST = 'mbzlists.com'


def _local_name(tag: str) -> str:
    """Strip the XML namespace and lowercase a tag name."""
    return tag.rsplit('}', 1)[-1].lower()


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    return child.text.strip()


def parse_xspf(document: str) -> Playlist:
    """Parse an XSPF document into a Playlist.

    Raises:
        InputError: If the document is not XSPF or a track misses title or creator
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise InputError(f"Playlist is not valid XML: {e}") from e

    if _local_name(root.tag) != 'playlist':
        raise InputError(f"Expected a <playlist> root element, got <{_local_name(root.tag)}>")

    title = _child_text(root, 'title') or ''
    tracklist = _child(root, 'tracklist')
    if tracklist is None:
        raise InputError("Playlist has no <trackList> element")

    tracks = []
    for index, element in enumerate(e for e in tracklist if _local_name(e.tag) == 'track'):
        track_title = _child_text(element, 'title')
        creator = _child_text(element, 'creator')
        if not track_title or not creator:
            raise InputError(f"Track {index + 1} is missing a title or creator")
        tracks.append(Track(title=track_title, creator=creator))

    return Playlist(title=title, tracks=tracks)


def load_from_file(path: str) -> Playlist:
    """Read and parse an XSPF file."""
    if not os.path.isfile(path):
        raise InputError(f"Playlist file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            document = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise InputError(f"Failed to read playlist file {path}: {e}") from e

    playlist = parse_xspf(document)
    logger.info(f"Read total {len(playlist.tracks)} tracks from {path}")
    return playlist


def export_url(url: str, default_host: str = DEFAULT_HOST) -> str:
    """Turn a playlist view URL (or a bare view id) into its XSPF export URL."""
    parsed = urlparse(url)
    segments = [s for s in parsed.path.split('/') if s]
    if not segments:
        raise InputError(f"Malformed playlist url: {url}")

    view_id = segments[-1]
    host = parsed.netloc or default_host
    return f"https://{host}/api/list/{view_id}?type=xspf"


def load_from_url(url: str, default_host: str = DEFAULT_HOST, timeout: int = 15) -> Playlist:
    """Fetch a playlist from its hosting URL and parse it.

    Args:
        url: Playlist view URL, e.g. https://mbzlists.com/list/<view_id>
        default_host: Host used when url carries none
        timeout: Request timeout in seconds

    Returns:
        Parsed playlist
    """
    source = export_url(url, default_host)
    logger.info(f"Fetching playlist from {source}")

    try:
        response = requests.get(source, timeout=timeout)
    except requests.RequestException as e:
        raise InputError(f"Failed to fetch playlist {url}: {e}") from e

    if response.status_code != 200:
        raise InputError(f"Fetching playlist {url} returned HTTP {response.status_code}")

    response.encoding = response.encoding or 'utf-8'
    playlist = parse_xspf(response.text)
    logger.info(f"Read total {len(playlist.tracks)} tracks from {url}")
    return playlist
