from typing import Dict, List, Optional

from flask import render_template_string

from xspfsync.application.sync import SyncRun


LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>xspfsync</title>
  <style>
    body { font-family: monospace; font-size: 16px; line-height: 1.6; margin: 2rem; background: #f4f4f4; color: #333; }
    h1 { font-size: 2rem; margin-bottom: 1rem; }
    h2 { font-size: 1.25rem; margin-bottom: 0.5rem; }
    p { margin-bottom: 1rem; color: #555; }
    input { padding: 0.5rem; margin-bottom: 1rem; border: 1px solid #ccc; border-radius: 4px; font-family: monospace; width: 30rem; }
    .btn { background: #444; color: white; border: none; padding: 0.5rem 1rem; border-radius: 4px; cursor: pointer; font-family: inherit; text-decoration: none; }
    .btn:hover { background: #222; }
    .card { background: #e0e0e0; border-radius: 8px; padding: 1.5rem; margin-bottom: 1.5rem; }
    .error { background: #f3d6d6; }
  </style>
</head>
<body>
__BODY__
</body>
</html>"""

HOME = """
<h1>xspfsync</h1>
<p>Export XSPF playlists to other platforms.</p>
{% for platform in platforms %}
<div class="card">
  <h2><i>XSPF &rarr; {{ platform.display }}</i></h2>
  {% if platform.web %}
  <a class="btn" href="/{{ platform.slug }}/login">Proceed to Login</a>
  {% else %}
  <p>Use the command line: <code>xspfsync {{ platform.slug }} playlist.xspf</code></p>
  {% endif %}
</div>
{% endfor %}
"""

PROMPT = """
<div class="card">
  <h2><i>XSPF &rarr; {{ display }} Exporter</i></h2>
  <p>Enter the playlist view-URL</p>
  <form action="/{{ slug }}/create" method="GET">
    <input type="text" name="target" placeholder="Playlist URL">
    <button type="submit" class="btn">Submit</button>
  </form>
</div>
"""

CREATED = """
<div class="card">
  <h2>{{ display }} Playlist {% if run.created %}Created{% else %}Not Created{% endif %}</h2>
  <p>Resolved {{ run.result.resolved|length }} of {{ run.result.attempted }} tracks.</p>
  {% if run.created %}
  <a class="btn" href="{{ run.remote_playlist.url }}">Open Playlist</a>
  {% else %}
  <p>No track could be matched, so no playlist was created.</p>
  {% endif %}
</div>
"""

ERROR = """
<div class="card error">
  <h2>{{ title }}</h2>
  <p>{{ message }}</p>
  {% if retry_url %}<a class="btn" href="{{ retry_url }}">Try again</a>{% endif %}
</div>
"""


def _render(template: str, **context) -> str:
    return render_template_string(LAYOUT.replace("__BODY__", template), **context)


def render_home(platforms: List[Dict[str, object]]) -> str:
    return _render(HOME, platforms=platforms)


def render_prompt(slug: str, display: str) -> str:
    return _render(PROMPT, slug=slug, display=display)


def render_created(display: str, run: SyncRun) -> str:
    return _render(CREATED, display=display, run=run)


def render_error(title: str, message: str, retry_url: Optional[str] = None) -> str:
    return _render(ERROR, title=title, message=message, retry_url=retry_url)
