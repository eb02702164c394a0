"""
Shared fixtures and in-memory collaborators for the monitor tests.
"""

import json

import pytest

from monitoring.state_manager import StateManager

WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXXX"


class FakeRenderer:
    """
    Rendering provider that serves values from a dict.

    values maps url -> extracted text; errors maps url -> exception to raise.
    """

    def __init__(self, values=None, errors=None, acquire_error=None, close_error=None, events=None):
        self.values = values or {}
        self.errors = errors or {}
        self.acquire_error = acquire_error
        self.close_error = close_error
        self.events = events if events is not None else []
        self.open_pages = 0
        self.max_open_pages = 0
        self.released = 0
        self.fetched = []

    def acquire_environment(self):
        self.events.append("acquire")
        if self.acquire_error is not None:
            raise self.acquire_error
        return "env"

    def open_page(self, env):
        self.open_pages += 1
        self.max_open_pages = max(self.max_open_pages, self.open_pages)
        return f"page-{len(self.fetched)}"

    def close_page(self, page):
        self.open_pages -= 1
        self.events.append(("close", page))
        if self.close_error is not None:
            raise self.close_error

    def fetch_fragment(self, page, url, selector, timeouts=None):
        self.fetched.append(url)
        self.events.append(("fetch", url))
        if url in self.errors:
            raise self.errors[url]
        return self.values[url]

    def release_environment(self, env):
        self.released += 1
        self.events.append("release")


class FakeNotifier:
    """Notifier whose per-url result is True, False or an exception."""

    def __init__(self, results=None, events=None):
        self.results = results or {}
        self.events = events if events is not None else []
        self.sent = []

    def notify(self, change):
        self.events.append(("notify", change.url))
        self.sent.append(change)
        result = self.results.get(change.url, True)
        if isinstance(result, Exception):
            raise result
        return result


class RecordingStateManager(StateManager):
    def __init__(self, events):
        super().__init__()
        self.events = events
        self.calls = 0

    def update_and_persist(self, file_path, targets, changes):
        self.calls += 1
        self.events.append("persist")
        return super().update_and_persist(file_path, targets, changes)


def entry(url, selector="#price", value="$19.99"):
    return {"url": url, "css_selector": selector, "current_value": value}


@pytest.fixture
def events():
    return []


@pytest.fixture
def write_config(tmp_path):
    """Write a configuration document and return its path."""

    def _write(document, name="config.json"):
        path = tmp_path / name
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def read_config():
    def _read(path):
        return json.loads(path.read_text(encoding="utf-8"))

    return _read
