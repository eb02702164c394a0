"""
Monitoring Data Models

Targets as stored in the configuration file, and the per-target result of
one monitoring pass.
"""

from dataclasses import dataclass, field
from datetime import datetime

from utils.time_utils import utc_now


@dataclass
class Target:
    """One monitored (url, selector) pair and its last known value."""

    url: str
    selector: str
    baseline_value: object = None

    @property
    def key(self):
        return (self.url, self.selector)

    @classmethod
    def from_entry(cls, entry):
        return cls(
            url=entry["url"],
            selector=entry["css_selector"],
            baseline_value=entry.get("current_value"),
        )

    def to_entry(self):
        return {
            "url": self.url,
            "css_selector": self.selector,
            "current_value": self.baseline_value,
        }


@dataclass(frozen=True)
class ChangeOutcome:
    target: Target
    has_changed: bool
    old_value: object
    new_value: object
    detected_at: datetime = field(default_factory=utc_now)

    @property
    def url(self):
        return self.target.url

    @property
    def selector(self):
        return self.target.selector


@dataclass
class MonitorConfig:
    """
    A loaded configuration file.

    ``document`` is the raw JSON value (object or legacy array) so it can be
    written back without dropping unrelated fields.
    """

    targets: list
    notify_channel: str = None
    document: object = None
