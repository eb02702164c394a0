"""
Target Configuration Management

Loads, validates and saves the JSON file that lists the monitored targets.

Two file formats are accepted:
    Object format: {"slack_webhook": "...", "targets": [...]}
    Legacy array format: [{"url": "...", "css_selector": "...", "current_value": "..."}]
"""

import errno
import json
import logging
import os
import tempfile
from pathlib import Path
from urllib.parse import urlparse

from config.models import MonitorConfig, Target
from monitoring.errors import ConfigError, PersistenceError

logger = logging.getLogger(__name__)

REQUIRED_ENTRY_FIELDS = ("url", "css_selector", "current_value")


def load_config(file_path):
    """
    Load and validate a configuration file.

    Args:
        file_path (str or Path): Path to the configuration JSON file

    Returns:
        MonitorConfig: Targets, optional notification channel and raw document

    Raises:
        ConfigError: not_found, unreadable, malformed, empty or schema_invalid
    """
    path = Path(file_path)

    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {path}", reason="not_found") from e
    except PermissionError as e:
        raise ConfigError(
            f"Permission denied reading configuration file: {path}", reason="unreadable"
        ) from e
    except IsADirectoryError as e:
        raise ConfigError(f"Configuration path is a directory: {path}", reason="unreadable") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Configuration file is not UTF-8 text: {path}", reason="malformed") from e

    if not content.strip():
        raise ConfigError(f"Configuration file is empty: {path}", reason="empty")

    try:
        document = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON format in {path}: {e}", reason="malformed") from e

    validate_config(document)

    if isinstance(document, list):
        entries, notify_channel = document, None
    else:
        entries, notify_channel = document["targets"], document.get("slack_webhook")

    targets = [Target.from_entry(entry) for entry in entries]
    logger.debug(f"Loaded {len(targets)} targets from {path}")
    return MonitorConfig(targets=targets, notify_channel=notify_channel, document=document)


def save_config(file_path, document):
    """
    Write a configuration document, replacing the file atomically.

    The content goes to a temporary file in the same directory which is
    then renamed over the original.

    Args:
        file_path (str or Path): Destination path
        document (dict or list): Configuration to save

    Raises:
        ConfigError: If the document does not validate
        PersistenceError: If the file cannot be written
    """
    validate_config(document)

    path = Path(file_path)
    content = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    tmp_name = None

    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())

        if path.exists():
            os.chmod(tmp_name, path.stat().st_mode & 0o777)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        if e.errno == errno.ENOSPC:
            raise PersistenceError(
                f"No space left on device when writing: {path}", reason="disk_full"
            ) from e
        if e.errno in (errno.EACCES, errno.EPERM):
            raise PersistenceError(
                f"Permission denied writing to configuration file: {path}",
                reason="file_not_writable",
            ) from e
        raise PersistenceError(
            f"Failed to write configuration file {path}: {e}", reason="write_failed"
        ) from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError as e:
                logger.warning(f"Could not remove temporary file {tmp_name}: {e}")


def validate_config(document):
    """
    Validate a configuration document in either supported format.

    Raises:
        ConfigError: reason "empty" for no targets, otherwise "schema_invalid"
    """
    if isinstance(document, list):
        validate_targets(document)
    elif isinstance(document, dict):
        validate_config_object(document)
    else:
        raise ConfigError(
            "Configuration must be an array of monitoring targets or an object with targets",
            reason="schema_invalid",
        )


def validate_config_object(document):
    targets = document.get("targets")
    if not isinstance(targets, list):
        raise ConfigError("Configuration object must have a 'targets' array", reason="schema_invalid")

    validate_targets(targets)

    if "slack_webhook" in document:
        webhook = document["slack_webhook"]
        if not isinstance(webhook, str):
            raise ConfigError("slack_webhook must be a string", reason="schema_invalid")
        if not webhook.strip():
            raise ConfigError("slack_webhook cannot be empty", reason="schema_invalid")
        if not is_valid_webhook_url(webhook):
            raise ConfigError(
                f"Invalid slack_webhook URL: {webhook}. Must be an HTTPS slack.com URL",
                reason="schema_invalid",
            )


def validate_targets(targets):
    if len(targets) == 0:
        raise ConfigError("Targets array cannot be empty", reason="empty")

    for index, entry in enumerate(targets):
        try:
            validate_entry(entry)
        except ConfigError as e:
            raise ConfigError(
                f"Invalid target entry at index {index}: {e}", reason="schema_invalid"
            ) from e

    seen = set()
    for index, entry in enumerate(targets):
        key = (entry["url"], entry["css_selector"])
        if key in seen:
            raise ConfigError(
                f"Duplicate monitoring target at index {index}: "
                f"{entry['url']} with selector {entry['css_selector']}",
                reason="schema_invalid",
            )
        seen.add(key)


def validate_entry(entry):
    """
    Validate a single target entry.

    ``url`` and ``css_selector`` must be strings; ``current_value`` must be
    present and may be a string, a number or null.
    """
    if not isinstance(entry, dict):
        raise ConfigError("Entry must be an object", reason="schema_invalid")

    for name in REQUIRED_ENTRY_FIELDS:
        if name not in entry:
            raise ConfigError(f"Missing required field: {name}", reason="schema_invalid")

    for name in ("url", "css_selector"):
        if not isinstance(entry[name], str):
            raise ConfigError(f"Field {name} must be a string", reason="schema_invalid")

    value = entry["current_value"]
    if value is not None and (isinstance(value, bool) or not isinstance(value, (str, int, float))):
        raise ConfigError(
            "Field current_value must be a string, a number or null", reason="schema_invalid"
        )

    parsed = urlparse(entry["url"])
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"Invalid URL format: {entry['url']}", reason="schema_invalid")

    if not entry["css_selector"].strip():
        raise ConfigError("CSS selector cannot be empty", reason="schema_invalid")

    extra_fields = sorted(set(entry) - set(REQUIRED_ENTRY_FIELDS))
    if extra_fields:
        raise ConfigError(
            f"Unexpected fields found: {', '.join(extra_fields)}", reason="schema_invalid"
        )


def is_valid_webhook_url(url):
    """Slack webhooks must be HTTPS on hooks.slack.com or a slack.com subdomain."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    hostname = parsed.hostname or ""
    return parsed.scheme == "https" and (
        hostname == "hooks.slack.com" or hostname.endswith(".slack.com")
    )
