"""
State Manager

Applies detected changes to the target list and writes the new baselines
back to the configuration file.
"""

import copy
import logging
import os
from pathlib import Path

from config.target_config import load_config, save_config
from monitoring.errors import MonitorError, PersistenceError

logger = logging.getLogger(__name__)


def compute_updated(targets, changes):
    """
    Return a new target list with baselines replaced by changed values.

    Targets are deep-copied, never mutated. Changes without has_changed, or
    for a (url, selector) pair not in targets, are ignored.

    Args:
        targets (list[Target]): Current targets
        changes (list[ChangeOutcome]): Outcomes of this run

    Returns:
        list[Target]: Updated copies, in the original order
    """
    new_values = {}
    for change in changes:
        if not change.has_changed:
            continue
        new_values[change.target.key] = change.new_value

    updated = []
    for target in targets:
        entry = copy.deepcopy(target)
        if entry.key in new_values:
            entry.baseline_value = new_values[entry.key]
        updated.append(entry)
    return updated


class StateManager:
    """Persists updated targets into the configuration file."""

    def __init__(self, logger=None):
        self.logger = logger or logging.getLogger(__name__)

    def validate_write_permissions(self, file_path):
        """
        Check that the file (or its directory, for a new file) is writable.

        Raises:
            PersistenceError: directory_missing, directory_not_writable or
                file_not_writable
        """
        path = Path(file_path)
        directory = path.parent

        if not directory.is_dir():
            raise PersistenceError(
                f"Directory does not exist: {directory}", reason="directory_missing"
            )
        # The atomic write creates a temporary file next to the target
        if not os.access(directory, os.W_OK | os.X_OK):
            raise PersistenceError(
                f"No write permission for directory: {directory}",
                reason="directory_not_writable",
            )
        if path.exists() and not os.access(path, os.W_OK):
            raise PersistenceError(
                f"No write permission for file: {path}", reason="file_not_writable"
            )

    def persist(self, file_path, document):
        """
        Validate permissions and write the document.

        Raises:
            PersistenceError: Any failure, including an invalid document
        """
        self.validate_write_permissions(file_path)
        self._write(file_path, document)

    def _write(self, file_path, document):
        try:
            save_config(file_path, document)
        except PersistenceError:
            raise
        except MonitorError as e:
            raise PersistenceError(
                f"Failed to persist configuration: {e}", reason="write_failed"
            ) from e

    def update_and_persist(self, file_path, targets, changes):
        """
        Apply changes and persist the configuration in one step.

        The raw document is re-read so unrelated fields and the legacy array
        format survive the rewrite.

        Args:
            file_path (str or Path): Configuration file
            targets (list[Target]): Targets loaded at session start
            changes (list[ChangeOutcome]): Detected changes

        Returns:
            list[Target]: The targets that were written

        Raises:
            PersistenceError: If reading back or writing the file fails
        """
        updated_targets = compute_updated(targets, changes)
        entries = [target.to_entry() for target in updated_targets]

        self.validate_write_permissions(file_path)
        try:
            original = load_config(file_path)
        except MonitorError as e:
            raise PersistenceError(
                f"Failed to update and persist configuration: {e}", reason="write_failed"
            ) from e

        if isinstance(original.document, list):
            document = entries
        else:
            document = dict(original.document)
            document["targets"] = entries

        # Permissions were checked before reading the original
        self._write(file_path, document)
        self.logger.info(f"Persisted {len(updated_targets)} targets to {file_path}")
        return updated_targets
