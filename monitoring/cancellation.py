"""
Cancellation Token

Passed into the workflow so signal handlers can request a stop without any
module-level "current workflow" reference.
"""

import threading

from monitoring.errors import WorkflowCancelled


class CancellationToken:
    def __init__(self):
        self._event = threading.Event()
        self.signal_name = None

    def cancel(self, signal_name=None):
        """Request cancellation; the first caller's signal name is kept."""
        if not self._event.is_set():
            self.signal_name = signal_name
        self._event.set()

    @property
    def is_cancelled(self):
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise WorkflowCancelled(self.signal_name)
