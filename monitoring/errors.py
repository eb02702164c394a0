"""
Monitoring Errors

Typed failures raised by each collaborator at the point of failure.
The error handler classifies on the ``kind`` tag, never on message text.
"""


class ErrorKind:
    """Closed set of error categories."""

    CONFIG_ERROR = "CONFIG_ERROR"
    CHROME_ERROR = "CHROME_ERROR"
    BROWSER_ERROR = "BROWSER_ERROR"
    PAGE_ERROR = "PAGE_ERROR"
    TARGET_ERROR = "TARGET_ERROR"
    EXTRACTION_ERROR = "EXTRACTION_ERROR"
    NOTIFICATION_ERROR = "NOTIFICATION_ERROR"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    WORKFLOW_ERROR = "WORKFLOW_ERROR"


class MonitorError(Exception):
    """Base class for every tagged failure."""

    kind = ErrorKind.WORKFLOW_ERROR

    def __init__(self, message, reason=None):
        super().__init__(message)
        self.reason = reason


class ConfigError(MonitorError):
    """
    Configuration could not be loaded.

    Reasons: ``not_found``, ``unreadable``, ``malformed``, ``empty``,
    ``schema_invalid``.
    """

    kind = ErrorKind.CONFIG_ERROR


class EnvironmentLaunchError(MonitorError):
    """Chrome (or its driver) could not be started."""

    kind = ErrorKind.CHROME_ERROR


class EnvironmentConnectionError(MonitorError):
    """The running browser could not be talked to."""

    kind = ErrorKind.BROWSER_ERROR


class NavigationError(MonitorError):
    """
    Page could not be loaded.

    Reasons: ``navigation_timeout``, ``network``, ``generic``.
    """

    kind = ErrorKind.PAGE_ERROR


class ExtractionError(MonitorError):
    """
    Element text could not be extracted.

    Reasons: ``selector_timeout``, ``not_found``, ``invalid_selector``,
    ``no_text``.
    """

    kind = ErrorKind.EXTRACTION_ERROR


class NotificationError(MonitorError):
    kind = ErrorKind.NOTIFICATION_ERROR

    def __init__(self, message, reason=None, status_code=None):
        super().__init__(message, reason=reason)
        self.status_code = status_code


class PersistenceError(MonitorError):
    """
    Updated configuration could not be written.

    Reasons: ``directory_missing``, ``directory_not_writable``,
    ``file_not_writable``, ``disk_full``, ``write_failed``.
    """

    kind = ErrorKind.PERSISTENCE_ERROR


class WorkflowCancelled(Exception):
    """Raised at a suspension point once a shutdown signal was received."""

    def __init__(self, signal_name=None):
        super().__init__(f"Workflow cancelled by {signal_name or 'request'}")
        self.signal_name = signal_name
