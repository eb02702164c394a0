"""
Error Handler

Classifies failures into (kind, severity, user message) and decides whether
the monitoring workflow must stop.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from monitoring.errors import ErrorKind, MonitorError
from utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class ErrorSeverity:
    CRITICAL = "CRITICAL"  # stops the entire workflow
    HIGH = "HIGH"  # fails the current operation, workflow continues
    MEDIUM = "MEDIUM"  # logged, processing continues
    LOW = "LOW"  # warning only

    ALL = (CRITICAL, HIGH, MEDIUM, LOW)


DEFAULT_SEVERITY = {
    ErrorKind.CONFIG_ERROR: ErrorSeverity.CRITICAL,
    ErrorKind.CHROME_ERROR: ErrorSeverity.CRITICAL,
    ErrorKind.BROWSER_ERROR: ErrorSeverity.CRITICAL,
    ErrorKind.PAGE_ERROR: ErrorSeverity.HIGH,
    ErrorKind.TARGET_ERROR: ErrorSeverity.HIGH,
    ErrorKind.EXTRACTION_ERROR: ErrorSeverity.MEDIUM,
    ErrorKind.NOTIFICATION_ERROR: ErrorSeverity.MEDIUM,
    ErrorKind.PERSISTENCE_ERROR: ErrorSeverity.CRITICAL,
    ErrorKind.WORKFLOW_ERROR: ErrorSeverity.HIGH,
}

CATEGORY_NAMES = {
    ErrorKind.CONFIG_ERROR: "Configuration",
    ErrorKind.CHROME_ERROR: "Chrome Browser",
    ErrorKind.BROWSER_ERROR: "Browser Connection",
    ErrorKind.PAGE_ERROR: "Page Navigation",
    ErrorKind.TARGET_ERROR: "Page Navigation",
    ErrorKind.EXTRACTION_ERROR: "Element Extraction",
    ErrorKind.NOTIFICATION_ERROR: "Slack Notification",
    ErrorKind.PERSISTENCE_ERROR: "File Operations",
    ErrorKind.WORKFLOW_ERROR: "General",
}

# Fallback for untagged exceptions, keyed on context["type"]
CONTEXT_TYPE_KINDS = {
    "config": ErrorKind.CONFIG_ERROR,
    "chrome": ErrorKind.CHROME_ERROR,
    "browser": ErrorKind.BROWSER_ERROR,
    "page": ErrorKind.PAGE_ERROR,
    "notification": ErrorKind.NOTIFICATION_ERROR,
    "persistence": ErrorKind.PERSISTENCE_ERROR,
}

TARGET_OPERATION = "process_target"


@dataclass
class ClassifiedError:
    kind: str
    severity: str
    category: str
    user_message: str
    technical_message: str
    suggestions: list
    context: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def is_critical(self):
        return self.severity == ErrorSeverity.CRITICAL

    def to_dict(self):
        return {
            "kind": self.kind,
            "severity": self.severity,
            "category": self.category,
            "user_message": self.user_message,
            "technical_message": self.technical_message,
            "suggestions": list(self.suggestions),
            "timestamp": self.timestamp.isoformat(),
        }


class ErrorHandler:
    """
    Classifies errors and keeps per-run statistics.

    One instance is created per workflow run and handed to every step, so
    the counts it reports belong to that run only.
    """

    def __init__(self, logger=None):
        self.logger = logger or logging.getLogger(__name__)
        self.error_counts = {}
        self.session_errors = []

    def classify(self, error, context=None):
        """
        Map an error plus operational context to a ClassifiedError.

        Args:
            error (Exception): The failure to classify
            context (dict, optional): Hints such as ``type`` and ``operation``

        Returns:
            ClassifiedError: kind, severity, messages and suggestions
        """
        context = dict(context or {})
        message = str(error) or error.__class__.__name__
        reason = getattr(error, "reason", None)

        if isinstance(error, MonitorError):
            kind = error.kind
        else:
            kind = CONTEXT_TYPE_KINDS.get(context.get("type"), ErrorKind.WORKFLOW_ERROR)

        # Navigation failures while processing a target keep the legacy tag
        if kind == ErrorKind.PAGE_ERROR and context.get("operation") == TARGET_OPERATION:
            kind = ErrorKind.TARGET_ERROR

        builder = MESSAGE_BUILDERS.get(kind, _workflow_messages)
        user_message, suggestions = builder(reason, message)

        return ClassifiedError(
            kind=kind,
            severity=DEFAULT_SEVERITY[kind],
            category=CATEGORY_NAMES[kind],
            user_message=user_message,
            technical_message=message,
            suggestions=suggestions,
            context=context,
        )

    def handle_error(self, error, context=None):
        """
        Classify an error, count it and log it by severity.

        Returns:
            ClassifiedError: The classification
        """
        classified = self.classify(error, context)

        self.error_counts[classified.kind] = self.error_counts.get(classified.kind, 0) + 1
        self.session_errors.append(classified)

        log_context = {k: v for k, v in classified.context.items() if k != "target"}
        if classified.severity == ErrorSeverity.CRITICAL:
            self.logger.error(
                f"CRITICAL {classified.category} Error: {classified.user_message} "
                f"(type={classified.kind}, context={log_context}, technical={classified.technical_message})"
            )
        elif classified.severity == ErrorSeverity.HIGH:
            self.logger.error(
                f"{classified.category} Error: {classified.user_message} "
                f"(type={classified.kind}, context={log_context})"
            )
        elif classified.severity == ErrorSeverity.MEDIUM:
            self.logger.warning(
                f"{classified.category} Warning: {classified.user_message} "
                f"(type={classified.kind}, context={log_context})"
            )
        else:
            self.logger.warning(f"{classified.category} Notice: {classified.user_message}")

        if classified.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.HIGH):
            self.show_suggestions(classified.suggestions)

        return classified

    def show_suggestions(self, suggestions):
        if not suggestions:
            return
        self.logger.info("Suggestions to resolve this issue:")
        for index, suggestion in enumerate(suggestions, start=1):
            self.logger.info(f"  {index}. {suggestion}")

    @staticmethod
    def should_stop_workflow(classified):
        """Only CRITICAL failures stop the workflow."""
        return classified.severity == ErrorSeverity.CRITICAL

    def get_error_stats(self):
        by_severity = {severity: 0 for severity in ErrorSeverity.ALL}
        for classified in self.session_errors:
            by_severity[classified.severity] += 1

        return {
            "total_errors": len(self.session_errors),
            "error_counts": dict(self.error_counts),
            "critical_errors": by_severity[ErrorSeverity.CRITICAL],
            "high_errors": by_severity[ErrorSeverity.HIGH],
            "medium_errors": by_severity[ErrorSeverity.MEDIUM],
            "low_errors": by_severity[ErrorSeverity.LOW],
        }


# ----------------- Message builders -----------------
# Each returns (user_message, suggestions); suggestions are never empty.


def _config_messages(reason, message):
    suggestions = ["Verify the configuration file path is correct"]
    if reason == "not_found":
        user_message = "Configuration file not found. Please check the file path."
    elif reason == "unreadable":
        user_message = "Configuration file cannot be read. Please check its permissions."
        suggestions.append("Ensure the current user has read access to the file")
    elif reason == "malformed":
        user_message = "Configuration file contains invalid JSON. Please check the file format."
        suggestions.append("Use a JSON validator to check file syntax")
        suggestions.append("Ensure all strings are properly quoted")
    elif reason == "empty":
        user_message = "Configuration file has no monitoring targets."
        suggestions.append("Add at least one entry to the targets list")
    elif reason == "schema_invalid":
        user_message = "Configuration file is missing required fields or has invalid values."
        suggestions.append("Ensure each entry has url, css_selector, and current_value fields")
    else:
        user_message = "Configuration file error. Please check your input file."
    return user_message, suggestions


def _chrome_messages(reason, message):
    return (
        "Failed to launch Chrome browser. Please check Chrome installation.",
        [
            "Verify Chrome is installed and accessible",
            "Check that a matching chromedriver can be downloaded or is on PATH",
            "Check system permissions for launching applications",
        ],
    )


def _browser_messages(reason, message):
    return (
        "Failed to communicate with the Chrome browser. The browser may not be ready.",
        [
            "Wait a moment and try again",
            "Ensure Chrome launched successfully",
            "Check that no other process is controlling the browser",
        ],
    )


def _page_messages(reason, message):
    suggestions = ["Check your internet connection"]
    if reason == "navigation_timeout":
        user_message = "Page failed to load within the timeout period."
        suggestions.append("The website may be slow - try increasing NAVIGATION_TIMEOUT")
        suggestions.append("Verify the URL is correct and accessible")
    elif reason == "network":
        user_message = "Network error occurred while loading the page."
        suggestions.append("Verify the URL host resolves and is reachable")
    else:
        user_message = "Page navigation error occurred."
    return user_message, suggestions


def _extraction_messages(reason, message):
    suggestions = []
    if reason == "selector_timeout":
        user_message = "Element selection timed out - the element may not exist or load slowly."
        suggestions.append("The element may load dynamically - try increasing SELECTOR_TIMEOUT")
    elif reason == "not_found":
        user_message = "The specified CSS selector was not found on the page."
    elif reason == "invalid_selector":
        user_message = "The specified CSS selector is not valid."
    elif reason == "no_text":
        user_message = "The element was found but has no text content."
    else:
        user_message = "Failed to extract content from the page element."
    suggestions.append("Verify the CSS selector is correct")
    suggestions.append("Check if the page structure has changed")
    suggestions.append("Use browser developer tools to test the selector")
    return user_message, suggestions


def _notification_messages(reason, message):
    return (
        "Failed to send Slack notification. Check webhook URL and network connection.",
        [
            "Verify the Slack webhook URL is correct",
            "Check your internet connection",
            "Ensure the Slack workspace allows webhook notifications",
        ],
    )


def _persistence_messages(reason, message):
    if reason == "directory_missing":
        user_message = "The directory of the configuration file does not exist."
        suggestions = ["Check that the configuration file path points to an existing directory"]
    elif reason == "directory_not_writable":
        user_message = "Permission denied when writing into the configuration directory."
        suggestions = [
            "Check file and directory permissions",
            "Ensure you have write access to the configuration directory",
        ]
    elif reason == "file_not_writable":
        user_message = "Permission denied when trying to save configuration file."
        suggestions = [
            "Check file and directory permissions",
            "Ensure you have write access to the configuration file",
        ]
    elif reason == "disk_full":
        user_message = "Not enough disk space to save configuration file."
        suggestions = ["Free up disk space"]
    else:
        user_message = "Failed to save configuration changes."
        suggestions = ["Check the logs for more details", "Check file and directory permissions"]
    return user_message, suggestions


def _workflow_messages(reason, message):
    return (
        f"An unexpected error occurred: {message}",
        ["Check the logs for more details", "Try running the command again"],
    )


MESSAGE_BUILDERS = {
    ErrorKind.CONFIG_ERROR: _config_messages,
    ErrorKind.CHROME_ERROR: _chrome_messages,
    ErrorKind.BROWSER_ERROR: _browser_messages,
    ErrorKind.PAGE_ERROR: _page_messages,
    ErrorKind.TARGET_ERROR: _page_messages,
    ErrorKind.EXTRACTION_ERROR: _extraction_messages,
    ErrorKind.NOTIFICATION_ERROR: _notification_messages,
    ErrorKind.PERSISTENCE_ERROR: _persistence_messages,
    ErrorKind.WORKFLOW_ERROR: _workflow_messages,
}
