"""
Monitoring Session

Record of one workflow run and the summary derived from it once sealed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from monitoring.error_handler import ErrorSeverity
from utils.time_utils import utc_now

EXIT_SUCCESS = 0
EXIT_ERRORS = 1
EXIT_FORCED = 2
EXIT_SIGINT = 130
EXIT_SIGTERM = 143

SIGNAL_EXIT_CODES = {
    "SIGINT": EXIT_SIGINT,
    "SIGTERM": EXIT_SIGTERM,
}


class SessionStatus:
    SUCCESS = "SUCCESS"
    COMPLETED_WITH_ERRORS = "COMPLETED WITH ERRORS"
    ABORTED = "ABORTED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class FailedTargetResult:
    """Per-target result when fetching or comparing failed."""

    target: object
    error: object
    failed_at: datetime = field(default_factory=utc_now)

    @property
    def has_changed(self):
        return False


@dataclass(frozen=True)
class NotificationAttempt:
    target: object
    delivered: bool
    completed_at: datetime = field(default_factory=utc_now)


@dataclass
class Session:
    config_path: str = None
    notify_channel: str = None
    start_time: datetime = field(default_factory=utc_now)
    end_time: datetime = None
    targets: list = field(default_factory=list)
    results: list = field(default_factory=list)
    errors: list = field(default_factory=list)
    notifications: list = field(default_factory=list)
    stage: str = "INIT"
    aborted_stage: str = None
    cancelled_by: str = None
    persist_started_at: datetime = None
    persisted: bool = False

    @property
    def changes(self):
        return [result for result in self.results if result.has_changed]

    @property
    def is_sealed(self):
        return self.end_time is not None

    def seal(self):
        self.end_time = utc_now()


@dataclass(frozen=True)
class SessionSummary:
    duration: float
    total_targets: int
    processed: int
    changes: int
    committed_changes: int
    errors: int
    critical_errors: int
    high_errors: int
    medium_errors: int
    low_errors: int
    error_counts: dict
    status: str
    aborted_stage: str = None
    cancelled_by: str = None

    @property
    def success(self):
        return self.status == SessionStatus.SUCCESS

    @property
    def warnings(self):
        return self.medium_errors + self.low_errors

    @property
    def exit_code(self):
        if self.cancelled_by is not None:
            return SIGNAL_EXIT_CODES.get(self.cancelled_by, EXIT_ERRORS)
        if self.critical_errors > 0 or self.aborted_stage is not None:
            return EXIT_ERRORS
        return EXIT_SUCCESS


def summarize(session):
    """
    Build the read-only summary of a session.

    An unsealed session is measured up to now.

    Args:
        session (Session): The workflow session

    Returns:
        SessionSummary: Counts, duration, status and exit code
    """
    end_time = session.end_time or utc_now()
    by_severity = {severity: 0 for severity in ErrorSeverity.ALL}
    by_kind = {}
    for error in session.errors:
        by_severity[error.severity] += 1
        by_kind[error.kind] = by_kind.get(error.kind, 0) + 1

    changes = len(session.changes)

    if session.cancelled_by is not None:
        status = SessionStatus.CANCELLED
    elif session.aborted_stage is not None:
        status = SessionStatus.ABORTED
    elif session.errors:
        status = SessionStatus.COMPLETED_WITH_ERRORS
    else:
        status = SessionStatus.SUCCESS

    return SessionSummary(
        duration=round((end_time - session.start_time).total_seconds(), 3),
        total_targets=len(session.targets),
        processed=len(session.results),
        changes=changes,
        committed_changes=changes if session.persisted else 0,
        errors=len(session.errors),
        critical_errors=by_severity[ErrorSeverity.CRITICAL],
        high_errors=by_severity[ErrorSeverity.HIGH],
        medium_errors=by_severity[ErrorSeverity.MEDIUM],
        low_errors=by_severity[ErrorSeverity.LOW],
        error_counts=by_kind,
        status=status,
        aborted_stage=session.aborted_stage,
        cancelled_by=session.cancelled_by,
    )


def log_session_summary(summary, logger=None):
    """Write the end-of-run report."""
    logger = logger or logging.getLogger(__name__)

    title = "Monitoring Session Summary"
    if summary.status in (SessionStatus.ABORTED, SessionStatus.CANCELLED):
        title += f" ({summary.status.title()})"

    logger.info(f"=== {title} ===")
    logger.info(f"Duration: {summary.duration:.1f}s")
    logger.info(f"Total targets: {summary.total_targets}")
    logger.info(f"Processed targets: {summary.processed}")
    logger.info(f"Changes detected: {summary.changes}")
    logger.info(f"Changes persisted: {summary.committed_changes}")
    logger.info(f"Errors: {summary.errors}")

    if summary.critical_errors > 0:
        logger.error(f"Critical errors: {summary.critical_errors}")
    if summary.high_errors > 0:
        logger.warning(f"High priority errors: {summary.high_errors}")
    if summary.warnings > 0:
        logger.warning(f"Warnings: {summary.warnings}")

    if summary.aborted_stage is not None:
        logger.error(f"Aborted during stage: {summary.aborted_stage}")
    if summary.cancelled_by is not None:
        logger.warning(f"Cancelled by signal: {summary.cancelled_by}")

    if summary.success:
        logger.info(f"Status: {summary.status}")
    else:
        logger.warning(f"Status: {summary.status}")
