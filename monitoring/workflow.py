"""
Monitoring Workflow

Runs one monitoring pass over every target in a configuration file:

    load targets -> launch browser -> fetch & compare each target
    -> notify all changes -> persist all changes -> clean up

Targets are processed one at a time with one open tab. A failure on one
target is recorded and the loop moves on, unless it is CRITICAL. All
notifications are attempted before the new baselines are written, so an
interrupted run can at worst notify a change twice, never lose one.
"""

import logging
from dataclasses import dataclass

from config.target_config import load_config
from monitoring.cancellation import CancellationToken
from monitoring.change_detector import process_entry
from monitoring.error_handler import TARGET_OPERATION, ErrorHandler
from monitoring.errors import NotificationError, WorkflowCancelled
from monitoring.session import FailedTargetResult, NotificationAttempt, Session, summarize
from monitoring.state_manager import StateManager
from services.slack_service import SlackNotifier
from utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class WorkflowState:
    INIT = "INIT"
    LOADING = "LOADING"
    ENVIRONMENT_READY = "ENVIRONMENT_READY"
    PROCESSING_TARGETS = "PROCESSING_TARGETS"
    NOTIFYING = "NOTIFYING"
    PERSISTING = "PERSISTING"
    DONE = "DONE"


class WorkflowAborted(Exception):
    """A CRITICAL failure stopped the workflow in the given stage."""

    def __init__(self, stage, classified):
        super().__init__(f"Workflow aborted during {stage}: {classified.user_message}")
        self.stage = stage
        self.classified = classified


@dataclass(frozen=True)
class DispatchResult:
    sent: int
    failed: int


class MonitoringWorkflow:
    """
    Orchestrates one monitoring run.

    Args:
        renderer: Rendering environment provider (see ChromeRenderer)
        notify_channel (str, optional): Slack webhook URL; when omitted the
            configuration file's slack_webhook is used
        notifier_factory (callable, optional): Builds a notifier from a
            channel URL (default: SlackNotifier)
        state_manager (StateManager, optional): Persists new baselines
        error_handler (ErrorHandler, optional): Classifier for this run
        config_loader (callable, optional): Loads a MonitorConfig from a path
        timeouts (Timeouts, optional): Navigation and selector timeouts
        logger (logging.Logger, optional): Logger shared with every step
    """

    def __init__(
        self,
        renderer,
        notify_channel=None,
        notifier_factory=None,
        state_manager=None,
        error_handler=None,
        config_loader=None,
        timeouts=None,
        logger=None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.renderer = renderer
        self.notify_channel = notify_channel
        self.notifier_factory = notifier_factory or SlackNotifier
        self.notifier = self.notifier_factory(notify_channel) if notify_channel else None
        self.state_manager = state_manager or StateManager(logger=self.logger)
        self.error_handler = error_handler or ErrorHandler(logger=self.logger)
        self.config_loader = config_loader or load_config
        self.timeouts = timeouts
        self.session = None

    def execute(self, config_path, cancel_token=None):
        """
        Run the complete workflow.

        Classified failures are recorded on the session instead of raised;
        cleanup always runs and the session is sealed before returning.

        Args:
            config_path (str or Path): Configuration file with the targets
            cancel_token (CancellationToken, optional): Checked between stages
                and before each target

        Returns:
            Session: The sealed session record
        """
        token = cancel_token or CancellationToken()
        session = Session(config_path=str(config_path), notify_channel=self.notify_channel)
        self.session = session
        env = None

        try:
            self._enter(session, WorkflowState.LOADING)
            token.raise_if_cancelled()
            self.load_targets(session)

            self._enter(session, WorkflowState.ENVIRONMENT_READY)
            token.raise_if_cancelled()
            env = self.acquire_environment(session)

            self._enter(session, WorkflowState.PROCESSING_TARGETS)
            self.logger.info("Starting monitoring loop...")
            changes = self.process_targets(session, env, token)

            if changes:
                self._enter(session, WorkflowState.NOTIFYING)
                self.dispatch_notifications(session, changes)

                token.raise_if_cancelled()
                self._enter(session, WorkflowState.PERSISTING)
                self.persist_changes(session, changes)

            self._enter(session, WorkflowState.DONE)
            self.logger.info("Monitoring completed successfully")
        except WorkflowAborted as e:
            self.logger.error(str(e))
        except WorkflowCancelled as e:
            session.cancelled_by = e.signal_name
            session.aborted_stage = session.stage
            self.logger.warning(f"{e} during {session.stage}")
        except Exception as error:
            classified = self._record_error(
                session, error, {"type": "workflow", "operation": "execute"}
            )
            session.aborted_stage = session.stage
            self.logger.error(f"Workflow stopped during {session.stage}: {classified.user_message}")
        finally:
            self.cleanup(env)
            session.seal()

        return session

    def load_targets(self, session):
        self.logger.info("Loading configuration...")
        try:
            config = self.config_loader(session.config_path)
        except Exception as error:
            classified = self._record_error(
                session,
                error,
                {"type": "config", "operation": "load", "file_path": session.config_path},
            )
            self._abort(session, classified)

        session.targets = list(config.targets)
        self.logger.info(f"Loaded {len(session.targets)} monitoring targets")

        if self.notifier is None and config.notify_channel:
            self.notify_channel = config.notify_channel
            self.notifier = self.notifier_factory(config.notify_channel)
            self.logger.info("Using Slack webhook from configuration file")
        session.notify_channel = self.notify_channel
        return session.targets

    def acquire_environment(self, session):
        try:
            return self.renderer.acquire_environment()
        except Exception as error:
            classified = self._record_error(
                session, error, {"type": "chrome", "operation": "launch"}
            )
            self._abort(session, classified)

    def process_targets(self, session, env, cancel_token):
        """
        Fetch and compare every target in order, isolating failures.

        Returns:
            list[ChangeOutcome]: Outcomes whose value changed

        Raises:
            WorkflowAborted: A target failure was CRITICAL
            WorkflowCancelled: Cancellation was requested between targets
        """
        changes = []
        total = len(session.targets)

        for index, target in enumerate(session.targets, start=1):
            cancel_token.raise_if_cancelled()
            self.logger.info(f"Processing target {index}/{total}: {target.url}")

            try:
                outcome = self.process_target(env, target)
            except Exception as error:
                classified = self._record_error(
                    session,
                    error,
                    {
                        "type": "target",
                        "operation": TARGET_OPERATION,
                        "url": target.url,
                        "selector": target.selector,
                    },
                )
                session.results.append(FailedTargetResult(target=target, error=classified))
                self.logger.error(f"Error processing {target.url}: {classified.user_message}")

                if self.error_handler.should_stop_workflow(classified):
                    self._abort(session, classified)
                continue

            session.results.append(outcome)
            if outcome.has_changed:
                changes.append(outcome)
                self.logger.info(f"Change detected for {target.url}")
            else:
                self.logger.info(f"No change for {target.url}")

        return changes

    def process_target(self, env, target):
        """
        Fetch one target and compare it with its baseline.

        The tab is always closed; close failures are only logged.

        Returns:
            ChangeOutcome: The comparison result
        """
        page = self.renderer.open_page(env)
        try:
            value = self.renderer.fetch_fragment(page, target.url, target.selector, self.timeouts)
            return process_entry(target, value)
        finally:
            try:
                self.renderer.close_page(page)
            except Exception as e:
                self.logger.warning(f"Error closing page for {target.url}: {e}")

    def dispatch_notifications(self, session, changes):
        """
        Notify every change in order; one failure never stops the rest.

        Returns:
            DispatchResult: Number of notifications sent and failed
        """
        if self.notifier is None:
            self.logger.warning("No Slack webhook configured, skipping notifications")
            return DispatchResult(sent=0, failed=0)

        self.logger.info(f"Sending notifications for {len(changes)} changes...")
        sent = 0
        failed = 0

        for change in changes:
            try:
                delivered = bool(self.notifier.notify(change))
                error = None
                if not delivered:
                    error = NotificationError(
                        f"Slack notification was not accepted for {change.url}", reason="rejected"
                    )
            except Exception as e:
                delivered, error = False, e

            session.notifications.append(
                NotificationAttempt(target=change.target, delivered=delivered)
            )

            if delivered:
                sent += 1
                self.logger.info(f"Notification sent for {change.url}")
                continue

            failed += 1
            classified = self._record_error(
                session,
                error,
                {
                    "type": "notification",
                    "operation": "send_change_notification",
                    "url": change.url,
                    "selector": change.selector,
                },
            )
            self.logger.error(f"Failed to send notification for {change.url}: {classified.user_message}")

        self.logger.info(f"Notification summary: {sent} sent, {failed} failed")
        return DispatchResult(sent=sent, failed=failed)

    def persist_changes(self, session, changes):
        self.logger.info(f"Updating configuration with {len(changes)} changes...")
        session.persist_started_at = utc_now()
        try:
            self.state_manager.update_and_persist(session.config_path, session.targets, changes)
        except Exception as error:
            classified = self._record_error(
                session,
                error,
                {"type": "persistence", "operation": "update_and_persist", "file_path": session.config_path},
            )
            self.logger.error(f"Error updating configuration: {classified.user_message}")
            self._abort(session, classified)

        session.persisted = True
        self.logger.info("Configuration updated successfully")

    def cleanup(self, env):
        """Release the browser. Never raises."""
        self.logger.info("Cleaning up resources...")
        if env is None:
            return
        try:
            self.renderer.release_environment(env)
        except Exception as e:
            self.logger.warning(f"Error terminating Chrome: {e}")

    def get_session_summary(self):
        if self.session is None:
            return None
        return summarize(self.session)

    def _enter(self, session, state):
        self.logger.debug(f"Workflow state: {session.stage} -> {state}")
        session.stage = state

    def _record_error(self, session, error, context):
        classified = self.error_handler.handle_error(error, context)
        session.errors.append(classified)
        return classified

    def _abort(self, session, classified):
        session.aborted_stage = session.stage
        raise WorkflowAborted(session.stage, classified)
