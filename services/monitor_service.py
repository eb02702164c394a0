"""
Monitor Service

Process-level runner for one monitoring pass: logging setup, signal
handling, workflow execution and the final exit code.
"""

import logging
import signal

from config.settings import load_settings
from monitoring.cancellation import CancellationToken
from monitoring.page_scraper import ChromeRenderer
from monitoring.session import EXIT_FORCED, log_session_summary, summarize
from monitoring.workflow import MonitoringWorkflow
from services.slack_service import SlackNotifier

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(level="INFO", log_file=None):
    """
    Configure root logging once for the process.

    Args:
        level (str): Log level name
        log_file (str, optional): Also write log lines to this file
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def install_signal_handlers(cancel_token):
    """
    Route SIGINT/SIGTERM into the cancellation token.

    The first signal requests a graceful stop; a second one forces exit.

    Returns:
        dict: Previous handlers, for restore_signal_handlers
    """
    def signal_handler(signum, frame):
        name = signal.Signals(signum).name
        if cancel_token.is_cancelled:
            logger.warning(f"Received {name} again, forcing exit...")
            raise SystemExit(EXIT_FORCED)
        logger.warning(f"Received {name}, initiating graceful shutdown...")
        cancel_token.cancel(name)

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, signal_handler)
    return previous


def restore_signal_handlers(previous):
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def run_monitor(config_path, slack_webhook=None, settings=None):
    """
    Run one monitoring pass and report it.

    Args:
        config_path (str): Configuration JSON file
        slack_webhook (str, optional): Slack webhook URL; falls back to the
            configuration file's slack_webhook
        settings (Settings, optional): Runtime settings (default: from env)

    Returns:
        int: Process exit code
    """
    settings = settings or load_settings()
    cancel_token = CancellationToken()

    renderer = ChromeRenderer(
        headless=settings.chrome_headless,
        chrome_binary=settings.chrome_binary,
        shutdown_grace_seconds=settings.shutdown_grace_seconds,
    )

    def notifier_factory(webhook_url):
        return SlackNotifier(
            webhook_url,
            timeout=settings.slack_timeout,
            display_timezone=settings.display_timezone,
        )

    workflow = MonitoringWorkflow(
        renderer,
        notify_channel=slack_webhook,
        notifier_factory=notifier_factory,
        timeouts=settings.timeouts,
        logger=logging.getLogger("monitoring.workflow"),
    )

    logger.info("Starting monitoring process...")
    logger.info(f"Configuration file: {config_path}")

    previous = install_signal_handlers(cancel_token)
    try:
        session = workflow.execute(config_path, cancel_token=cancel_token)
    finally:
        restore_signal_handlers(previous)

    summary = summarize(session)
    log_session_summary(summary, logger)
    logger.info("Monitoring process completed")
    return summary.exit_code
