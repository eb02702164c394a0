#!/usr/bin/env python3
"""
Web Element Change Detector - Main Entry Point

Visits every target in a configuration file, compares the text of each
target's CSS selector with its stored value, sends Slack notifications for
changes and writes the new values back to the file.

Usage:
    python main.py --input config.json [--slack-webhook URL]

Exit codes:
    0   monitoring completed without critical errors
    1   critical errors occurred, the run aborted, or the input was invalid
    130 interrupted by SIGINT (Ctrl+C)
    143 terminated by SIGTERM
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from config.settings import load_settings
from config.target_config import is_valid_webhook_url
from services.monitor_service import run_monitor, setup_logging

logger = logging.getLogger("main")

VERSION = "1.0.0"


def build_parser():
    parser = argparse.ArgumentParser(
        description="Web Element Change Detector",
        epilog=(
            "The config file can be either an object "
            '{"slack_webhook": "...", "targets": [...]} or a legacy array '
            '[{"url": "...", "css_selector": "...", "current_value": "..."}]. '
            "The Slack webhook can also be set via SLACK_WEBHOOK_URL."
        ),
    )
    parser.add_argument("-i", "--input", required=True, help="Path to the input configuration JSON file")
    parser.add_argument(
        "-s",
        "--slack-webhook",
        help="Slack webhook URL for notifications (default: SLACK_WEBHOOK_URL env var)",
    )
    parser.add_argument("--log-level", help="Log level (default: LOG_LEVEL env var or INFO)")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def validate_args(args, settings):
    """
    Resolve and validate CLI arguments.

    Returns:
        tuple: (input_path, slack_webhook or None)

    Raises:
        ValueError: If the input file or webhook URL is unusable
    """
    input_path = Path(args.input).resolve()

    if input_path.suffix.lower() != ".json":
        raise ValueError(f"Input file must be a JSON file: {input_path}")

    if not input_path.is_file() or not os.access(input_path, os.R_OK):
        raise ValueError(
            f"Cannot read input file: {input_path}. Please check the file exists and is readable."
        )

    # Command line argument wins over the environment variable
    slack_webhook = args.slack_webhook or settings.slack_webhook_url
    if slack_webhook and not is_valid_webhook_url(slack_webhook):
        raise ValueError(f"Invalid Slack webhook URL: {slack_webhook}. Must be a valid HTTPS URL.")

    return str(input_path), slack_webhook


def main(argv=None):
    load_dotenv()

    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except ValueError as e:
        setup_logging()
        logger.error(f"Error: {e}")
        return 1

    setup_logging(args.log_level or settings.log_level, settings.log_file)
    logger.info(f"Web Element Change Detector CLI v{VERSION}")

    try:
        input_path, slack_webhook = validate_args(args, settings)
    except ValueError as e:
        logger.error(f"Error: {e}")
        return 1

    if slack_webhook:
        logger.info("Slack notifications: Enabled")
    else:
        logger.info("Slack notifications: from configuration file, if set")

    return run_monitor(input_path, slack_webhook=slack_webhook, settings=settings)


if __name__ == "__main__":
    sys.exit(main())
