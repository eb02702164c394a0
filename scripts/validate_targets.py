#!/usr/bin/env python3
"""
Target Validation Script

Validates a configuration file and, with --probe, loads every target in
Chrome to show the value that would be compared. Nothing is notified or
written back.

Usage: python scripts/validate_targets.py config.json [--probe]
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from config.settings import load_settings
from config.target_config import load_config
from monitoring.change_detector import detect_change
from monitoring.errors import MonitorError
from monitoring.page_scraper import ChromeRenderer


def probe_targets(targets, settings):
    """
    Fetch every target once and print its current value.

    Returns:
        int: Number of targets that could not be fetched
    """
    renderer = ChromeRenderer(
        headless=settings.chrome_headless,
        chrome_binary=settings.chrome_binary,
        shutdown_grace_seconds=settings.shutdown_grace_seconds,
    )
    failures = 0
    env = renderer.acquire_environment()

    try:
        for target in targets:
            print(f"\n{'='*60}")
            print(f"URL: {target.url}")
            print(f"Selector: {target.selector}")

            page = renderer.open_page(env)
            try:
                value = renderer.fetch_fragment(page, target.url, target.selector, settings.timeouts)
            except MonitorError as e:
                failures += 1
                print(f"  FAILED ({e.kind}): {e}")
                continue
            finally:
                renderer.close_page(page)

            status = "CHANGED" if detect_change(value, target.baseline_value) else "unchanged"
            print(f"  Stored:  {target.baseline_value!r}")
            print(f"  Current: {value!r}")
            print(f"  Status:  {status}")
    finally:
        renderer.release_environment(env)

    return failures


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(description="Validate a monitoring configuration file")
    parser.add_argument("config", help="Path to the configuration JSON file")
    parser.add_argument("--probe", action="store_true", help="Fetch every target in Chrome")
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except MonitorError as e:
        print(f"Invalid configuration: {e}")
        sys.exit(1)

    print(f"Configuration OK: {len(config.targets)} targets")
    print(f"Slack webhook in file: {'yes' if config.notify_channel else 'no'}")

    if not args.probe:
        return

    try:
        failures = probe_targets(config.targets, load_settings())
    except MonitorError as e:
        print(f"Could not start Chrome: {e}")
        sys.exit(1)

    print(f"\n{'='*60}")
    print(f"Probed {len(config.targets)} targets, {failures} failed")
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
