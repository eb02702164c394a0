"""
Slack Notification Service

Sends change notifications to a Slack incoming webhook.
"""

import logging
import requests

from monitoring.errors import NotificationError
from utils.time_utils import format_display_time

logger = logging.getLogger(__name__)

SLACK_USERNAME = "Web Element Monitor"
SLACK_ICON = ":mag:"


class SlackNotifier:
    """
    Notifier bound to one Slack webhook URL.

    Args:
        webhook_url (str): Slack incoming webhook URL
        timeout (float): Request timeout in seconds
        display_timezone (str): Timezone used for the "Checked" line
        session (requests.Session, optional): Session to reuse
    """

    def __init__(self, webhook_url, timeout=10.0, display_timezone="UTC", session=None, logger=None):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.display_timezone = display_timezone
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    def notify(self, change):
        """
        Send one change notification.

        Args:
            change (ChangeOutcome): The detected change

        Returns:
            bool: True if Slack accepted the message

        Raises:
            NotificationError: On HTTP error status or network failure
        """
        self.logger.debug(f"Preparing Slack notification for {change.url}")
        message = self.format_message(change)
        sent = self.send_webhook(message)

        if sent:
            self.logger.info(f"Slack notification sent for {change.url}")
        else:
            self.logger.warning(f"Slack notification failed for {change.url}")
        return sent

    def format_message(self, change):
        checked = format_display_time(change.detected_at, self.display_timezone)
        text = "\n".join(
            [
                "\U0001F514 Change Detected!",
                f"• URL: {change.url}",
                f"• Selector: {change.selector}",
                f"• Was: {change.old_value}",
                f"• Now: {change.new_value}",
                f"• Checked: {checked}",
            ]
        )
        return {"text": text, "username": SLACK_USERNAME, "icon_emoji": SLACK_ICON}

    def send_webhook(self, message):
        try:
            response = self.session.post(self.webhook_url, json=message, timeout=self.timeout)
        except requests.Timeout as e:
            raise NotificationError(
                f"Slack webhook timed out after {self.timeout}s", reason="timeout"
            ) from e
        except requests.RequestException as e:
            raise NotificationError(f"Network error sending Slack webhook: {e}", reason="network") from e

        if response.status_code >= 400:
            raise NotificationError(
                f"Slack webhook failed with status {response.status_code}: {response.text}",
                reason="http_status",
                status_code=response.status_code,
            )

        # Slack answers 200 "ok" on success
        return response.status_code == 200
