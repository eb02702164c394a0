"""
Change Detector

Compares a freshly extracted value with the stored baseline of a target.
"""

from config.models import ChangeOutcome
from utils.time_utils import utc_now


def detect_change(current_value, stored_value):
    """
    Check whether two values differ.

    None and empty string are distinct: both None is unchanged, exactly one
    None is a change. Other values are coerced to str and compared trimmed.

    Args:
        current_value: The newly extracted value
        stored_value: The previously stored value

    Returns:
        bool: True if the values differ
    """
    if current_value is None and stored_value is None:
        return False

    if current_value is None or stored_value is None:
        return True

    return str(current_value).strip() != str(stored_value).strip()


def process_entry(target, extracted_value):
    """
    Build the ChangeOutcome for one target.

    Args:
        target (Target): The monitored target
        extracted_value (str): Text extracted from the page

    Returns:
        ChangeOutcome: Outcome with old/new values and detection time
    """
    return ChangeOutcome(
        target=target,
        has_changed=detect_change(extracted_value, target.baseline_value),
        old_value=target.baseline_value,
        new_value=extracted_value,
        detected_at=utc_now(),
    )
