"""
Utility modules for the page change monitor.
"""

from .time_utils import utc_now, format_display_time

__all__ = ['utc_now', 'format_display_time']
