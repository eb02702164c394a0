"""
Services Module

Slack notifications and the process-level monitor runner.
"""
