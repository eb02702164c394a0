"""
Configuration Module

Target configuration files, data models and environment settings.
"""
