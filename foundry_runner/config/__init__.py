"""
Configuration Module

Centralized configuration management for the runner.
"""

from foundry_runner.config.settings import RunnerSettings, get_settings

__all__ = [
    "RunnerSettings",
    "get_settings",
]
