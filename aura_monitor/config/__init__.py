"""
Configuration management for the Aura slot monitor.

Loads defaults from environment variables and an optional .env file and
validates the final settings before any RPC use.
"""

from aura_monitor.config.settings import MonitorSettings, get_settings  # noqa: F401

__all__ = ["MonitorSettings", "get_settings"]
