"""
Monitor logging: structlog loggers writing JSON (or console) records to stderr.
"""

from aura_monitor.monitor_logging.logger import bind_epoch, get_logger

__all__ = ["bind_epoch", "get_logger"]
