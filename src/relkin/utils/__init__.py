"""Utility modules for relkin."""

from relkin.utils.logging import setup_logging, write_run_log

__all__ = ["setup_logging", "write_run_log"]
