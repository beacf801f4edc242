"""Shared utilities."""

from .logger import JsonLineFormatter, setup_logger

__all__ = ["JsonLineFormatter", "setup_logger"]
