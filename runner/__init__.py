"""
Runner module for place-rank-tracker.

This module contains:
- The batch/single-keyword command line runner
- Logging setup
"""

from runner.logging_setup import ROOT_LOGGER, setup_logging, get_logger

__version__ = "0.1.0"

__all__ = [
    "ROOT_LOGGER",
    "setup_logging",
    "get_logger",
]
