"""
Utility Module for the Card Invoice Extraction System.

This module provides common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - Text, date and amount normalization
    - Retry with exponential backoff
    - File helpers
"""

from .logger import setup_logger, setup_logger_from_config, get_logger
from .helpers import ensure_directory, get_file_extension, generate_timestamp, safe_filename
from .retry import RetryConfig, retry_with_backoff

__all__ = [
    'setup_logger',
    'setup_logger_from_config',
    'get_logger',
    'ensure_directory',
    'get_file_extension',
    'generate_timestamp',
    'safe_filename',
    'RetryConfig',
    'retry_with_backoff'
]
