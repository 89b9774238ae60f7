"""Smartling translation management API client."""

from .client import SmartlingAPIError, SmartlingClient, detect_file_type

__all__ = ["SmartlingAPIError", "SmartlingClient", "detect_file_type"]
