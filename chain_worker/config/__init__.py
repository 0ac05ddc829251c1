"""Configuration module"""

from .models import QUICK_RETRY_ERROR_CODES, RetryPolicy, Settings

__all__ = ["QUICK_RETRY_ERROR_CODES", "RetryPolicy", "Settings"]
