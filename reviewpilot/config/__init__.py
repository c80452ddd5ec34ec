"""
Configuration Management.

Centralized configuration using Pydantic Settings.

Configuration sources (in order of precedence):
1. Environment variables
2. .env file
3. Default values

Secrets (Anthropic key, Google OAuth credentials, webhook secret) are loaded
from the environment and never committed to source control.

Example:
    from reviewpilot.config import get_settings

    settings = get_settings()
    interval = settings.poll_interval_seconds
"""

from reviewpilot.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
