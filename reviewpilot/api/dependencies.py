"""FastAPI dependency injection providers.

This module provides dependency functions for injecting services into route handlers.
"""

from typing import Optional

from reviewpilot.automation.service import AutomationService

# Global instance for singleton pattern
_automation_service: Optional[AutomationService] = None


def get_automation_service() -> AutomationService:
    """
    Get AutomationService instance.

    Returns the global service instance that is created on startup.

    Returns:
        AutomationService instance.

    Raises:
        RuntimeError: If the service has not been initialized.
    """
    if _automation_service is None:
        raise RuntimeError(
            "Automation service not initialized. Ensure the application startup event has run."
        )

    return _automation_service


def set_automation_service(service: AutomationService) -> None:
    """
    Set the global automation service instance.

    Called during application startup, or by tests to inject a service.

    Args:
        service: Configured AutomationService instance.
    """
    global _automation_service
    _automation_service = service


def reset_dependencies() -> None:
    """
    Reset all global dependency instances.

    Useful for testing or application shutdown.
    """
    global _automation_service
    _automation_service = None
