"""
Review automation core.

- ledger: at-most-once claim tracking
- coordinator: per-review state machine (claim, delay, draft, post, notify)
- scheduler: APScheduler polling loop that feeds the coordinator
- service: host facade (start/stop, settings, status, webhook entry point)
"""

from reviewpilot.automation.coordinator import AutomationCoordinator, ResponseTiming
from reviewpilot.automation.ledger import DedupeLedger, InMemoryDedupeLedger
from reviewpilot.automation.scheduler import PollingScheduler
from reviewpilot.automation.service import AutomationService

__all__ = [
    "AutomationCoordinator",
    "AutomationService",
    "DedupeLedger",
    "InMemoryDedupeLedger",
    "PollingScheduler",
    "ResponseTiming",
]
