"""
Dedupe ledger for review automation.

Records which reviews have been claimed for processing so that each review
is handled at most once per process, even when the polling scheduler and a
webhook deliver the same review at nearly the same time.

A review id is recorded at the moment processing begins, not after success,
so a duplicate arriving while the first is still in flight is rejected.
Entries are never removed.
"""

import threading
from abc import ABC, abstractmethod

import structlog

logger = structlog.get_logger(__name__)


class DedupeLedger(ABC):
    """Interface for review claim tracking.

    Implementations must make try_claim() atomic: of any number of
    concurrent callers for the same id, exactly one receives True.
    """

    @abstractmethod
    def try_claim(self, review_id: str) -> bool:
        """Record review_id and return True iff it was not already recorded."""

    @abstractmethod
    def contains(self, review_id: str) -> bool:
        """Check whether review_id has been claimed."""

    @abstractmethod
    def size(self) -> int:
        """Number of claimed reviews (diagnostic only)."""


class InMemoryDedupeLedger(DedupeLedger):
    """Process-local ledger backed by a set.

    The lock makes test-and-insert atomic for callers on other threads as
    well as asyncio tasks on the event loop.
    """

    def __init__(self) -> None:
        self._claimed: set[str] = set()
        self._lock = threading.Lock()

    def try_claim(self, review_id: str) -> bool:
        with self._lock:
            if review_id in self._claimed:
                logger.debug("review_already_claimed", review_id=review_id)
                return False
            self._claimed.add(review_id)
        return True

    def contains(self, review_id: str) -> bool:
        with self._lock:
            return review_id in self._claimed

    def size(self) -> int:
        with self._lock:
            return len(self._claimed)
