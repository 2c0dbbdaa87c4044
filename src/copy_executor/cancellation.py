"""Cooperative cancellation for order batches"""

from typing import Optional


class CancellationToken:
    """Checked by the orchestrator between order submissions, never during one"""

    def __init__(self):
        self._cancelled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None):
        self._cancelled = True
        self.reason = reason

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled
