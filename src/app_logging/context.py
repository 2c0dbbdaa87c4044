"""
Copy operation context management using ContextVar for async-safe context propagation.
"""

from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Optional
import uuid


@dataclass(frozen=True)
class CopyContext:
    """Identifies the copy operation a log line belongs to"""
    account_id: str
    source_wallet: Optional[str] = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


# Context variable to store the current copy operation across async boundaries
current_copy: ContextVar[Optional[CopyContext]] = ContextVar('current_copy', default=None)


def set_current_copy(context: CopyContext) -> None:
    """Set the current copy operation in the context."""
    current_copy.set(context)


def get_current_copy() -> Optional[CopyContext]:
    """Get the current copy operation from the context."""
    return current_copy.get()


def clear_current_copy() -> None:
    """Clear the current copy operation from the context."""
    current_copy.set(None)
