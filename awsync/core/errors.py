"""
Error Collector Module
======================

Thread-safe collection of errors surfaced by background fetch tasks.

Classes
-------
ErrorCollector
    Append-only, lock-guarded error list for one concurrency phase.

Example
-------
>>> collector = ErrorCollector("ec2:fetch")
>>> collector.add(None)          # ignored
>>> collector.add(RuntimeError("boom"))
>>> collector.has_any
True
>>> str(collector)
'boom'
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from awsync.core.exceptions import AggregateSyncError

# Module logger
logger = logging.getLogger(__name__)


class ErrorCollector:
    """
    Collects errors from concurrent tasks.

    ``add`` may be called from any thread without external locking. The
    combined textual form is for display only.

    Parameters
    ----------
    name : str, default="sync"
        Label used in log messages.
    """

    def __init__(self, name: str = "sync") -> None:
        self.name = name
        self._errors: List[BaseException] = []
        self._lock = threading.Lock()

    def add(self, err: Optional[BaseException]) -> None:
        """Record ``err``; ``None`` is ignored."""
        if err is None:
            return
        with self._lock:
            self._errors.append(err)
        logger.debug(f"{self.name}: recorded {err.__class__.__name__}: {err}")

    def extend(self, other: ErrorCollector) -> None:
        """Append every error recorded by ``other``."""
        for err in other.errors:
            self.add(err)

    @property
    def has_any(self) -> bool:
        with self._lock:
            return len(self._errors) > 0

    @property
    def errors(self) -> List[BaseException]:
        """Snapshot of recorded errors in arrival order."""
        with self._lock:
            return list(self._errors)

    def to_exception(self) -> Optional[AggregateSyncError]:
        """
        Build the aggregate error for this collector.

        Returns
        -------
        AggregateSyncError or None
            ``None`` when nothing was recorded.
        """
        errors = self.errors
        if not errors:
            return None
        return AggregateSyncError(errors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)

    def __str__(self) -> str:
        return "; ".join(str(e) for e in self.errors)

    def __repr__(self) -> str:
        return f"ErrorCollector(name='{self.name}', errors={len(self)})"
