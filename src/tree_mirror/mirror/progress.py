"""Fire-and-forget progress notifications.

A sync run reports progress through a plain callable.  Delivery must never
influence the run: exceptions raised by the callback are logged and
swallowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .models import ProgressEvent

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class ProgressEmitter:
    """Wrap an optional progress callback.

    Args:
        callback: Receives each ``ProgressEvent``; ``None`` disables
            delivery (events are still logged at DEBUG).
    """

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self._callback = callback

    def emit(
        self,
        stage: str,
        message: str,
        current: int | None = None,
        total: int | None = None,
    ) -> None:
        """Build and deliver one event."""
        event = ProgressEvent(
            stage=stage, message=message, current=current, total=total
        )
        if current is not None and total is not None:
            logger.debug("[%s] (%d/%d) %s", stage, current, total, message)
        else:
            logger.debug("[%s] %s", stage, message)

        if self._callback is None:
            return
        try:
            self._callback(event)
        except Exception as exc:
            logger.warning("Progress callback failed: %s", exc)
