"""
Progress notifications.

Side channel only: the pipeline's results never depend on whether anyone
is listening.
"""

import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class Progress:
    """Forwards stage messages to an optional observer."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback

    def __call__(self, message: str) -> None:
        logger.info(f"[PROGRESS] {message}")
        if not self.callback:
            return
        try:
            self.callback(message)
        except Exception as e:
            logger.warning(f"[PROGRESS] Observer failed: {e}")


class ProgressRecorder:
    """Observer that keeps every message. Handy for CLI summaries and tests."""

    def __init__(self):
        self.messages: List[str] = []

    def __call__(self, message: str) -> None:
        self.messages.append(message)

    def contains(self, fragment: str) -> bool:
        return any(fragment in m for m in self.messages)
