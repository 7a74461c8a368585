"""
Progress sinks.

The pipeline reports one increment per accounted batch (sent or skipped)
and pushes retry messages as log lines. How those are shown is up to the
sink: a tqdm bar for interactive use, plain logging otherwise.
"""

from collections import deque
from typing import Optional, Protocol

from tqdm import tqdm
import logging

logger = logging.getLogger(__name__)


class ProgressSink(Protocol):
    def advance(self, n: int = 1) -> None: ...

    def log(self, message: str) -> None: ...

    def close(self) -> None: ...


class LoggingProgress:
    """
    Headless sink: counts increments and forwards messages to logging.

    Only the last ``max_messages`` messages are kept in ``messages``.
    """

    def __init__(self, description: str = "batches", max_messages: int = 100):
        self.description = description
        self.count = 0
        self.messages = deque(maxlen=max_messages)

    def advance(self, n: int = 1) -> None:
        self.count += n
        logger.debug(f"{self.description}: {self.count}")

    def log(self, message: str) -> None:
        self.messages.append(message)
        logger.info(message)

    def close(self) -> None:
        logger.info(f"{self.description}: {self.count} done")


class TqdmProgress:
    """Terminal progress bar. ``total`` is an estimate and may be exceeded."""

    def __init__(self, total: Optional[int] = None, description: str = "batches"):
        self.count = 0
        self._bar = tqdm(total=total, desc=description, unit="batch", leave=True)

    def advance(self, n: int = 1) -> None:
        self.count += n
        self._bar.update(n)

    def log(self, message: str) -> None:
        self._bar.write(message)

    def close(self) -> None:
        self._bar.close()
