"""Execution context consumed by tracking and garbage collection."""

from __future__ import annotations

import logging
import threading
from typing import Protocol


class CancellationToken:
    """Cooperative cancellation flag polled between units of work."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class ExecutionContext(Protocol):
    """Protocol for the user-visible output sink of a maintenance pass."""

    cancellation: CancellationToken

    def info(self, message: str) -> None:
        ...

    def warning(self, message: str) -> None:
        ...

    def error(self, message: str, exc: BaseException | None = None) -> None:
        ...


class LoggingExecutionContext:
    """Execution context that forwards output to a standard logger."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        cancellation: CancellationToken | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger("buildspace.execution")
        self.cancellation = cancellation or CancellationToken()

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warning(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.error("%s: %s", message, exc, exc_info=exc)
        else:
            self._logger.error(message)


__all__ = ["CancellationToken", "ExecutionContext", "LoggingExecutionContext"]
