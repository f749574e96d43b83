from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from buildspace.context import CancellationToken
from buildspace.tracking import WorkspaceLayout


class RecordingContext:
    """Execution context that keeps every message for assertions."""

    def __init__(self) -> None:
        self.cancellation = CancellationToken()
        self.messages: list[tuple[str, str]] = []
        self.exceptions: list[BaseException] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self.messages.append(("error", message))
        if exc is not None:
            self.exceptions.append(exc)

    def of(self, level: str) -> list[str]:
        return [message for kind, message in self.messages if kind == level]


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def context() -> RecordingContext:
    return RecordingContext()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def layout(tmp_path: Path) -> WorkspaceLayout:
    return WorkspaceLayout(work_root=tmp_path / "_work")
