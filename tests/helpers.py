"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
from typing import Any


class FakeContinuationService:
    """Continuation service stub recording every call.

    Example:
        service = FakeContinuationService(response=" turning orange.")
        machine = GenerationMachine(service)

    With ``hold=True`` the call blocks until :meth:`release` is invoked, which
    lets tests observe the machine while it is ``generating``.
    """

    def __init__(
        self,
        response: Any = " and then some.",
        error: BaseException | None = None,
        *,
        hold: bool = False,
    ) -> None:
        self.response = response
        self.error = error
        self.hold = hold
        self.calls: list[str] = []
        self._release = asyncio.Event()

    async def generate(self, current_text: str) -> Any:
        self.calls.append(current_text)
        if self.hold:
            await self._release.wait()
        if self.error is not None:
            raise self.error
        return self.response

    def release(self) -> None:
        self._release.set()


class RecordingSurface:
    """Document surface stub recording appends and focus requests."""

    def __init__(self, text: str = "") -> None:
        self.text = text
        self.appended: list[str] = []
        self.focus_calls = 0

    def get_text(self) -> str:
        return self.text.strip()

    def append_text(self, text: str) -> None:
        self.appended.append(text)
        self.text += text

    def focus(self) -> None:
        self.focus_calls += 1
