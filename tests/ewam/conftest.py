"""Shared fixtures for simulator tests.

Sockets are replaced by FakeTransport where a test only needs to observe
writes; tests marked ``integration`` open real localhost sockets.
"""

from __future__ import annotations

import asyncio
import os
import random
import socket

import pytest


class FakeTransport:
    """Records writes; mimics the asyncio.Transport surface the managers use."""

    def __init__(self, peername: tuple[str, int] = ("127.0.0.1", 50000)) -> None:
        self.written: list[bytes] = []
        self.closed = False
        self.aborted = False
        self.fail_writes = False
        self._peername = peername

    def write(self, data: bytes) -> None:
        if self.fail_writes:
            raise OSError("broken pipe")
        self.written.append(data)

    def is_closing(self) -> bool:
        return self.closed or self.aborted

    def close(self) -> None:
        self.closed = True

    def abort(self) -> None:
        self.aborted = True

    def get_extra_info(self, name: str, default=None):
        if name == "peername":
            return self._peername
        return default


class MaxRandom(random.Random):
    """randrange always returns its upper bound - 1, so the 5% retarget roll never fires."""

    def randrange(self, start, stop=None, step=1):
        if stop is None:
            return start - 1
        return stop - 1


class ScriptedRandom(random.Random):
    """randrange returns scripted values in order, then falls back to MaxRandom behaviour."""

    def __init__(self, picks: list[int]) -> None:
        super().__init__(0)
        self.picks = list(picks)

    def randrange(self, start, stop=None, step=1):
        if self.picks:
            return self.picks.pop(0)
        return (start if stop is None else stop) - 1


@pytest.fixture
def loop():
    """Provide a fresh event loop for each test."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()
    asyncio.set_event_loop(None)


@pytest.fixture
def run_until(loop):
    """Run the loop until predicate() is true, failing after timeout seconds."""

    def _run_until(predicate, timeout: float = 2.0) -> None:
        async def wait():
            deadline = loop.time() + timeout
            while not predicate():
                if loop.time() > deadline:
                    raise AssertionError("condition not reached before timeout")
                await asyncio.sleep(0.001)

        loop.run_until_complete(wait())

    return _run_until


@pytest.fixture
def spin(loop):
    """Let the loop run for a fixed time."""

    def _spin(seconds: float) -> None:
        loop.run_until_complete(asyncio.sleep(seconds))

    return _spin


@pytest.fixture
def transport_cls():
    return FakeTransport


@pytest.fixture
def no_retarget_rng() -> random.Random:
    return MaxRandom()


@pytest.fixture
def scripted_rng():
    """Factory: scripted_rng([values...]) -> ScriptedRandom."""
    return ScriptedRandom


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep EWAM_* variables from the host shell out of Settings()."""
    for key in list(os.environ):
        if key.upper().startswith("EWAM_"):
            monkeypatch.delenv(key)
