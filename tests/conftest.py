"""
Pytest configuration and fixtures for presence gateway tests.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from shared.utils.exceptions import ChannelClosedError
from presence_gateway.connection_manager import ConnectionManager


class FakeClock:
    """Manually driven clock, injected as ``clock=`` into the manager."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def set(self, now: float) -> None:
        self.now = now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeChannel:
    """
    Synchronous channel double.

    Records everything sent to the peer and lets tests push inbound
    messages straight into the registered listeners.
    """

    def __init__(self, name: str = "fake", fail_on_send: bool = False, fail_on_start: bool = False):
        self.name = name
        self.fail_on_send = fail_on_send
        self.fail_on_start = fail_on_start
        self.sent: list = []
        self.listeners: list = []
        self.started = False
        self.closed = False
        self.close_calls = 0

    def send(self, message):
        if self.fail_on_send:
            raise ConnectionError("send failed")
        if self.closed:
            raise ChannelClosedError(channel=self.name)
        self.sent.append(message)

    def add_listener(self, listener):
        self.listeners.append(listener)

        def unsubscribe():
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe

    def start(self):
        if self.fail_on_start:
            raise RuntimeError("no running event loop")
        self.started = True

    def close(self):
        self.close_calls += 1
        self.closed = True

    @property
    def listener_count(self) -> int:
        return len(self.listeners)

    def simulate_message(self, data) -> None:
        for listener in list(self.listeners):
            listener(data)

    def sent_of_type(self, message_type: str) -> list:
        return [m for m in self.sent if isinstance(m, dict) and m.get("type") == message_type]

    def last_sent(self):
        return self.sent[-1] if self.sent else None


@pytest.fixture
def clock():
    """Clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def make_channel():
    """Factory for named FakeChannels."""
    counter = iter(range(1, 10_000))

    def factory(fail_on_send: bool = False, fail_on_start: bool = False) -> FakeChannel:
        return FakeChannel(
            name=f"fake-{next(counter)}",
            fail_on_send=fail_on_send,
            fail_on_start=fail_on_start,
        )

    return factory


@pytest.fixture
def callbacks():
    """Host callbacks as mocks."""
    return SimpleNamespace(
        on_active_count_change=MagicMock(),
        on_message=MagicMock(),
        on_log=MagicMock(),
    )


@pytest.fixture
def manager(clock, callbacks):
    """
    Manager with default timing (10s interval, 5s timeout, no auto-eviction).

    Sync tests drive sweeps by hand; the heartbeat timer never starts
    without a running event loop.
    """
    mgr = ConnectionManager(
        ping_interval=10.0,
        ping_timeout=5.0,
        clock=clock,
        on_active_count_change=callbacks.on_active_count_change,
        on_message=callbacks.on_message,
        on_log=callbacks.on_log,
    )
    yield mgr
    mgr.destroy()


def logged_messages(on_log: MagicMock) -> list[str]:
    """Messages of every LogEntry passed to an on_log mock."""
    return [c.args[0].message for c in on_log.call_args_list]
