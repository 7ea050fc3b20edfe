"""
Tests for HeartbeatScheduler.

Tests verify:
- Live entries within the threshold are pinged, silent ones demoted
- Stale entries are never pinged
- Auto-eviction only when a stale client timeout is configured
- The recurring timer runs, restarts and survives failing callbacks
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from presence_gateway.components.connection.entry import ConnectionEntry
from presence_gateway.components.connection.heartbeat import HeartbeatScheduler
from tests.conftest import FakeChannel


def make_entry(peer_id: str = "a", last_seen_at: float = 0.0) -> ConnectionEntry:
    return ConnectionEntry(id=peer_id, channel=FakeChannel(peer_id), last_seen_at=last_seen_at)


class TestClassification:
    """Tests for check_entries()."""

    def test_stale_threshold_is_interval_plus_timeout(self):
        scheduler = HeartbeatScheduler(ping_interval=10.0, ping_timeout=5.0)
        assert scheduler.stale_threshold == 15.0

    def test_live_entry_within_threshold_is_pinged(self):
        scheduler = HeartbeatScheduler(ping_interval=10.0, ping_timeout=5.0)
        entry = make_entry()

        result = scheduler.check_entries([entry], now=15.0)

        assert result.to_ping == [entry]
        assert result.to_stale == []
        assert not result.changed

    def test_live_entry_past_threshold_is_demoted_not_pinged(self):
        scheduler = HeartbeatScheduler(ping_interval=10.0, ping_timeout=5.0)
        entry = make_entry()

        result = scheduler.check_entries([entry], now=15.5)

        assert result.to_stale == [entry]
        assert result.to_ping == []
        assert result.newly_stale_ids == ["a"]
        assert result.changed

    def test_check_entries_does_not_mutate(self):
        scheduler = HeartbeatScheduler(ping_interval=10.0, ping_timeout=5.0)
        entry = make_entry()

        scheduler.check_entries([entry], now=100.0)

        assert entry.is_live
        assert entry.stale_since is None

    def test_stale_entry_is_not_pinged(self):
        scheduler = HeartbeatScheduler(ping_interval=10.0, ping_timeout=5.0)
        entry = make_entry()
        entry.mark_stale(15.5)

        result = scheduler.check_entries([entry], now=20.0)

        assert result.to_ping == []
        assert result.to_stale == []
        assert result.to_evict == []

    def test_stale_entry_evicted_only_past_timeout(self):
        scheduler = HeartbeatScheduler(ping_interval=10.0, ping_timeout=5.0, stale_client_timeout=10.0)
        entry = make_entry()
        entry.mark_stale(15.5)

        assert scheduler.check_entries([entry], now=25.5).to_evict == []

        result = scheduler.check_entries([entry], now=25.6)
        assert result.evicted_ids == ["a"]
        assert result.to_evict[0][1] == pytest.approx(10.1)

    def test_no_eviction_without_timeout(self):
        scheduler = HeartbeatScheduler(ping_interval=10.0, ping_timeout=5.0)
        entry = make_entry()
        entry.mark_stale(0.0)

        assert scheduler.check_entries([entry], now=10_000.0).to_evict == []


class TestTimer:
    """Tests for the recurring sweep task."""

    def test_start_requires_running_loop(self):
        scheduler = HeartbeatScheduler(ping_interval=10.0, ping_timeout=5.0)
        with pytest.raises(RuntimeError):
            scheduler.start(MagicMock())
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_timer_invokes_callback_periodically(self):
        scheduler = HeartbeatScheduler(ping_interval=0.01, ping_timeout=0.0)
        callback = MagicMock()

        scheduler.start(callback)
        assert scheduler.running
        await asyncio.sleep(0.1)
        scheduler.stop()

        assert callback.call_count >= 2
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_restart_replaces_previous_callback(self):
        scheduler = HeartbeatScheduler(ping_interval=0.01, ping_timeout=0.0)
        first, second = MagicMock(), MagicMock()

        scheduler.start(first)
        scheduler.on_interval(second)
        await asyncio.sleep(0.05)
        scheduler.stop()

        first.assert_not_called()
        assert second.call_count >= 1

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_timer_alive(self):
        scheduler = HeartbeatScheduler(ping_interval=0.01, ping_timeout=0.0)
        callback = MagicMock(side_effect=RuntimeError("sweep failed"))

        scheduler.start(callback)
        await asyncio.sleep(0.1)
        assert scheduler.running
        scheduler.stop()

        assert callback.call_count >= 2

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        scheduler = HeartbeatScheduler(ping_interval=0.01, ping_timeout=0.0)
        scheduler.start(MagicMock())

        scheduler.stop()
        scheduler.stop()

        assert not scheduler.running
