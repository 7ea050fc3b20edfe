"""
Tests for the in-process channel pair.

Tests verify:
- Delivery is asynchronous and ordered
- Messages are buffered until start()
- Messages are copied, never shared
- Closed ends reject sends, closed remotes drop them
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from shared.utils.exceptions import ChannelClosedError
from presence_gateway.components.connection.channel import Channel, create_channel_pair


async def drain():
    for _ in range(3):
        await asyncio.sleep(0)


class TestMemoryChannel:
    """Tests for MemoryChannel."""

    def test_pair_satisfies_channel_protocol(self):
        left, right = create_channel_pair("pair")
        assert isinstance(left, Channel)
        assert isinstance(right, Channel)

    @pytest.mark.asyncio
    async def test_delivery_is_not_reentrant(self):
        left, right = create_channel_pair()
        listener = MagicMock()
        right.add_listener(listener)
        right.start()

        left.send({"n": 1})
        listener.assert_not_called()

        await drain()
        listener.assert_called_once_with({"n": 1})

    @pytest.mark.asyncio
    async def test_messages_buffered_until_start(self):
        left, right = create_channel_pair()
        received = []
        right.add_listener(received.append)

        left.send({"n": 1})
        left.send({"n": 2})
        await drain()
        assert received == []

        right.start()
        await drain()
        assert received == [{"n": 1}, {"n": 2}]

    @pytest.mark.asyncio
    async def test_messages_are_copied(self):
        left, right = create_channel_pair()
        received = []
        right.add_listener(received.append)
        right.start()
        message = {"items": [1]}

        left.send(message)
        message["items"].append(2)
        await drain()

        assert received == [{"items": [1]}]

    @pytest.mark.asyncio
    async def test_send_on_closed_end_raises(self):
        left, _ = create_channel_pair()
        left.close()

        with pytest.raises(ChannelClosedError):
            left.send({"n": 1})

    @pytest.mark.asyncio
    async def test_send_to_closed_remote_is_dropped(self):
        left, right = create_channel_pair()
        listener = MagicMock()
        right.add_listener(listener)
        right.start()
        right.close()

        left.send({"n": 1})
        await drain()

        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self):
        left, right = create_channel_pair()
        listener = MagicMock()
        unsubscribe = right.add_listener(listener)
        right.start()
        unsubscribe()
        unsubscribe()

        left.send({"n": 1})
        await drain()

        listener.assert_not_called()
        assert right.listener_count == 0

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self):
        left, right = create_channel_pair()
        right.add_listener(MagicMock(side_effect=RuntimeError("boom")))
        other = MagicMock()
        right.add_listener(other)
        right.start()

        left.send({"n": 1})
        await drain()

        other.assert_called_once_with({"n": 1})

    def test_close_is_idempotent(self):
        left, _ = create_channel_pair()
        left.close()
        left.close()
        assert left.closed
