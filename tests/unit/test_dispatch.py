import asyncio

import pytest

from prodbench.dispatch.asynchronous import AsyncDispatcher
from prodbench.dispatch.base import run_until_first_failure
from prodbench.dispatch.synchronous import SyncDispatcher
from prodbench.errors import DeliveryError
from prodbench.generators.message import FileMessageGenerator, RandomMessageGenerator
from tests.conftest import FakeProducerClient


class TestRunUntilFirstFailure:
    async def test_returns_results_in_order(self):
        async def value(v, delay):
            await asyncio.sleep(delay)
            return v

        assert await run_until_first_failure(value(1, 0.02), value(2, 0)) == [1, 2]

    async def test_failure_cancels_the_rest(self):
        cancelled = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        async def failing():
            raise DeliveryError("boom")

        with pytest.raises(DeliveryError, match="boom"):
            await run_until_first_failure(slow(), failing())
        assert cancelled.is_set()


class TestAsyncDispatcher:
    async def test_sends_the_whole_load(self, make_config, fake_client):
        config = make_config(message_load=100, message_size=16)
        dispatcher = AsyncDispatcher(config, fake_client, RandomMessageGenerator(16))

        result = await dispatcher.dispatch()

        assert result.messages_sent == 100
        assert result.deliveries_observed == 100
        assert len(fake_client.sent) == 100
        assert all(len(m.payload) == 16 for m in fake_client.sent)
        assert fake_client.deliveries_taken == 100

    async def test_waits_for_every_delivery_report(self, make_config):
        client = FakeProducerClient(hold_deliveries=True)
        config = make_config(message_load=20)
        dispatch = asyncio.create_task(
            AsyncDispatcher(config, client, RandomMessageGenerator(16)).dispatch()
        )

        await asyncio.sleep(0.05)
        assert len(client.sent) == 20
        assert not dispatch.done()

        client.release()
        result = await asyncio.wait_for(dispatch, timeout=1)
        assert result.deliveries_observed == 20
        assert client.deliveries_taken == 20

    async def test_failed_delivery_aborts(self, make_config):
        client = FakeProducerClient(fail_on=3)
        config = make_config(message_load=50)

        with pytest.raises(DeliveryError, match="broker unavailable"):
            await AsyncDispatcher(config, client, RandomMessageGenerator(16)).dispatch()

    async def test_pacing_bounds_the_rate(self, make_config, fake_client):
        loop = asyncio.get_running_loop()
        config = make_config(message_load=12, throughput=4)
        dispatcher = AsyncDispatcher(
            config, fake_client, RandomMessageGenerator(8), pacer_interval=0.05
        )

        started = loop.time()
        await dispatcher.dispatch()

        # 12 messages at 4 per window need at least two full waits.
        assert loop.time() - started >= 2 * 0.05 * 0.9
        assert len(fake_client.sent) == 12

    async def test_keeps_file_order(self, make_config, fake_client, record_file):
        path = record_file(b"zero\none\n")
        config = make_config(message_load=5, message_file=str(path))
        await AsyncDispatcher(config, fake_client, FileMessageGenerator(path)).dispatch()

        assert [m.payload for m in fake_client.sent] == [b"zero", b"one", b"zero", b"one", b"zero"]


class TestSyncDispatcher:
    async def test_splits_load_across_workers(self, make_config, fake_client):
        config = make_config(mode="sync", message_load=10, workers=3)
        result = await SyncDispatcher(config, fake_client, RandomMessageGenerator(16)).dispatch()

        assert result.sent_per_worker == [3, 3, 4]
        assert result.messages_sent == 10
        assert len(fake_client.sent) == 10

    async def test_paced_worker_repeats_each_message_throughput_times(
        self, make_config, fake_client
    ):
        config = make_config(mode="sync", message_load=2, workers=1, throughput=3)
        dispatcher = SyncDispatcher(
            config, fake_client, RandomMessageGenerator(16), pacer_interval=0.01
        )

        result = await dispatcher.dispatch()

        assert result.messages_sent == 6
        first, second = fake_client.sent[:3], fake_client.sent[3:]
        assert all(m is first[0] for m in first)
        assert all(m is second[0] for m in second)
        assert first[0] is not second[0]

    async def test_pacing_is_per_worker(self, make_config, fake_client):
        loop = asyncio.get_running_loop()
        config = make_config(mode="sync", message_load=4, workers=2, throughput=1)
        dispatcher = SyncDispatcher(
            config, fake_client, RandomMessageGenerator(16), pacer_interval=0.05
        )

        started = loop.time()
        result = await dispatcher.dispatch()

        assert result.sent_per_worker == [2, 2]
        # Two ticks per worker, run side by side rather than one after another.
        assert loop.time() - started < 4 * 0.05

    async def test_failed_send_aborts_all_workers(self, make_config):
        client = FakeProducerClient(fail_on=5)
        config = make_config(mode="sync", message_load=40, workers=4)

        with pytest.raises(DeliveryError, match="Failed to send message"):
            await SyncDispatcher(config, client, RandomMessageGenerator(16)).dispatch()
        assert len(client.sent) < 40
