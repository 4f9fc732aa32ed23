import uuid

import pytest

from prodbench.kafka.producer import KafkaProducerClient
from prodbench.models.config import BenchmarkConfig, ClusterConfig, ProducerConfig
from prodbench.models.message import OutboundMessage
from prodbench.runner import BenchmarkRunner

pytestmark = pytest.mark.integration


def make_config(bootstrap_servers: str, **overrides) -> BenchmarkConfig:
    settings = {
        "topic": f"prodbench-{uuid.uuid4().hex[:8]}",
        "message_load": 200,
        "message_size": 64,
        "cluster": ClusterConfig(bootstrap_servers=bootstrap_servers),
        "producer": ProducerConfig(acks=-1),
    }
    settings.update(overrides)
    return BenchmarkConfig(**settings)


def make_client(config: BenchmarkConfig) -> KafkaProducerClient:
    return KafkaProducerClient(config.cluster, config.producer)


async def test_async_benchmark(bootstrap_servers, report_console):
    config = make_config(bootstrap_servers)
    client = make_client(config)

    result = await BenchmarkRunner(config, client, console=report_console).run()

    assert result.deliveries_observed == 200
    lines = report_console.file.getvalue().splitlines()
    assert lines[-1].startswith("200 records sent")
    assert lines[-1].endswith("0 total req. in flight")


async def test_sync_benchmark_with_workers(bootstrap_servers, report_console):
    config = make_config(bootstrap_servers, mode="sync", message_load=30, workers=3)
    client = make_client(config)

    result = await BenchmarkRunner(config, client, console=report_console).run()

    assert result.sent_per_worker == [10, 10, 10]
    assert report_console.file.getvalue().splitlines()[-1].startswith("30 records sent")


async def test_send_sync_returns_offsets(bootstrap_servers):
    config = make_config(bootstrap_servers)
    client = make_client(config)
    message = OutboundMessage(topic=config.topic, partition=0, payload=b"hello")

    first = await client.send_sync(message)
    second = await client.send_sync(message)
    await client.close()

    assert first[0] == second[0] == 0
    assert second[1] == first[1] + 1
