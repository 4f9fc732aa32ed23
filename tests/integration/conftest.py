"""Fixtures for integration tests using testcontainers."""

import pytest

KAFKA_IMAGE = "confluentinc/cp-kafka:7.5.0"


@pytest.fixture(scope="module")
def kafka_container():
    """Start a Kafka broker, or skip the module when Docker is unavailable."""
    kafka_module = pytest.importorskip("testcontainers.kafka")
    container = kafka_module.KafkaContainer(KAFKA_IMAGE)
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Kafka container could not be started: {e}")
    try:
        yield container
    finally:
        container.stop()


@pytest.fixture(scope="module")
def bootstrap_servers(kafka_container):
    return kafka_container.get_bootstrap_server()
