"""Benchmark and producer client configuration.

Everything a run needs is collected into a single frozen ``BenchmarkConfig``
that is built once at startup and passed to each component explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, get_type_hints

from prodbench.errors import ConfigurationError
from prodbench.models.message import ANY_PARTITION, DecoderScheme


class DispatchMode(str, Enum):
    ASYNC = "async"
    SYNC = "sync"


class SecurityProtocol(str, Enum):
    PLAINTEXT = "PLAINTEXT"
    SSL = "SSL"


# Partitioner names accepted on the command line, mapped to librdkafka's.
PARTITIONERS: dict[str, str | None] = {
    "hash": "fnv1a_random",
    "manual": None,  # explicit partition on every message
    "random": "random",
    "roundrobin": "random",
}

COMPRESSION_TYPES = ("none", "gzip", "snappy", "lz4", "zstd")

REQUIRED_ACKS = (-1, 0, 1)


def _parse_enum(enum_cls, value, option: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ConfigurationError(f"Unknown {option}: {value}") from None


@dataclass(frozen=True)
class ClusterConfig:
    """Connection settings for the Kafka cluster.

    TLS material is only passed through to the client; it is never read here.
    """

    bootstrap_servers: str = ""
    security_protocol: SecurityProtocol = SecurityProtocol.PLAINTEXT
    tls_ca_certs: str = ""
    tls_client_cert: str = ""
    tls_client_key: str = ""

    def __post_init__(self):
        protocol = self.security_protocol
        if not isinstance(protocol, SecurityProtocol):
            try:
                protocol = SecurityProtocol(str(protocol).upper())
            except ValueError:
                raise ConfigurationError(
                    f"--security-protocol {protocol!r} is not supported"
                ) from None
            object.__setattr__(self, "security_protocol", protocol)
        if self.tls_client_cert and not self.tls_client_key:
            raise ConfigurationError(
                "--tls-client-key is required if --tls-client-cert is provided"
            )

    @property
    def brokers(self) -> list[str]:
        return [b.strip() for b in self.bootstrap_servers.split(",") if b.strip()]

    def to_client_config(self) -> dict[str, Any]:
        config: dict[str, Any] = {
            "bootstrap.servers": ",".join(self.brokers),
            "security.protocol": self.security_protocol.value.lower(),
        }
        if self.security_protocol == SecurityProtocol.SSL:
            if self.tls_ca_certs:
                config["ssl.ca.location"] = self.tls_ca_certs
            if self.tls_client_cert:
                config["ssl.certificate.location"] = self.tls_client_cert
                config["ssl.key.location"] = self.tls_client_key
        return config


@dataclass(frozen=True)
class ProducerConfig:
    """Producer client tunables."""

    acks: int = 1
    timeout_ms: int = 10_000
    partitioner: str = "roundrobin"
    compression_type: str = "none"
    linger_ms: int = 0  # 0 keeps the client default
    batch_size: int = 0
    batch_num_messages: int = 0
    max_message_bytes: int = 1_000_000
    max_open_requests: int = 5
    queue_buffering_max_messages: int = 100_000
    client_id: str = "prodbench"

    def __post_init__(self):
        if self.acks not in REQUIRED_ACKS:
            raise ConfigurationError(
                f"--required-acks must be one of -1, 0, 1 (got {self.acks})"
            )
        if self.partitioner not in PARTITIONERS:
            raise ConfigurationError(f"Unknown --partitioner: {self.partitioner}")
        if self.compression_type not in COMPRESSION_TYPES:
            raise ConfigurationError(f"Unknown --compression: {self.compression_type}")
        if self.timeout_ms < 1:
            raise ConfigurationError("--timeout must be positive")
        if self.max_open_requests < 1:
            raise ConfigurationError("--max-open-requests must be at least 1")
        if self.queue_buffering_max_messages < 1:
            raise ConfigurationError("--channel-buffer-size must be at least 1")
        for name in ("linger_ms", "batch_size", "batch_num_messages"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative")

    def to_client_config(self) -> dict[str, Any]:
        config: dict[str, Any] = {
            "client.id": self.client_id,
            "acks": self.acks,
            "request.timeout.ms": self.timeout_ms,
            "compression.type": self.compression_type,
            "message.max.bytes": self.max_message_bytes,
            "max.in.flight.requests.per.connection": self.max_open_requests,
            "queue.buffering.max.messages": self.queue_buffering_max_messages,
        }
        partitioner = PARTITIONERS[self.partitioner]
        if partitioner is not None:
            config["partitioner"] = partitioner
        if self.linger_ms:
            config["linger.ms"] = self.linger_ms
        if self.batch_size:
            config["batch.size"] = self.batch_size
        if self.batch_num_messages:
            config["batch.num.messages"] = self.batch_num_messages
        return config


@dataclass(frozen=True)
class BenchmarkConfig:
    """All settings of a single benchmark run."""

    topic: str = ""
    message_load: int = 0
    message_size: int = 0
    message_file: str = ""
    message_decoder: DecoderScheme = DecoderScheme.RAW
    mode: DispatchMode = DispatchMode.ASYNC
    workers: int = 1
    throughput: int = 0
    partition: int = ANY_PARTITION
    reporting_interval_seconds: float = 5.0
    verbose: bool = False
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    producer: ProducerConfig = field(default_factory=ProducerConfig)

    def __post_init__(self):
        object.__setattr__(
            self,
            "message_decoder",
            _parse_enum(DecoderScheme, self.message_decoder, "--message-decoder"),
        )
        object.__setattr__(self, "mode", _parse_enum(DispatchMode, self.mode, "mode"))

        if not self.cluster.brokers:
            raise ConfigurationError("--brokers is required")
        if not self.topic:
            raise ConfigurationError("--topic is required")
        if self.message_load <= 0:
            raise ConfigurationError("--message-load must be greater than 0")
        if self.message_size <= 0 and not self.message_file:
            raise ConfigurationError("one of --message-size or --message-file must be set")
        if self.workers < 1 or self.workers > self.message_load:
            raise ConfigurationError(
                "--routines must be greater than 0 and less than or equal to --message-load"
            )
        if self.throughput < 0:
            raise ConfigurationError("--throughput must not be negative")
        if self.partition < ANY_PARTITION:
            raise ConfigurationError("--partition must be -1 or a partition index")
        if self.partition < 0 and self.producer.partitioner == "manual":
            raise ConfigurationError("--partition must not be -1 for --partitioner=manual")
        if self.reporting_interval_seconds <= 0:
            raise ConfigurationError("reporting interval must be positive")

    @property
    def uses_message_file(self) -> bool:
        return bool(self.message_file)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BenchmarkConfig:
        """Build a config from a nested mapping such as a parsed YAML file."""
        data = dict(data)
        cluster = ClusterConfig(**_known_keys(ClusterConfig, data.pop("cluster", None) or {}))
        producer = ProducerConfig(**_known_keys(ProducerConfig, data.pop("producer", None) or {}))
        return cls(cluster=cluster, producer=producer, **_known_keys(cls, data))


_EXPECTED = {bool: "true or false", int: "an integer", float: "a number", str: "a string"}


def _has_type(value: Any, expected: type) -> bool:
    if expected is bool:
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if expected is float:
        return isinstance(value, (int, float))
    return isinstance(value, expected)


def _known_keys(cls, data: Any) -> dict[str, Any]:
    """Check a settings mapping against the fields of ``cls``.

    Settings from YAML arrive untyped, so scalar fields are type-checked here
    before ``__post_init__`` compares them. Enum fields are parsed there.
    """
    if not isinstance(data, dict):
        raise ConfigurationError(f"{cls.__name__} settings must be a mapping, got {data!r}")
    names = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - names)
    if unknown:
        raise ConfigurationError(f"Unknown {cls.__name__} keys: {', '.join(unknown)}")

    hints = get_type_hints(cls)
    for name, value in data.items():
        expected = hints.get(name)
        if expected in _EXPECTED and not _has_type(value, expected):
            raise ConfigurationError(
                f"{name} must be {_EXPECTED[expected]}, got {value!r}"
            )
    return dict(data)
