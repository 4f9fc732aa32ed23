"""Command line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

from prodbench import __version__
from prodbench.errors import BenchmarkError, ConfigurationError
from prodbench.kafka.producer import KafkaProducerClient
from prodbench.loader import load_config
from prodbench.models.config import BenchmarkConfig
from prodbench.runner import BenchmarkRunner
from prodbench.runtime import shutdown_executor

# sysexits.h
EX_USAGE = 64
EX_UNAVAILABLE = 69

console = Console()
err_console = Console(stderr=True)

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m)?$")
_DURATION_UNITS_MS = {"ms": 1, "s": 1000, "m": 60_000, None: 1000}


def parse_duration_ms(value: str) -> int:
    """Parse ``500ms``, ``10s``, ``1m`` or a bare number of seconds into milliseconds."""
    match = _DURATION_RE.match(value.strip())
    if not match:
        raise argparse.ArgumentTypeError(f"invalid duration: {value!r}")
    amount, unit = match.groups()
    return int(float(amount) * _DURATION_UNITS_MS[unit])


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):
        raise ConfigurationError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="prodbench",
        description="Measure Kafka producer throughput and latency.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML file with benchmark settings; command line flags take precedence.",
    )
    parser.add_argument(
        "--sync", action="store_true", default=None, help="Use a synchronous producer."
    )
    parser.add_argument(
        "--message-load",
        type=int,
        help="REQUIRED: The number of messages to produce to --topic.",
    )
    parser.add_argument(
        "--message-size",
        type=int,
        help="(OR --message-file) The approximate size (in bytes) of each message.",
    )
    parser.add_argument(
        "--message-file",
        help="(OR --message-size) The file holding the payload of messages, one per line.",
    )
    parser.add_argument(
        "--message-decoder",
        help="The decoder for the lines in --message-file (raw, hex, base64). Default: raw.",
    )
    parser.add_argument(
        "--brokers", help="REQUIRED: A comma separated list of broker addresses."
    )
    parser.add_argument(
        "--security-protocol",
        help="The security protocol to talk to Kafka (PLAINTEXT, SSL). Default: PLAINTEXT.",
    )
    parser.add_argument(
        "--tls-ca-certs",
        help="PEM file of root CAs to trust when --security-protocol=SSL "
        "(leave empty to use the host's root CA set).",
    )
    parser.add_argument(
        "--tls-client-cert",
        help="PEM client certificate to send when --security-protocol=SSL.",
    )
    parser.add_argument(
        "--tls-client-key",
        help="PEM client private key (REQUIRED if --tls-client-cert is provided).",
    )
    parser.add_argument("--topic", help="REQUIRED: The topic to run the performance test on.")
    parser.add_argument(
        "--partition", type=int, help="The partition of --topic to produce to. Default: -1."
    )
    parser.add_argument(
        "--throughput",
        type=int,
        help="The maximum number of messages to send per second (0 for no limit).",
    )
    parser.add_argument(
        "--max-open-requests",
        type=int,
        help="Maximum unacknowledged requests per connection. Default: 5.",
    )
    parser.add_argument(
        "--max-message-bytes", type=int, help="The max permitted size of a message."
    )
    parser.add_argument(
        "--required-acks",
        type=int,
        help="Acks needed from the broker (-1: all, 0: none, 1: local). Default: 1.",
    )
    parser.add_argument(
        "--timeout",
        type=parse_duration_ms,
        help="How long the producer waits for --required-acks (e.g. 10s). Default: 10s.",
    )
    parser.add_argument(
        "--partitioner",
        help="The partitioning scheme (hash, manual, random, roundrobin). Default: roundrobin.",
    )
    parser.add_argument(
        "--compression",
        help="The compression method (none, gzip, snappy, lz4, zstd). Default: none.",
    )
    parser.add_argument(
        "--flush-frequency",
        type=parse_duration_ms,
        help="The best-effort frequency of flushes (e.g. 50ms).",
    )
    parser.add_argument(
        "--flush-bytes", type=int, help="The best-effort number of bytes per flush."
    )
    parser.add_argument(
        "--flush-max-messages",
        type=int,
        help="The maximum number of messages sent in a single request.",
    )
    parser.add_argument("--client-id", help="The client ID sent with every request.")
    parser.add_argument(
        "--channel-buffer-size",
        type=int,
        help="The number of messages the client buffers locally.",
    )
    parser.add_argument(
        "--routines",
        type=int,
        help="The number of routines to send the messages from (--sync only). Default: 1.",
    )
    parser.add_argument(
        "--reporting-interval",
        type=float,
        help="Seconds between metrics lines. Default: 5.",
    )
    parser.add_argument(
        "--verbose", action="store_true", default=None, help="Turn on client debug logging."
    )
    return parser


# argparse dest -> (section, BenchmarkConfig/ProducerConfig/ClusterConfig field)
_FLAG_FIELDS: dict[str, tuple[str | None, str]] = {
    "message_load": (None, "message_load"),
    "message_size": (None, "message_size"),
    "message_file": (None, "message_file"),
    "message_decoder": (None, "message_decoder"),
    "topic": (None, "topic"),
    "partition": (None, "partition"),
    "throughput": (None, "throughput"),
    "routines": (None, "workers"),
    "reporting_interval": (None, "reporting_interval_seconds"),
    "verbose": (None, "verbose"),
    "brokers": ("cluster", "bootstrap_servers"),
    "security_protocol": ("cluster", "security_protocol"),
    "tls_ca_certs": ("cluster", "tls_ca_certs"),
    "tls_client_cert": ("cluster", "tls_client_cert"),
    "tls_client_key": ("cluster", "tls_client_key"),
    "required_acks": ("producer", "acks"),
    "timeout": ("producer", "timeout_ms"),
    "partitioner": ("producer", "partitioner"),
    "compression": ("producer", "compression_type"),
    "flush_frequency": ("producer", "linger_ms"),
    "flush_bytes": ("producer", "batch_size"),
    "flush_max_messages": ("producer", "batch_num_messages"),
    "max_message_bytes": ("producer", "max_message_bytes"),
    "max_open_requests": ("producer", "max_open_requests"),
    "channel_buffer_size": ("producer", "queue_buffering_max_messages"),
    "client_id": ("producer", "client_id"),
}


def args_to_settings(args: argparse.Namespace) -> dict[str, Any]:
    """Nested settings for the flags that were given on the command line."""
    settings: dict[str, Any] = {}
    for dest, (section, name) in _FLAG_FIELDS.items():
        value = getattr(args, dest, None)
        if value is None:
            continue
        target = settings.setdefault(section, {}) if section else settings
        target[name] = value
    if args.sync:
        settings["mode"] = "sync"
    return settings


def build_config(argv: list[str] | None = None) -> BenchmarkConfig:
    args = build_parser().parse_args(argv)
    return load_config(args.config, args_to_settings(args))


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


async def _run(config: BenchmarkConfig) -> None:
    client = KafkaProducerClient(config.cluster, config.producer, verbose=config.verbose)
    try:
        await BenchmarkRunner(config, client, console=console).run()
    except BaseException:
        await client.abort()
        raise


def run(argv: list[str] | None = None) -> int:
    """Run a benchmark and return the process exit status."""
    try:
        config = build_config(argv)
    except ConfigurationError as e:
        err_console.print(f"ERROR: {e}\n", markup=False, highlight=False)
        err_console.print("Available command line options:", markup=False)
        err_console.print(build_parser().format_help(), markup=False, highlight=False)
        return EX_USAGE

    configure_logging(config.verbose)
    try:
        asyncio.run(_run(config))
    except ConfigurationError as e:
        err_console.print(f"ERROR: {e}\n", markup=False, highlight=False)
        return EX_USAGE
    except BenchmarkError as e:
        err_console.print(f"ERROR: {e}\n", markup=False, highlight=False)
        return EX_UNAVAILABLE
    finally:
        shutdown_executor()
    return 0


def main() -> None:
    raise SystemExit(run())
