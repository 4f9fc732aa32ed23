"""Load generation and benchmarking harness for Kafka producers."""

__version__ = "0.1.0"
