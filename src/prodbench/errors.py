"""Exception hierarchy for benchmark runs.

Configuration problems are detected before any message is generated and map
to the "bad invocation" exit status. Generation and delivery failures happen
while work is in progress and void the run.
"""

from __future__ import annotations


class BenchmarkError(Exception):
    """Base class for all benchmark failures."""


class ConfigurationError(BenchmarkError, ValueError):
    """Invalid or missing parameters, unreadable message file, empty record pool."""


class GenerationError(BenchmarkError):
    """The message generator could not produce a payload."""


class DecodeError(GenerationError):
    """A line of the message file could not be decoded."""


class DeliveryError(BenchmarkError):
    """The producer client failed to deliver a message."""
