"""Message generators: random-filled or cycled from a record file."""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from prodbench.errors import ConfigurationError, GenerationError
from prodbench.generators.decoder import get_decoder
from prodbench.generators.stream import MessageStream, stream_capacity
from prodbench.models.config import BenchmarkConfig
from prodbench.models.message import DecoderScheme, GenerationJob, OutboundMessage

logger = logging.getLogger(__name__)


class MessageGenerator(ABC):
    """Produces a bounded stream of outbound messages in the background."""

    @abstractmethod
    def payload(self, index: int) -> bytes:
        """Return the payload of the ``index``-th message of a stream."""
        ...

    def generate(self, topic: str, partition: int, count: int) -> MessageStream:
        """Start writing ``count`` messages into a new stream and return it.

        Must be called from a running event loop. The stream is closed after
        exactly ``count`` messages, or with the error that stopped generation.
        """
        job = GenerationJob(count=count, topic=topic, partition=partition)
        stream = MessageStream(stream_capacity(job.count))
        stream.attach(asyncio.create_task(self._fill(job, stream)))
        return stream

    async def _fill(self, job: GenerationJob, stream: MessageStream) -> None:
        try:
            for i in range(job.count):
                message = OutboundMessage(
                    topic=job.topic,
                    partition=job.partition,
                    payload=self.payload(i),
                )
                await stream.put(message)
        except Exception as e:
            logger.debug("Generation stopped: %s", e)
            await stream.close(e)
        else:
            await stream.close()


class RandomMessageGenerator(MessageGenerator):
    """Fixed-size payloads filled from the operating system's CSPRNG."""

    def __init__(self, message_size: int):
        if message_size < 1:
            raise ConfigurationError("--message-size must be greater than 0")
        self.message_size = message_size

    def payload(self, index: int) -> bytes:
        try:
            return os.urandom(self.message_size)
        except OSError as e:
            raise GenerationError(f"Failed to generate message payload: {e}") from e

    def generate(self, topic: str, partition: int, count: int) -> MessageStream:
        logger.info("RandomMessageGenerator is generating %d messages", count)
        return super().generate(topic, partition, count)


class FileMessageGenerator(MessageGenerator):
    """Payloads cycled from the non-empty lines of a file.

    The whole file is read and decoded when the generator is built, so a bad
    file fails the run before anything is sent.
    """

    def __init__(self, message_file: str | Path, decoder: DecoderScheme | str = DecoderScheme.RAW):
        self.message_file = Path(message_file)
        self.decoder = get_decoder(decoder)
        self.records = self._load_records()

    def _load_records(self) -> tuple[bytes, ...]:
        records: list[bytes] = []
        try:
            with self.message_file.open("rb") as f:
                for line in f:
                    text = line.removesuffix(b"\n").removesuffix(b"\r")
                    if text:
                        records.append(self.decoder(text))
        except OSError as e:
            raise ConfigurationError(f"Failed to read message file: {e}") from e

        if not records:
            raise ConfigurationError(f"Message file {self.message_file} has no records")
        return tuple(records)

    def payload(self, index: int) -> bytes:
        return self.records[index % len(self.records)]

    def generate(self, topic: str, partition: int, count: int) -> MessageStream:
        logger.info(
            "FileMessageGenerator is generating %d messages from %d records",
            count,
            len(self.records),
        )
        return super().generate(topic, partition, count)


def create_message_generator(config: BenchmarkConfig) -> MessageGenerator:
    """Pick the generator for a run: the message file wins over a message size."""
    if config.uses_message_file:
        if config.message_size > 0:
            logger.warning(
                "Both --message-size and --message-file are set; payloads come from %s",
                config.message_file,
            )
        return FileMessageGenerator(config.message_file, config.message_decoder)
    return RandomMessageGenerator(config.message_size)
