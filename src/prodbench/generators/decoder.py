"""Decoders for lines of a message file."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Callable

from prodbench.errors import ConfigurationError, DecodeError
from prodbench.models.message import DecoderScheme

Decoder = Callable[[bytes], bytes]


def decode_raw(text: bytes) -> bytes:
    return bytes(text)


def decode_hex(text: bytes) -> bytes:
    # unhexlify rejects odd lengths and whitespace, bytes.fromhex does not
    try:
        return binascii.unhexlify(text)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Failed to decode hex message data: {e}") from e


def decode_base64(text: bytes) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Failed to decode base64 message data: {e}") from e


_DECODERS: dict[DecoderScheme, Decoder] = {
    DecoderScheme.RAW: decode_raw,
    DecoderScheme.HEX: decode_hex,
    DecoderScheme.BASE64: decode_base64,
}


def get_decoder(scheme: DecoderScheme | str) -> Decoder:
    """Return the decoder for ``scheme``.

    Raises ConfigurationError for an unknown scheme name.
    """
    try:
        return _DECODERS[DecoderScheme(scheme)]
    except ValueError:
        raise ConfigurationError(f"Unknown --message-decoder: {scheme}") from None


def decode(text: bytes, scheme: DecoderScheme | str = DecoderScheme.RAW) -> bytes:
    return get_decoder(scheme)(text)
