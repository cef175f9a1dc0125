"""Hex codec for labels, tag keys and tag values.

Everything user-supplied that ends up inside generated SQL or inside the JSON
``tags`` blob is stored as upper-case hex, so quotes, backslashes, NUL bytes
and invalid UTF-8 never reach the SQL parser or the JSON functions.
"""

from __future__ import annotations

import json
import re
from typing import Dict, Union

from .errors import CodecError

TextInput = Union[str, bytes, bytearray, memoryview]

_HEX_REGEX = re.compile(r"(?:[0-9A-F]{2})*")


def to_bytes(value: TextInput) -> bytes:
    """Return the raw bytes behind a label, key or value."""
    if isinstance(value, str):
        try:
            return value.encode("utf-8", "surrogateescape")
        except UnicodeEncodeError as err:
            raise CodecError(f"cannot encode text: {err}") from err
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"expected str or bytes, got {type(value)!r}")


def hex_encode(value: TextInput) -> str:
    """Encode ``value`` as two upper-case hex digits per byte."""
    return to_bytes(value).hex().upper()


def hex_decode(text: str) -> bytes:
    """Decode text produced by :func:`hex_encode`.

    Raises:
        CodecError: If ``text`` has odd length or contains anything but ``0-9A-F``
    """
    if not isinstance(text, str):
        raise TypeError("hex_decode() requires a string")
    if len(text) % 2 != 0:
        raise CodecError(f"hex content must have even length, got {len(text)}")
    if not _HEX_REGEX.fullmatch(text):
        raise CodecError(f"invalid hex content '{text}'")
    return bytes.fromhex(text)


def decode_text(text: str) -> str:
    """Decode hex content back to ``str``; undecodable bytes survive as surrogates."""
    return hex_decode(text).decode("utf-8", "surrogateescape")


def as_text(value: TextInput) -> str:
    """Return ``value`` as ``str``, keeping undecodable bytes as surrogates."""
    if isinstance(value, str):
        return value
    return to_bytes(value).decode("utf-8", "surrogateescape")


def decode_tags(blob: str) -> Dict[str, str]:
    """Decode a stored ``tags`` JSON object into its plain key/value map."""
    try:
        raw = json.loads(blob) if blob else {}
    except json.JSONDecodeError as err:
        raise CodecError(f"tags blob is not valid JSON: {err.msg}") from err
    if not isinstance(raw, dict):
        raise CodecError("tags blob must be a JSON object")
    return {decode_text(key): decode_text(str(value)) for key, value in raw.items()}


__all__ = ["to_bytes", "as_text", "hex_encode", "hex_decode", "decode_text", "decode_tags"]
