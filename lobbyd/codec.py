"""CBOR wire codec. Every lobbyd message is one CBOR map per packet."""

from __future__ import annotations

from typing import Any

import cbor2

# Raised for truncated or otherwise undecodable frames.
DecodeError = cbor2.CBORDecodeError


def encode(obj: Any) -> bytes:
    return cbor2.dumps(obj)


def decode(b: bytes) -> Any:
    if not b:
        raise DecodeError("empty frame")
    return cbor2.loads(b)
