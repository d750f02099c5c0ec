"""Delta transform for XM sample payloads.

XM stores PCM as running differences: the first value is its difference from
0, every later value the difference from its predecessor, wrapped into the
sample's own signed width.  Players rebuild the signal with a running sum.
"""

from __future__ import annotations

import struct
from typing import Iterable, List, Sequence

from .structs import SampleWidth, XMSample

_PACK_CODES = {
    SampleWidth.PCM8: "b",
    SampleWidth.PCM16: "h",
}


def _wrap(value: int, bits: int) -> int:
    span = 1 << bits
    half = span >> 1
    return ((value + half) % span) - half


def delta_encode(values: Iterable[int], width: SampleWidth = SampleWidth.PCM8) -> List[int]:
    bits = width.value
    out: List[int] = []
    previous = 0
    for value in values:
        out.append(_wrap(value - previous, bits))
        previous = value
    return out


def delta_decode(deltas: Iterable[int], width: SampleWidth = SampleWidth.PCM8) -> List[int]:
    bits = width.value
    out: List[int] = []
    acc = 0
    for delta in deltas:
        acc = _wrap(acc + delta, bits)
        out.append(acc)
    return out


def pack_deltas(deltas: Sequence[int], width: SampleWidth) -> bytes:
    code = _PACK_CODES[width]
    return struct.pack(f"<{len(deltas)}{code}", *deltas)


def encode_sample_data(sample: XMSample) -> bytes:
    """Return the little-endian delta payload for `sample`."""

    return pack_deltas(delta_encode(sample.data, sample.width), sample.width)


__all__ = ["delta_decode", "delta_encode", "encode_sample_data", "pack_deltas"]
