from __future__ import annotations

from typing import List, Sequence

from .binary_writer import BinaryWriter
from .delta import encode_sample_data
from .note_packer import pack_note
from .structs import (
    ENVELOPE_POINTS,
    HEADER_SIZE,
    INSTRUMENT_NAME_LENGTH,
    MARKER_BYTE,
    MAX_CHANNELS,
    MAX_INSTRUMENTS,
    MAX_PATTERNS,
    MODULE_NAME_LENGTH,
    NOTE_SAMPLE_MAP_SIZE,
    ORDER_TABLE_SIZE,
    PATTERN_HEADER_SIZE,
    SAMPLE_HEADER_SIZE,
    SAMPLE_NAME_LENGTH,
    SIGNATURE,
    TRACKER_NAME_LENGTH,
    XMEnvelope,
    XMHeader,
    XMInstrument,
    XMInstrumentExtendedHeader,
    XMModule,
    XMPattern,
    XMSample,
)

# Offset of the packed-size slot inside the 9-byte pattern sub-header.
PATTERN_SIZE_FIELD_OFFSET = 7


class CardinalityError(ValueError):
    """A module exceeds one of the fixed XM format maxima."""


def _padded(values: Sequence[int], size: int) -> List[int]:
    out = list(values[:size])
    out.extend([0] * (size - len(out)))
    return out


def validate_module(module: XMModule) -> None:
    """Check the format's cardinality limits before anything is written."""

    header = module.header
    channels = header.number_of_channels
    if channels > MAX_CHANNELS:
        raise CardinalityError(f"Number of channels cannot exceed {MAX_CHANNELS}")
    if max(header.number_of_instruments, len(module.instruments)) > MAX_INSTRUMENTS:
        raise CardinalityError(
            f"Number of instruments cannot exceed {MAX_INSTRUMENTS}"
        )
    if max(header.number_of_patterns, len(module.patterns)) > MAX_PATTERNS:
        raise CardinalityError(f"Number of patterns cannot exceed {MAX_PATTERNS}")


class XMWriter:
    """Serialise an `XMModule` into XM file bytes.

    Each `write` call owns a fresh buffer; do not share an instance between
    threads.  Any exception leaves no usable output.
    """

    def __init__(self) -> None:
        self.writer = BinaryWriter()

    def write(self, module: XMModule) -> bytes:
        validate_module(module)

        self.writer = BinaryWriter()
        self.write_header(module.header)
        for pattern in module.patterns:
            self.write_pattern(pattern, module.header.number_of_channels)
        for instrument in module.instruments:
            self.write_instrument(instrument)
        return self.writer.getvalue()

    # --- header ---------------------------------------------------------

    def write_header(self, header: XMHeader) -> None:
        w = self.writer
        w.write_string(SIGNATURE, len(SIGNATURE))
        w.write_string(header.module_name, MODULE_NAME_LENGTH)
        w.write_u8(MARKER_BYTE)
        w.write_string(header.tracker_name, TRACKER_NAME_LENGTH)
        w.write_u16(header.version)
        w.write_u32(HEADER_SIZE)
        w.write_u16(header.song_length)
        w.write_u16(header.restart_position)
        w.write_u16(header.number_of_channels)
        w.write_u16(header.number_of_patterns)
        w.write_u16(header.number_of_instruments)
        w.write_u16(header.flags)
        w.write_u16(header.default_tempo)
        w.write_u16(header.default_bpm)
        w.write_bytes(bytes(_padded(header.pattern_order_table, ORDER_TABLE_SIZE)))

    # --- patterns -------------------------------------------------------

    def write_pattern(self, pattern: XMPattern, number_of_channels: int) -> int:
        """Write one pattern and return the size of its packed body."""

        w = self.writer
        w.write_u32(PATTERN_HEADER_SIZE)
        w.write_u8(0)  # packing type
        w.write_u16(pattern.number_of_rows)
        size_offset = w.position
        w.write_u16(0)  # packed size, patched below

        body_start = w.position
        for row in range(pattern.number_of_rows):
            for channel in range(number_of_channels):
                w.write_bytes(pack_note(pattern.note_at(row, channel)))

        packed_size = w.position - body_start
        w.write_u16_at(size_offset, packed_size)
        return packed_size

    # --- instruments ----------------------------------------------------

    def write_instrument(self, instrument: XMInstrument) -> None:
        w = self.writer
        w.write_u32(instrument.header_size)
        w.write_string(instrument.name, INSTRUMENT_NAME_LENGTH)
        w.write_u8(0)  # instrument type
        w.write_u16(len(instrument.samples))
        if not instrument.has_samples:
            return

        extended = instrument.extended_header or XMInstrumentExtendedHeader()
        self.write_extended_header(extended)
        for sample in instrument.samples:
            self.write_sample_header(sample)
        for sample in instrument.samples:
            w.write_bytes(encode_sample_data(sample))

    def write_extended_header(self, ext: XMInstrumentExtendedHeader) -> None:
        w = self.writer
        vol = ext.volume_envelope
        pan = ext.panning_envelope

        w.write_u32(SAMPLE_HEADER_SIZE)
        w.write_bytes(bytes(_padded(ext.sample_number_for_notes, NOTE_SAMPLE_MAP_SIZE)))
        self.write_envelope_points(vol)
        self.write_envelope_points(pan)
        w.write_u8(vol.number_of_points)
        w.write_u8(pan.number_of_points)
        w.write_u8(vol.sustain_point)
        w.write_u8(vol.loop_start_point)
        w.write_u8(vol.loop_end_point)
        w.write_u8(pan.sustain_point)
        w.write_u8(pan.loop_start_point)
        w.write_u8(pan.loop_end_point)
        w.write_u8(vol.type)
        w.write_u8(pan.type)
        w.write_u8(ext.vibrato_type)
        w.write_u8(ext.vibrato_sweep)
        w.write_u8(ext.vibrato_depth)
        w.write_u8(ext.vibrato_rate)
        w.write_u16(ext.volume_fade_out)
        w.write_u16(0)  # reserved

    def write_envelope_points(self, envelope: XMEnvelope) -> None:
        w = self.writer
        points = envelope.points[:ENVELOPE_POINTS]
        for point in points:
            w.write_u16(point.x)
            w.write_u16(point.y)
        w.write_zeros(4 * (ENVELOPE_POINTS - len(points)))

    def write_sample_header(self, sample: XMSample) -> None:
        w = self.writer
        w.write_u32(sample.byte_length(len(sample.data)))
        w.write_u32(sample.byte_length(sample.loop_start))
        w.write_u32(sample.byte_length(sample.loop_length))
        w.write_u8(sample.volume)
        w.write_i8(sample.fine_tune)
        w.write_u8(sample.type_byte)
        w.write_u8(sample.panning)
        w.write_i8(sample.relative_note_number)
        w.write_u8(0)  # reserved
        w.write_string(sample.name, SAMPLE_NAME_LENGTH)


def write_module(module: XMModule) -> bytes:
    return XMWriter().write(module)


__all__ = [
    "CardinalityError",
    "PATTERN_SIZE_FIELD_OFFSET",
    "XMWriter",
    "validate_module",
    "write_module",
]
