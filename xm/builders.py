"""Convenience constructors for XM structures, note names and file output."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional, Sequence

from .structs import (
    DEFAULT_TRACKER_NAME,
    DEFAULT_VERSION,
    FLAG_LINEAR_FREQUENCY,
    MAX_NOTE,
    NOTE_OFF,
    NOTE_SAMPLE_MAP_SIZE,
    ORDER_TABLE_SIZE,
    LoopType,
    SampleWidth,
    XMEnvelope,
    XMHeader,
    XMInstrument,
    XMInstrumentExtendedHeader,
    XMModule,
    XMNote,
    XMPattern,
    XMSample,
)
from .writer import XMWriter

NOTE_NAMES = ("C-", "C#", "D-", "D#", "E-", "F-", "F#", "G-", "G#", "A-", "A#", "B-")
_NOTE_NAME_RE = re.compile(r"^([A-Ga-g])([#-]?)(\d)$")


def create_module(
    module_name: str = "Untitled",
    *,
    number_of_channels: int = 4,
    default_tempo: int = 6,
    default_bpm: int = 125,
) -> XMModule:
    header = XMHeader(
        module_name=module_name,
        tracker_name=DEFAULT_TRACKER_NAME,
        version=DEFAULT_VERSION,
        song_length=1,
        restart_position=0,
        number_of_channels=number_of_channels,
        number_of_patterns=0,
        number_of_instruments=0,
        flags=FLAG_LINEAR_FREQUENCY,
        default_tempo=default_tempo,
        default_bpm=default_bpm,
        pattern_order_table=[0] * ORDER_TABLE_SIZE,
    )
    return XMModule(header=header)


def create_pattern(number_of_rows: int = 64, number_of_channels: int = 4) -> XMPattern:
    """Return a dense pattern filled with empty notes."""

    data = [[XMNote() for _ in range(number_of_channels)] for _ in range(number_of_rows)]
    return XMPattern(number_of_rows=number_of_rows, data=data)


def create_instrument(name: str = "Instrument") -> XMInstrument:
    return XMInstrument(name=name)


def create_empty_envelope() -> XMEnvelope:
    return XMEnvelope()


def create_sample(
    data: Sequence[int],
    *,
    width: SampleWidth = SampleWidth.PCM8,
    name: str = "Sample",
    volume: int = 64,
    fine_tune: int = 0,
    loop_start: int = 0,
    loop_length: int = 0,
    loop_type: LoopType = LoopType.NONE,
    panning: int = 128,
    relative_note_number: int = 0,
) -> XMSample:
    return XMSample(
        data=list(data),
        width=width,
        name=name,
        loop_type=LoopType(loop_type),
        loop_start=loop_start,
        loop_length=loop_length,
        volume=volume,
        fine_tune=fine_tune,
        panning=panning,
        relative_note_number=relative_note_number,
    )


def add_sample_to_instrument(instrument: XMInstrument, sample: XMSample) -> None:
    """Append `sample`; the first sample also installs a default extended header."""

    if not instrument.samples and instrument.extended_header is None:
        instrument.extended_header = XMInstrumentExtendedHeader(
            sample_number_for_notes=[0] * NOTE_SAMPLE_MAP_SIZE,
            volume_envelope=create_empty_envelope(),
            panning_envelope=create_empty_envelope(),
        )
    instrument.samples.append(sample)


def add_pattern(module: XMModule, pattern: XMPattern) -> int:
    """Append `pattern` and keep the header count in step; returns its index."""

    module.patterns.append(pattern)
    module.header.number_of_patterns = len(module.patterns)
    return len(module.patterns) - 1


def add_instrument(module: XMModule, instrument: XMInstrument) -> int:
    """Append `instrument`; returns its 1-based instrument number."""

    module.instruments.append(instrument)
    module.header.number_of_instruments = len(module.instruments)
    return len(module.instruments)


def set_order(module: XMModule, order: Sequence[int]) -> None:
    if not 1 <= len(order) <= ORDER_TABLE_SIZE:
        raise ValueError(f"order length must be in [1, {ORDER_TABLE_SIZE}], got {len(order)}")
    table = list(order) + [0] * (ORDER_TABLE_SIZE - len(order))
    module.header.pattern_order_table = table
    module.header.song_length = len(order)


def note_name_to_value(name: str) -> int:
    """Convert a tracker note name such as ``C-4`` or ``A#3`` to 1-96 (0 if invalid)."""

    match = _NOTE_NAME_RE.match(name.strip())
    if not match:
        return 0
    letter, accidental, octave_text = match.groups()
    key = letter.upper() + (accidental if accidental == "#" else "-")
    if key not in NOTE_NAMES:
        return 0  # E# / B#
    octave = int(octave_text)
    if octave > 7:
        return 0
    return octave * 12 + NOTE_NAMES.index(key) + 1


def note_value_to_name(value: int) -> str:
    if value == 0:
        return "---"
    if value == NOTE_OFF:
        return "OFF"
    if value < 1 or value > MAX_NOTE:
        return "???"
    return f"{NOTE_NAMES[(value - 1) % 12]}{(value - 1) // 12}"


def save_to_file(module: XMModule, path: Path | str, *, writer: Optional[XMWriter] = None) -> int:
    """Encode `module` and write it to `path`; returns the number of bytes written."""

    data = (writer or XMWriter()).write(module)
    out_path = Path(path).expanduser()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(data)
    return len(data)


__all__ = [
    "NOTE_NAMES",
    "add_instrument",
    "add_pattern",
    "add_sample_to_instrument",
    "create_empty_envelope",
    "create_instrument",
    "create_module",
    "create_pattern",
    "create_sample",
    "note_name_to_value",
    "note_value_to_name",
    "save_to_file",
    "set_order",
]
