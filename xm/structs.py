"""In-memory model of an Extended Module (FastTracker II XM) song.

Layout reference (all little-endian):

  Module header     336 bytes   signature, names, counts, 256-byte order table
  Pattern           9-byte sub-header + packed note cells (row-major)
  Instrument        29-byte header, +214-byte extended header when it owns
                    samples, then 40-byte sample headers, then delta PCM

Lengths and loop points on `XMSample` are in frames; the encoder doubles them
for 16-bit samples because the file stores byte counts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum, IntFlag
from typing import List, Optional


SIGNATURE = "Extended Module: "
MARKER_BYTE = 0x1A
HEADER_SIZE = 276  # counted from the header-size field itself
PATTERN_HEADER_SIZE = 9
INSTRUMENT_HEADER_SIZE = 29
EXTENDED_INSTRUMENT_HEADER_SIZE = 214
SAMPLE_HEADER_SIZE = 40

MODULE_NAME_LENGTH = 20
TRACKER_NAME_LENGTH = 20
INSTRUMENT_NAME_LENGTH = 22
SAMPLE_NAME_LENGTH = 22

ORDER_TABLE_SIZE = 256
ENVELOPE_POINTS = 12
NOTE_SAMPLE_MAP_SIZE = 96

DEFAULT_VERSION = 0x0104
DEFAULT_TRACKER_NAME = "xm python writer"
FLAG_LINEAR_FREQUENCY = 0x01

NOTE_OFF = 97
MAX_NOTE = 96
MAX_VOLUME = 64
VOLUME_COLUMN_BASE = 0x10

MAX_CHANNELS = 32
MAX_PATTERNS = 256
MAX_INSTRUMENTS = 128
MAX_ROWS = 256


class SampleWidth(Enum):
    PCM8 = 8
    PCM16 = 16

    @property
    def bytes_per_frame(self) -> int:
        return self.value // 8


class LoopType(IntEnum):
    NONE = 0
    FORWARD = 1
    PING_PONG = 2


class EnvelopeFlags(IntFlag):
    ON = 0x01
    SUSTAIN = 0x02
    LOOP = 0x04


class XMEffect(IntEnum):
    """Effect-column commands as numbered by FastTracker II."""

    ARPEGGIO = 0x00
    PORTA_UP = 0x01
    PORTA_DOWN = 0x02
    TONE_PORTA = 0x03
    VIBRATO = 0x04
    TONE_PORTA_VOLUME_SLIDE = 0x05
    VIBRATO_VOLUME_SLIDE = 0x06
    TREMOLO = 0x07
    SET_PANNING = 0x08
    SAMPLE_OFFSET = 0x09
    VOLUME_SLIDE = 0x0A
    POSITION_JUMP = 0x0B
    SET_VOLUME = 0x0C
    PATTERN_BREAK = 0x0D
    EXTENDED = 0x0E
    SET_SPEED = 0x0F
    SET_GLOBAL_VOLUME = 0x10  # G
    GLOBAL_VOLUME_SLIDE = 0x11  # H
    KEY_OFF = 0x14  # K
    SET_ENVELOPE_POSITION = 0x15  # L
    PANNING_SLIDE = 0x19  # P
    MULTI_RETRIG = 0x1B  # R
    TREMOR = 0x1D  # T
    EXTRA_FINE_PORTA = 0x21  # X


@dataclass
class XMNote:
    """One cell of a pattern.

    `volume` is a 0-64 level; `volume_effect` is a raw volume-column byte.
    Setting both is rejected when the note is packed.
    """

    note: int = 0  # 0 = empty, 1-96 = C-0..B-7, 97 = note off
    instrument: int = 0  # 0 = no instrument change
    volume: Optional[int] = None
    volume_effect: Optional[int] = None
    effect_type: int = 0
    effect_param: int = 0

    def is_empty(self) -> bool:
        return (
            self.note == 0
            and self.instrument == 0
            and self.volume is None
            and self.volume_effect is None
            and self.effect_type == 0
            and self.effect_param == 0
        )


def empty_note() -> XMNote:
    return XMNote()


@dataclass
class XMPattern:
    number_of_rows: int = 64
    # Row-major and possibly ragged: data[row][channel]
    data: List[List[Optional[XMNote]]] = field(default_factory=list)

    def note_at(self, row: int, channel: int) -> XMNote:
        """Return the cell at (row, channel), or an empty note if it is not stored."""

        if row < 0 or channel < 0 or row >= len(self.data):
            return empty_note()
        cells = self.data[row]
        if cells is None or channel >= len(cells):
            return empty_note()
        cell = cells[channel]
        return cell if cell is not None else empty_note()

    def set_note(self, row: int, channel: int, note: XMNote) -> None:
        """Store `note`, growing the grid with empty slots as needed."""

        if row < 0 or channel < 0:
            raise ValueError(f"invalid cell ({row}, {channel})")
        while len(self.data) <= row:
            self.data.append([])
        cells = self.data[row]
        while len(cells) <= channel:
            cells.append(None)
        cells[channel] = note


@dataclass
class XMHeader:
    module_name: str = ""
    tracker_name: str = DEFAULT_TRACKER_NAME
    version: int = DEFAULT_VERSION
    song_length: int = 1
    restart_position: int = 0
    number_of_channels: int = 4
    number_of_patterns: int = 0
    number_of_instruments: int = 0
    flags: int = FLAG_LINEAR_FREQUENCY
    default_tempo: int = 6
    default_bpm: int = 125
    pattern_order_table: List[int] = field(default_factory=list)


@dataclass
class EnvelopePoint:
    x: int  # tick
    y: int  # 0-64


@dataclass
class XMEnvelope:
    points: List[EnvelopePoint] = field(default_factory=list)
    number_of_points: int = 0
    sustain_point: int = 0
    loop_start_point: int = 0
    loop_end_point: int = 0
    type: int = 0  # EnvelopeFlags


@dataclass
class XMInstrumentExtendedHeader:
    sample_number_for_notes: List[int] = field(default_factory=list)
    volume_envelope: XMEnvelope = field(default_factory=XMEnvelope)
    panning_envelope: XMEnvelope = field(default_factory=XMEnvelope)
    vibrato_type: int = 0
    vibrato_sweep: int = 0
    vibrato_depth: int = 0
    vibrato_rate: int = 0
    volume_fade_out: int = 0


@dataclass
class XMSample:
    data: List[int] = field(default_factory=list)
    width: SampleWidth = SampleWidth.PCM8
    name: str = ""
    loop_type: LoopType = LoopType.NONE
    loop_start: int = 0  # frames
    loop_length: int = 0  # frames
    volume: int = 64
    fine_tune: int = 0  # -128..127
    panning: int = 128
    relative_note_number: int = 0  # -128..127

    @property
    def is_16bit(self) -> bool:
        return self.width is SampleWidth.PCM16

    @property
    def type_byte(self) -> int:
        """Sample type byte: bits 0-1 loop type, bit 4 set for 16-bit data."""

        return (int(self.loop_type) & 0x03) | (0x10 if self.is_16bit else 0x00)

    def byte_length(self, frames: int) -> int:
        return frames * self.width.bytes_per_frame


@dataclass
class XMInstrument:
    name: str = ""
    samples: List[XMSample] = field(default_factory=list)
    extended_header: Optional[XMInstrumentExtendedHeader] = None

    @property
    def has_samples(self) -> bool:
        return bool(self.samples)

    @property
    def header_size(self) -> int:
        if self.has_samples:
            return INSTRUMENT_HEADER_SIZE + EXTENDED_INSTRUMENT_HEADER_SIZE
        return INSTRUMENT_HEADER_SIZE


@dataclass
class XMModule:
    header: XMHeader = field(default_factory=XMHeader)
    patterns: List[XMPattern] = field(default_factory=list)
    instruments: List[XMInstrument] = field(default_factory=list)
