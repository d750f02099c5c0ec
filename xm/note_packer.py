"""Pack pattern cells into the XM variable-length note encoding.

A cell is either 5 raw bytes (note, instrument, volume, effect, param) when
every column is in use, or a flag byte followed only by the columns present:

  bit 7  packed-format marker (always set)
  bit 0  note           bit 3  effect type
  bit 1  instrument     bit 4  effect parameter
  bit 2  volume column

A non-zero effect type always carries its parameter byte, even when that
parameter is 0.  An empty cell is the single byte 0x80.
"""

from __future__ import annotations

from .structs import MAX_VOLUME, VOLUME_COLUMN_BASE, XMNote

PACKED_MARKER = 0x80
FLAG_NOTE = 0x01
FLAG_INSTRUMENT = 0x02
FLAG_VOLUME = 0x04
FLAG_EFFECT_TYPE = 0x08
FLAG_EFFECT_PARAM = 0x10

EMPTY_CELL = bytes([PACKED_MARKER])


class NoteConflictError(ValueError):
    """A note sets both a volume level and a raw volume-column effect."""


def volume_column_byte(note: XMNote) -> int:
    """Resolve the volume-column byte: raw effect, else 0x10 + level, else 0."""

    if note.volume is not None and note.volume_effect is not None:
        raise NoteConflictError(
            "Cannot set both volume and volumeEffect on the same note"
        )
    if note.volume_effect is not None:
        return note.volume_effect
    if note.volume is not None:
        if not 0 <= note.volume <= MAX_VOLUME:
            raise ValueError(f"volume must be in [0, {MAX_VOLUME}], got {note.volume}")
        return VOLUME_COLUMN_BASE + note.volume
    return 0


def note_flags(note: XMNote, volume_byte: int) -> int:
    flags = PACKED_MARKER
    if note.note != 0:
        flags |= FLAG_NOTE
    if note.instrument != 0:
        flags |= FLAG_INSTRUMENT
    if volume_byte != 0:
        flags |= FLAG_VOLUME
    if note.effect_type != 0:
        flags |= FLAG_EFFECT_TYPE
    if note.effect_param != 0 or note.effect_type != 0:
        flags |= FLAG_EFFECT_PARAM
    return flags


def pack_note(note: XMNote) -> bytes:
    volume_byte = volume_column_byte(note)
    flags = note_flags(note, volume_byte)

    has_effect = note.effect_type != 0 or note.effect_param != 0
    if note.note != 0 and note.instrument != 0 and volume_byte != 0 and has_effect:
        return bytes(
            (
                note.note,
                note.instrument,
                volume_byte,
                note.effect_type,
                note.effect_param,
            )
        )

    buf = bytearray()
    buf.append(flags)
    if flags & FLAG_NOTE:
        buf.append(note.note)
    if flags & FLAG_INSTRUMENT:
        buf.append(note.instrument)
    if flags & FLAG_VOLUME:
        buf.append(volume_byte)
    if flags & FLAG_EFFECT_TYPE:
        buf.append(note.effect_type)
    if flags & FLAG_EFFECT_PARAM:
        buf.append(note.effect_param)
    return bytes(buf)


__all__ = [
    "EMPTY_CELL",
    "NoteConflictError",
    "PACKED_MARKER",
    "note_flags",
    "pack_note",
    "volume_column_byte",
]
