"""Tests for the per-cell note packing."""

from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from xm.note_packer import (  # noqa: E402
    EMPTY_CELL,
    NoteConflictError,
    pack_note,
    volume_column_byte,
)
from xm.structs import XMEffect, XMNote  # noqa: E402


class TestVolumeColumn:
    def test_absent_volume_is_zero(self):
        assert volume_column_byte(XMNote()) == 0

    @pytest.mark.parametrize("level,expected", [(0, 0x10), (1, 0x11), (32, 0x30), (64, 0x50)])
    def test_level_maps_into_set_volume_range(self, level, expected):
        assert volume_column_byte(XMNote(volume=level)) == expected

    def test_raw_effect_passes_through(self):
        assert volume_column_byte(XMNote(volume_effect=0xA0)) == 0xA0

    def test_both_set_raises(self):
        with pytest.raises(NoteConflictError, match="both volume and volumeEffect"):
            volume_column_byte(XMNote(volume=32, volume_effect=0x10))

    def test_level_out_of_range_raises(self):
        with pytest.raises(ValueError):
            volume_column_byte(XMNote(volume=65))


class TestPackNote:
    def test_empty_note_is_single_marker_byte(self):
        assert pack_note(XMNote()) == b"\x80"
        assert EMPTY_CELL == b"\x80"

    def test_volume_zero_is_present(self):
        assert pack_note(XMNote(volume=0)) == b"\x84\x10"

    def test_volume_only(self):
        assert pack_note(XMNote(volume=64)) == b"\x84\x50"

    def test_raw_volume_effect(self):
        assert pack_note(XMNote(volume_effect=0xA0)) == b"\x84\xa0"

    def test_note_and_instrument(self):
        assert pack_note(XMNote(note=49, instrument=1)) == bytes([0x83, 49, 1])

    def test_note_off(self):
        assert pack_note(XMNote(note=97)) == bytes([0x81, 97])

    def test_effect_type_carries_zero_param(self):
        packed = pack_note(XMNote(effect_type=XMEffect.VOLUME_SLIDE))
        assert packed == bytes([0x98, 0x0A, 0x00])

    def test_param_without_type(self):
        # Arpeggio is effect 0, so only the parameter byte is stored.
        packed = pack_note(XMNote(effect_type=XMEffect.ARPEGGIO, effect_param=0x37))
        assert packed == bytes([0x90, 0x37])

    def test_all_fields_present_is_raw_five_bytes(self):
        note = XMNote(note=49, instrument=2, volume=48, effect_type=0x0C, effect_param=0x20)
        assert pack_note(note) == bytes([49, 2, 0x40, 0x0C, 0x20])

    def test_all_fields_with_param_only_effect_is_raw(self):
        note = XMNote(note=1, instrument=1, volume_effect=0x60, effect_param=0x12)
        assert pack_note(note) == bytes([1, 1, 0x60, 0x00, 0x12])

    def test_missing_volume_uses_packed_form(self):
        note = XMNote(note=49, instrument=2, effect_type=0x0F, effect_param=0x06)
        assert pack_note(note) == bytes([0x9B, 49, 2, 0x0F, 0x06])

    def test_conflict_raises(self):
        with pytest.raises(NoteConflictError):
            pack_note(XMNote(note=1, volume=10, volume_effect=0x60))

    def test_packed_fields_follow_flag_order(self):
        note = XMNote(instrument=3, volume=0, effect_type=0x01, effect_param=0x04)
        assert pack_note(note) == bytes([0x80 | 0x02 | 0x04 | 0x08 | 0x10, 3, 0x10, 0x01, 0x04])
