#!/usr/bin/env python3
"""Convert MIDI into XM authoring artifacts.

Default mode writes a JSON build spec compatible with `tools/build_xm_from_json.py`.

Examples
--------
JSON spec (default):
    python tools/midi_to_xm.py input.mid
    python tools/midi_to_xm.py input.mid -o specs/song.json --rows-per-beat 4

Direct XM build:
    python tools/midi_to_xm.py input.mid --format xm -o output/song.xm

Analysis only:
    python tools/midi_to_xm.py input.mid --info
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import mido

from xm.json_build_spec import build_xm_bytes, parse_build_spec
from xm.structs import MAX_CHANNELS, MAX_INSTRUMENTS, MAX_NOTE, MAX_PATTERNS, MAX_VOLUME, NOTE_OFF

DRUM_CHANNEL = 9
# MIDI 60 (middle C) lands on XM C-4 (49).
MIDI_TO_XM_OFFSET = 11
DEFAULT_BPM = 120
DEFAULT_ROWS_PER_BEAT = 4
DEFAULT_ROWS_PER_PATTERN = 64


@dataclass
class MidiNote:
    """A note extracted from MIDI with absolute timing."""

    abs_tick: int
    note: int
    velocity: int
    gate_ticks: int
    channel: int


@dataclass
class PlacedNote:
    row: int
    end_row: int
    channel: int  # XM channel
    note: int  # XM note value
    instrument: int
    volume: int


@dataclass
class ConversionReport:
    bpm: int
    tempo: int
    total_rows: int
    channels_used: int
    placed: int
    dropped_polyphony: int = 0
    dropped_patterns: int = 0
    source_channels: Dict[int, int] = field(default_factory=dict)


def extract_midi_notes(mid: mido.MidiFile) -> List[MidiNote]:
    """Pair note_on/note_off messages into notes with absolute onsets."""

    notes: List[MidiNote] = []
    # pending[(track, channel, pitch)] -> stack[(onset_tick, velocity)]
    pending: Dict[Tuple[int, int, int], List[Tuple[int, int]]] = {}

    for track_idx, track in enumerate(mid.tracks):
        abs_tick = 0
        for msg in track:
            abs_tick += msg.time
            if msg.type == "note_on" and msg.velocity > 0:
                key = (track_idx, msg.channel, msg.note)
                pending.setdefault(key, []).append((abs_tick, msg.velocity))
                continue

            if msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0):
                key = (track_idx, msg.channel, msg.note)
                starts = pending.get(key)
                if not starts:
                    continue
                onset, velocity = starts.pop()
                notes.append(
                    MidiNote(
                        abs_tick=onset,
                        note=msg.note,
                        velocity=velocity,
                        gate_ticks=max(abs_tick - onset, 1),
                        channel=msg.channel,
                    )
                )

    notes.sort(key=lambda n: (n.abs_tick, n.channel, n.note))
    return notes


def detect_bpm(mid: mido.MidiFile) -> int:
    for track in mid.tracks:
        for msg in track:
            if msg.type == "set_tempo":
                bpm = int(round(mido.tempo2bpm(msg.tempo)))
                return max(32, min(255, bpm))
    return DEFAULT_BPM


def midi_to_xm_note(pitch: int) -> int:
    return max(1, min(MAX_NOTE, pitch - MIDI_TO_XM_OFFSET))


def velocity_to_volume(velocity: int) -> int:
    return max(0, min(MAX_VOLUME, velocity * MAX_VOLUME // 127))


def place_notes(
    notes: List[MidiNote],
    *,
    ticks_per_row: float,
    max_channels: int,
    instrument_for_channel: Dict[int, int],
) -> Tuple[List[PlacedNote], int]:
    """Quantise onsets to rows and give each sounding note its own XM channel.

    Returns the placed notes and the number dropped for lack of a free channel.
    """

    busy_until: List[int] = []
    placed: List[PlacedNote] = []
    dropped = 0
    for note in notes:
        row = int(round(note.abs_tick / ticks_per_row))
        length = max(1, int(round(note.gate_ticks / ticks_per_row)))
        channel = next((idx for idx, end in enumerate(busy_until) if end <= row), None)
        if channel is None:
            if len(busy_until) >= max_channels:
                dropped += 1
                continue
            busy_until.append(0)
            channel = len(busy_until) - 1
        busy_until[channel] = row + length
        placed.append(
            PlacedNote(
                row=row,
                end_row=row + length,
                channel=channel,
                note=midi_to_xm_note(note.note),
                instrument=instrument_for_channel[note.channel],
                volume=velocity_to_volume(note.velocity),
            )
        )
    return placed, dropped


def _instrument_entry(midi_channel: int) -> dict:
    if midi_channel == DRUM_CHANNEL:
        name = "ch10 drums"
        waveform = "saw"
    else:
        name = f"ch{midi_channel + 1} square"
        waveform = "square"
    return {
        "name": name,
        "samples": [
            {
                "name": waveform,
                "bits": 8,
                "waveform": waveform,
                "length": 32,
                "amplitude": 96,
                "loop": "forward",
            }
        ],
        "volume_envelope": {"points": [[0, 64], [8, 48], [64, 0]], "sustain": 1},
        "fadeout": 512,
    }


def convert_midi(
    mid: mido.MidiFile,
    *,
    name: str = "midi import",
    rows_per_beat: int = DEFAULT_ROWS_PER_BEAT,
    rows_per_pattern: int = DEFAULT_ROWS_PER_PATTERN,
    max_channels: int = MAX_CHANNELS,
) -> Tuple[dict, ConversionReport]:
    """Build a JSON build spec dict from a parsed MIDI file."""

    if rows_per_beat < 1 or rows_per_pattern < 1:
        raise ValueError("rows_per_beat and rows_per_pattern must be positive")
    if not 1 <= max_channels <= MAX_CHANNELS:
        raise ValueError(f"max_channels must be in [1, {MAX_CHANNELS}]")

    notes = extract_midi_notes(mid)
    source_channels: Dict[int, int] = {}
    for note in notes:
        source_channels[note.channel] = source_channels.get(note.channel, 0) + 1
    midi_channels = sorted(source_channels)[:MAX_INSTRUMENTS]
    instrument_for_channel = {ch: idx + 1 for idx, ch in enumerate(midi_channels)}

    ticks_per_row = mid.ticks_per_beat / rows_per_beat
    placed, dropped = place_notes(
        notes,
        ticks_per_row=ticks_per_row,
        max_channels=max_channels,
        instrument_for_channel=instrument_for_channel,
    )

    total_rows = max((p.end_row for p in placed), default=0) + 1
    pattern_count = max(1, -(-total_rows // rows_per_pattern))
    dropped_patterns = max(0, pattern_count - MAX_PATTERNS)
    pattern_count = min(pattern_count, MAX_PATTERNS)

    cells: Dict[Tuple[int, int], dict] = {}
    for p in placed:
        cell = {"note": p.note, "instrument": p.instrument, "volume": p.volume}
        cells[(p.row, p.channel)] = cell
    for p in placed:
        cells.setdefault((p.end_row, p.channel), {"note": NOTE_OFF})

    patterns: List[dict] = [{"rows": rows_per_pattern, "notes": []} for _ in range(pattern_count)]
    for (row, channel), cell in sorted(cells.items()):
        index = row // rows_per_pattern
        if index >= pattern_count:
            continue
        entry = {"row": row % rows_per_pattern, "channel": channel}
        entry.update(cell)
        patterns[index]["notes"].append(entry)

    channels_used = max(2, len({p.channel for p in placed}))
    channels_used += channels_used % 2
    channels_used = min(channels_used, MAX_CHANNELS)

    bpm = detect_bpm(mid)
    tempo = max(1, min(31, 24 // rows_per_beat))
    spec = {
        "version": 1,
        "module": {
            "name": name[:20],
            "channels": channels_used,
            "tempo": tempo,
            "bpm": bpm,
        },
        "instruments": [_instrument_entry(ch) for ch in midi_channels],
        "patterns": patterns,
    }
    report = ConversionReport(
        bpm=bpm,
        tempo=tempo,
        total_rows=total_rows,
        channels_used=channels_used,
        placed=len(placed),
        dropped_polyphony=dropped,
        dropped_patterns=dropped_patterns,
        source_channels=source_channels,
    )
    return spec, report


def print_info(mid: mido.MidiFile, report: ConversionReport) -> None:
    print(f"ticks_per_beat={mid.ticks_per_beat} tracks={len(mid.tracks)} bpm={report.bpm}")
    print(f"rows={report.total_rows} xm_channels={report.channels_used} speed={report.tempo}")
    print("MIDI ch  notes")
    for channel, count in sorted(report.source_channels.items()):
        print(f"  {channel + 1:>5}  {count:>5}")
    if report.dropped_polyphony:
        print(f"dropped {report.dropped_polyphony} notes (no free XM channel)")
    if report.dropped_patterns:
        print(f"dropped {report.dropped_patterns} patterns beyond the {MAX_PATTERNS} limit")


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Convert a MIDI file to an XM build spec")
    parser.add_argument("input", type=Path, help="Input .mid file")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Output path")
    parser.add_argument(
        "--format",
        choices=("json", "xm"),
        default="json",
        help="Write a JSON build spec (default) or a compiled .xm",
    )
    parser.add_argument("--name", default=None, help="Module name (default: input stem)")
    parser.add_argument("--rows-per-beat", type=int, default=DEFAULT_ROWS_PER_BEAT)
    parser.add_argument("--rows-per-pattern", type=int, default=DEFAULT_ROWS_PER_PATTERN)
    parser.add_argument("--max-channels", type=int, default=MAX_CHANNELS)
    parser.add_argument("--info", action="store_true", help="Print analysis and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    mid = mido.MidiFile(str(args.input))
    spec, report = convert_midi(
        mid,
        name=args.name or args.input.stem,
        rows_per_beat=args.rows_per_beat,
        rows_per_pattern=args.rows_per_pattern,
        max_channels=args.max_channels,
    )

    if args.info:
        print_info(mid, report)
        return 0

    suffix = ".json" if args.format == "json" else ".xm"
    out_path = args.output if args.output is not None else args.input.with_suffix(suffix)
    out_path = out_path.expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)

    if args.format == "json":
        out_path.write_text(json.dumps(spec, indent=2) + "\n", encoding="utf-8")
        print(f"Wrote JSON spec -> {out_path}")
    else:
        data = build_xm_bytes(parse_build_spec(spec, base_dir=out_path.parent))
        out_path.write_bytes(data)
        print(f"Wrote {len(data)} bytes -> {out_path}")
    print(
        f"  notes={report.placed} patterns={len(spec['patterns'])} "
        f"channels={report.channels_used} bpm={report.bpm}"
    )
    if report.dropped_polyphony:
        print(f"  dropped {report.dropped_polyphony} notes (no free XM channel)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
