#!/usr/bin/env python3
"""Compile an editable JSON song spec into a binary .xm module."""

from __future__ import annotations

import argparse
import hashlib
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from xm.json_build_spec import build_xm_bytes, load_build_spec, summarize
from xm.structs import HEADER_SIZE, MARKER_BYTE, SIGNATURE


def _sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def _first_mismatch(
    built: bytes, expected: bytes
) -> tuple[int, int | None, int | None] | None:
    limit = min(len(built), len(expected))
    for idx in range(limit):
        if built[idx] != expected[idx]:
            return (idx, built[idx], expected[idx])
    if len(built) != len(expected):
        built_byte = built[limit] if limit < len(built) else None
        expected_byte = expected[limit] if limit < len(expected) else None
        return (limit, built_byte, expected_byte)
    return None


def _check_header(data: bytes) -> None:
    if data[: len(SIGNATURE)] != SIGNATURE.encode("ascii"):
        raise ValueError("compiled output is missing the XM signature")
    if data[37] != MARKER_BYTE:
        raise ValueError("compiled output has a bad marker byte")
    if int.from_bytes(data[60:64], "little") != HEADER_SIZE:
        raise ValueError("compiled output has a bad header size field")


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build an .xm file from a JSON spec",
    )
    parser.add_argument(
        "spec",
        type=Path,
        help="Path to JSON build spec",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output .xm path (overrides spec.output)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and compile without writing output",
    )
    parser.add_argument(
        "--expect",
        type=Path,
        default=None,
        help="Expected .xm file path for byte-match verification",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    spec = load_build_spec(args.spec)
    out_path = args.output if args.output is not None else spec.output

    if not args.dry_run and out_path is None:
        parser.error("output path required: set spec.output or pass --output")

    xm_bytes = build_xm_bytes(spec)
    _check_header(xm_bytes)
    stats = summarize(spec)

    match_ok = True
    expect_path = args.expect.expanduser().resolve() if args.expect is not None else None
    if expect_path is not None:
        expected = expect_path.read_bytes()
        mismatch = _first_mismatch(xm_bytes, expected)
        if mismatch is None:
            print(f"expect match: yes  sha1={_sha1(xm_bytes)} file={expect_path}")
        else:
            match_ok = False
            offset, built_byte, expected_byte = mismatch
            built_hex = "EOF" if built_byte is None else f"0x{built_byte:02X}"
            expected_hex = "EOF" if expected_byte is None else f"0x{expected_byte:02X}"
            print("expect match: no")
            print(f"  built:    size={len(xm_bytes)} sha1={_sha1(xm_bytes)}")
            print(
                f"  expected: size={len(expected)} sha1={_sha1(expected)} "
                f"file={expect_path}"
            )
            print(
                f"  first diff @ 0x{offset:06X}: "
                f"built={built_hex} expected={expected_hex}"
            )

    if args.dry_run:
        print(
            f"dry-run OK: patterns={stats['patterns']} "
            f"instruments={stats['instruments']} size={len(xm_bytes)}B"
        )
        return 0 if match_ok else 2

    assert out_path is not None  # checked above
    out_path = out_path.expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(xm_bytes)

    print(f"Wrote {len(xm_bytes)} bytes -> {out_path}")
    print(
        f"  channels={stats['channels']} patterns={stats['patterns']} "
        f"song_length={stats['song_length']}"
    )
    print(
        f"  instruments={stats['instruments']} samples={stats['samples']} "
        f"notes={stats['notes']}"
    )

    return 0 if match_ok else 2


if __name__ == "__main__":
    raise SystemExit(main())
