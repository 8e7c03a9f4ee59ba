"""Shared helpers for turning columnar tool output into numbers."""

from __future__ import annotations

from pathlib import Path

from forensics.sources.exceptions import SourceParseError


def to_float(text: str, what: str) -> float:
    """Parse *text* as a float or raise SourceParseError naming *what*."""
    try:
        return float(text.strip().rstrip("%"))
    except ValueError:
        raise SourceParseError(f"unparseable {what}: {text!r}") from None


def read_text(path: Path) -> str:
    """Read a /proc or /sys file. OSError propagates to the source boundary."""
    return path.read_text(errors="replace")


def read_int(path: Path) -> int:
    raw = read_text(path).strip()
    try:
        return int(raw)
    except ValueError:
        raise SourceParseError(f"unparseable {path}: {raw!r}") from None


def parse_key_values(text: str, sep: str = ":") -> dict[str, str]:
    """Parse simple 'key: value' lines into a dict."""
    res: dict[str, str] = {}
    for line in text.splitlines():
        if sep in line:
            k, v = line.split(sep, 1)
            res[k.strip()] = v.strip()
    return res


def right_aligned(header: list[str], row: list[str], column: str) -> str:
    """Pick *column* from *row*, aligning both from the right.

    sysstat tools prefix rows with a timestamp whose width depends on the
    locale ("12:00:01 AM" vs "12:00:01"), so only the right edge of the
    header lines up with the data.
    """
    if column not in header:
        raise SourceParseError(f"column {column!r} missing from header")
    offset = len(header) - header.index(column)
    if offset > len(row):
        raise SourceParseError(f"row too short for column {column!r}: {row}")
    return row[-offset]


def mean(values: list[float]) -> float:
    if not values:
        raise SourceParseError("no samples to average")
    return sum(values) / len(values)
