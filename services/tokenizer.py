"""Line splitting and column lookup shared by the station parsers."""

from __future__ import annotations

import math
import re
from typing import List, Optional, Sequence

_DELIMITERS = re.compile(r"[,\t]")
_LINE_BREAK = re.compile(r"\r?\n")
_LEADING_FLOAT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_LEADING_INT = re.compile(r"[+-]?\d+")


def split_lines(text: str) -> List[str]:
    """Split file contents into non-blank lines."""
    return [line for line in _LINE_BREAK.split(text.strip()) if line.strip()]


def tokenize_line(line: str) -> List[str]:
    """Split on commas or tabs (mixed freely) and trim every token."""
    return [token.strip() for token in _DELIMITERS.split(line)]


def resolve_column(header: Sequence[str], candidate: str) -> int:
    """Index of the leftmost header label containing ``candidate``, or -1.

    Matching is a case-insensitive substring test, so ``"Temp"`` finds a
    column labelled ``"Temperature"``.
    """
    needle = candidate.lower()
    for index, label in enumerate(header):
        if needle in label.lower():
            return index
    return -1


def to_float(token: Optional[str]) -> Optional[float]:
    """Parse the numeric prefix of ``token``; anything else becomes ``None``."""
    if token is None:
        return None
    match = _LEADING_FLOAT.match(token.strip())
    if match is None:
        return None
    value = float(match.group(0))
    if not math.isfinite(value):
        return None
    return value


def to_index(token: Optional[str]) -> Optional[int]:
    """Parse the integer prefix of ``token`` (``"7"`` and ``"7.0"`` both give 7)."""
    if token is None:
        return None
    match = _LEADING_INT.match(token.strip())
    if match is None:
        return None
    return int(match.group(0))


def token_at(tokens: Sequence[str], position: int) -> Optional[str]:
    if 0 <= position < len(tokens):
        return tokens[position]
    return None
