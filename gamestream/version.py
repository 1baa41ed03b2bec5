"""Parsing of dotted application version strings."""

from __future__ import annotations

import re
from typing import Tuple

_NUMBER = re.compile(r"[ \t\n\r\f\v]*([+-]?\d+)")


def parse_version_quad(string: str) -> Tuple[int, int, int, int]:
    """Parse up to four dot-separated numbers, e.g. ``"7.1.431"``.

    Each component is read like ``strtol`` would: leading whitespace and a
    sign are allowed, and a component with no digits reads as zero. One
    separator character is skipped after each component, and missing
    trailing components are zero.
    """
    quad = []
    pos = 0
    for _ in range(4):
        match = _NUMBER.match(string, pos)
        if match:
            quad.append(int(match.group(1)))
            pos = match.end()
        else:
            quad.append(0)
        if pos < len(string):
            pos += 1
    return (quad[0], quad[1], quad[2], quad[3])