"""Helpers for reading the line-oriented formats the prompts ask the model for."""

import re
from typing import Dict, List, Iterable

_BULLET = re.compile(r"^(?:[-*•]|\d+[.)])\s*")


def parse_fields(text: str, keys: Iterable[str]) -> Dict[str, str]:
    """
    Extract ``KEY: value`` lines.

    Only the first occurrence of each key is kept; keys are matched at the
    start of a line, case-insensitively.
    """
    wanted = {key.upper() for key in keys}
    fields: Dict[str, str] = {}

    for line in text.splitlines():
        stripped = line.strip()
        if ":" not in stripped:
            continue
        key, _, value = stripped.partition(":")
        key = key.strip().strip("*").strip().upper()
        if key in wanted and key not in fields:
            fields[key] = value.strip()

    return fields


def split_list(value: str) -> List[str]:
    """Split a comma-separated value, dropping empty items and brackets."""
    value = value.strip().strip("[]")
    return [item.strip() for item in value.split(",") if item.strip()]


def extract_section_items(text: str, header: str, stop_headers: Iterable[str] = ()) -> List[str]:
    """
    Collect bullet or numbered items that follow a header line.

    Collection stops at the first line mentioning any of ``stop_headers``.
    """
    header = header.upper()
    stops = [s.upper() for s in stop_headers]
    items: List[str] = []
    in_section = False

    for line in text.splitlines():
        upper = line.upper()
        if not in_section:
            if header in upper:
                in_section = True
            continue

        if any(stop in upper for stop in stops):
            break

        stripped = line.strip()
        if _BULLET.match(stripped):
            item = _BULLET.sub("", stripped).strip()
            if item:
                items.append(item)

    return items


def to_float(value: str, default: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Parse a float and clamp it into [lower, upper]; fall back to default."""
    match = re.search(r"-?\d+(?:\.\d+)?", value or "")
    if not match:
        return default
    return max(lower, min(upper, float(match.group())))
