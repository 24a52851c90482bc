from __future__ import annotations

import re

_INTEGER_PATTERN = re.compile(r'^\s*\d+\s*$')


def normalize_sort_text(value: str | None) -> str:
    return (value or '').strip().lower()


def extract_table_number(value: str | None) -> int | None:
    if not _INTEGER_PATTERN.match(value or ''):
        return None
    return int(value)


def table_sort_key(table_no: str | None) -> tuple[int, int, str]:
    """Numeric table numbers first in numeric order, everything else after by text."""
    normalized = normalize_sort_text(table_no)
    number = extract_table_number(table_no)
    if number is None:
        return (1, 0, normalized)
    return (0, number, normalized)
