"""Flat CSV mapping for habit entries.

The format is the one the remote spreadsheet holds::

    Date,Time,Reason,Notes[,Custom1[,Custom2...]]
    2025-06-12,14:30:00,REWARD,Had a snack,Yes

Cells are never quoted. Commas inside any cell are written
as semicolons, so they cannot be recovered on import. Custom values are
always read back as text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence

from habitlog.constants import (
    CSV_BASE_HEADERS,
    CSV_DATE_FORMAT,
    CSV_DATETIME_FORMAT,
    CSV_REASON_ALIASES,
    CSV_TIME_FORMAT,
)
from habitlog.schemas import CustomColumn, HabitCategory, HabitEntry, TextValue

logger = logging.getLogger(__name__)

MIN_ROW_CELLS = 4


@dataclass
class DecodeResult:
    entries: List[HabitEntry] = field(default_factory=list)
    created_categories: List[HabitCategory] = field(default_factory=list)
    skipped_rows: int = 0


def escape_cell(value: str) -> str:
    return (value or "").replace(",", ";")


def unescape_cell(value: str) -> str:
    return (value or "").replace(";", ",")


def _single_line(value: str) -> str:
    return " ".join((value or "").splitlines())


def encode_entries(entries: Iterable[HabitEntry], custom_columns: Sequence[CustomColumn]) -> str:
    headers = list(CSV_BASE_HEADERS) + [escape_cell(_single_line(column.name)) for column in custom_columns]
    lines = [",".join(headers)]
    for entry in entries:
        cells = [
            entry.date.strftime(CSV_DATE_FORMAT),
            entry.date.strftime(CSV_TIME_FORMAT),
            escape_cell(_single_line(entry.category.name)),
            escape_cell(_single_line(entry.notes)),
        ]
        for column in custom_columns:
            value = entry.custom_fields.get(column.name)
            cells.append(escape_cell(_single_line(value.display())) if value is not None else "")
        lines.append(",".join(cells))
    return "\n".join(lines) + "\n"


def encode_bytes(entries: Iterable[HabitEntry], custom_columns: Sequence[CustomColumn]) -> bytes:
    return encode_entries(entries, custom_columns).encode("utf-8")


def _header_index(headers: List[str], names, fallback: int) -> int:
    for name in names:
        if name in headers:
            return headers.index(name)
    return fallback


def _cell(cells: List[str], index: int) -> str:
    if 0 <= index < len(cells):
        return cells[index]
    return ""


def decode_entries(
    text: str,
    categories: Sequence[HabitCategory],
    custom_columns: Sequence[CustomColumn],
    register_category: Optional[Callable[[str], HabitCategory]] = None,
) -> DecodeResult:
    """Parse CSV text into entries in file order.

    ``register_category`` is called once for every reason name that matches
    no known category (case-insensitively); it must return the category it
    created. Without it a detached custom category is synthesized.
    """
    result = DecodeResult()
    lines = [line.rstrip("\r") for line in (text or "").splitlines()]
    lines = [line for line in lines if line]
    if len(lines) < 2:
        return result

    headers = [cell.strip() for cell in lines[0].split(",")]
    date_index = _header_index(headers, ("Date",), 0)
    time_index = _header_index(headers, ("Time",), 1)
    reason_index = _header_index(headers, CSV_REASON_ALIASES, 2)
    notes_index = _header_index(headers, ("Notes",), 3)
    column_indexes = [
        (column.name, headers.index(escape_cell(column.name)))
        for column in custom_columns
        if escape_cell(column.name) in headers
    ]

    known = {}
    for category in categories:
        known.setdefault(category.name.lower(), category)

    for line in lines[1:]:
        cells = line.split(",")
        if len(cells) < MIN_ROW_CELLS:
            result.skipped_rows += 1
            continue

        date_text = _cell(cells, date_index).strip()
        time_text = _cell(cells, time_index).strip()
        reason = _cell(cells, reason_index).strip()
        if not date_text or not time_text or not reason:
            result.skipped_rows += 1
            continue
        try:
            when = datetime.strptime(f"{date_text} {time_text}", CSV_DATETIME_FORMAT)
        except ValueError:
            result.skipped_rows += 1
            continue

        category = known.get(reason.lower())
        if category is None:
            if register_category is not None:
                category = register_category(reason)
            else:
                category = HabitCategory(name=reason, is_custom=True)
            known[reason.lower()] = category
            result.created_categories.append(category)

        custom_fields = {}
        for name, index in column_indexes:
            if name in custom_fields or index >= len(cells):
                continue
            custom_fields[name] = TextValue(text=unescape_cell(cells[index]))

        result.entries.append(
            HabitEntry(
                date=when,
                category=category,
                notes=_cell(cells, notes_index),
                custom_fields=custom_fields,
            )
        )

    if result.skipped_rows:
        logger.info("Skipped %s unreadable CSV rows", result.skipped_rows)
    return result
