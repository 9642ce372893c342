"""
CSV export with one row per measured person per week.
"""

from __future__ import annotations

import re
from dataclasses import astuple, dataclass
from typing import Any, Iterable

HEADER = (
    "Woche",
    "Gruppe",
    "Anzahl-Personen",
    "Leser-Name",
    "Wörter_3min",
    "WPM",
    "WPS",
    "Fehler",
    "WCPM (3-Min)",
    "A_WPM_verbessert",
    "B_Fehler_reduziert",
    "Coaching",
    "Mission",
    "Punkte-Gruppe-Roh",
    "Punkte-Gruppe-Normalisiert",
    "Punkte-Gruppe-Kumuliert",
)

_NEEDS_QUOTES = re.compile(r'[",\n;]')


@dataclass
class CsvRow:
    week: int
    group: str
    person_count: int
    reader_name: str
    words3min: Any
    wpm: Any
    wps: Any
    errors: Any
    wcpm: Any
    flag_a: bool
    flag_b: bool
    flag_c: bool
    flag_d: bool
    points_raw: Any
    points_normalized: Any
    points_cumulative: Any


def _cell(value: Any) -> str:
    if value is None:
        text = ""
    elif isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    if _NEEDS_QUOTES.search(text):
        return '"' + text.replace('"', '""') + '"'
    return text


def to_csv(rows: Iterable[CsvRow]) -> str:
    lines = [",".join(_cell(h) for h in HEADER)]
    for row in rows:
        lines.append(",".join(_cell(v) for v in astuple(row)))
    return "\n".join(lines)
