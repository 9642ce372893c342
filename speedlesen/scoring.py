"""
Scoring rules for weekly reading measurements.

All functions are pure. Measurements are read by attribute (``pid``,
``name``, ``wpm``, ``errors``, ``wcpm``) and weeks by ``week_number``,
``points_normalized`` and ``persons``, so both model objects and simple
stand-ins work.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

MAX_RAW_POINTS = 10
REFERENCE_GROUP_SIZE = 2

POINTS_IMPROVED_WPM = 2
POINTS_REDUCED_ERRORS = 3
POINTS_COACHING = 2
POINTS_MISSION = 3

MODE_STANDARD = "standard"
MODE_STRICT = "strikt"

LEVELS = (
    ("Flow-Master", 30),
    ("Speedster", 20),
    ("Reader", 10),
)
STARTER_LEVEL = "Starter"


def _num(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def wpm(words3min) -> float:
    """Words per minute from a three-minute word count."""
    return _num(words3min) / 3


def wps(words3min) -> float:
    """Words per second from a three-minute word count."""
    return _num(words3min) / 180


def wcpm(words_per_minute, errors) -> float:
    """Words correct per minute."""
    return _num(words_per_minute) - _num(errors)


@dataclass(frozen=True)
class TeamPoints:
    raw: float
    flag_a: bool
    flag_b: bool
    flag_c: bool
    flag_d: bool


def _identity(person) -> str:
    return getattr(person, "pid", None) or getattr(person, "name", "")


def team_points(
    previous: Optional[Iterable],
    current: Optional[Iterable],
    coaching_met: bool,
    mission_met: bool,
    mode: str = MODE_STANDARD,
) -> TeamPoints:
    """
    Group points for one week compared with the week before.

    A: at least one person read faster, B: at least one person made fewer
    errors, C: coaching goal met, D: mission met. People are matched by pid
    (or name). Strict mode only awards A and B.
    """
    before = {_identity(p): p for p in previous or []}
    flag_a = False
    flag_b = False
    for person in current or []:
        prior = before.get(_identity(person))
        if prior is None:
            continue
        if _num(person.wpm) > _num(prior.wpm):
            flag_a = True
        if _num(person.errors) < _num(prior.errors):
            flag_b = True

    strict = mode == MODE_STRICT
    points = (POINTS_IMPROVED_WPM if flag_a else 0) + (
        POINTS_REDUCED_ERRORS if flag_b else 0
    )
    if not strict:
        points += POINTS_COACHING if coaching_met else 0
        points += POINTS_MISSION if mission_met else 0
    return TeamPoints(
        raw=min(MAX_RAW_POINTS, points),
        flag_a=flag_a,
        flag_b=flag_b,
        flag_c=bool(coaching_met),
        flag_d=bool(mission_met),
    )


def normalize_team_points(raw_points, person_count) -> float:
    """Scale raw points to the reference group size. Not capped."""
    count = max(1.0, _num(person_count) or 1.0)
    return _num(raw_points) * (REFERENCE_GROUP_SIZE / count)


def level_for_cumulative(total) -> str:
    total = _num(total)
    for name, minimum in LEVELS:
        if total >= minimum:
            return name
    return STARTER_LEVEL


def last_level_up_week(weeks: Iterable) -> int:
    """Week number in which the most recent level threshold was crossed."""
    reached = set()
    cumulative = 0.0
    last_week = 0
    for week in sorted(weeks or [], key=lambda w: w.week_number):
        cumulative += _num(week.points_normalized)
        for name, minimum in reversed(LEVELS):
            if cumulative >= minimum and name not in reached:
                reached.add(name)
                last_week = week.week_number
    return last_week


def median(values: Sequence[float]) -> float:
    if not values:
        return 0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def median_wcpm_last_week(weeks: Iterable) -> float:
    weeks = list(weeks or [])
    if not weeks:
        return 0
    latest = max(weeks, key=lambda w: w.week_number)
    return median([_num(p.wcpm) for p in latest.persons])
