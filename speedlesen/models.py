"""
Canonical in-memory model shared by both store backends.

Records round-trip through ``as_dict`` / ``from_dict`` using the internal
English field names; the wire shapes live in ``speedlesen.interchange``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from speedlesen import scoring
from speedlesen.errors import FormatError, ValidationError


def to_number(value: Any) -> float | int:
    """Coerce ``value`` to a number, falling back to 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return 0 if isinstance(value, float) and not math.isfinite(value) else value
    if isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return 0
        if not math.isfinite(number):
            return 0
        return int(number) if number.is_integer() else number
    return 0


def to_week_number(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError("weekNumber must be a number.")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"weekNumber must be a whole number, got {value!r}.")


def person_id(data: Mapping[str, Any]) -> Optional[str]:
    """Resolve a person's identity as ``pid``, then ``id``, then ``name``."""
    for key in ("pid", "id", "name"):
        value = data.get(key)
        if value is not None and str(value) != "":
            return str(value)
    return None


def week_key(group_id: str, week_number: int) -> str:
    return f"{group_id}_W{week_number}"


@dataclass
class Person:
    pid: str
    name: str
    alias: Optional[str] = None

    def __post_init__(self):
        if not self.alias:
            self.alias = self.name

    def as_dict(self) -> dict:
        return {"pid": self.pid, "name": self.name, "alias": self.alias}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Person":
        pid = person_id(data)
        if pid is None:
            raise ValidationError("Person needs a pid, id or name.")
        name = data.get("name")
        name = pid if name is None else str(name)
        return cls(pid=pid, name=name, alias=data.get("alias") or None)


@dataclass
class Group:
    id: str
    members: List[Person] = field(default_factory=list)

    def member_ids(self) -> set[str]:
        return {m.pid for m in self.members}

    def as_dict(self) -> dict:
        return {"id": self.id, "members": [m.as_dict() for m in self.members]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Group":
        return cls(
            id=str(data["id"]),
            members=[Person.from_dict(m) for m in data.get("members") or []],
        )


@dataclass
class PersonMeasurement:
    pid: str
    name: str
    alias: Optional[str] = None
    words3min: float = 0
    wpm: float = 0
    wps: float = 0
    errors: float = 0
    wcpm: float = 0
    person_points: float = 0

    def __post_init__(self):
        if not self.alias:
            self.alias = self.name

    def as_dict(self) -> dict:
        return {
            "pid": self.pid,
            "name": self.name,
            "alias": self.alias,
            "words3min": self.words3min,
            "wpm": self.wpm,
            "wps": self.wps,
            "errors": self.errors,
            "wcpm": self.wcpm,
            "personPoints": self.person_points,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PersonMeasurement":
        pid = person_id(data)
        if pid is None:
            raise ValidationError("Measured person needs a pid, id or name.")
        name = data.get("name")
        name = pid if name is None else str(name)
        words = to_number(data.get("words3min"))
        errors = to_number(data.get("errors"))
        # Rates left out by the caller are derived from the raw word count.
        has_words = data.get("words3min") is not None
        wpm = data.get("wpm")
        wpm = scoring.wpm(words) if wpm is None and has_words else to_number(wpm)
        wps = data.get("wps")
        wps = scoring.wps(words) if wps is None and has_words else to_number(wps)
        wcpm = data.get("wcpm")
        if wcpm is None and has_words:
            wcpm = scoring.wcpm(wpm, errors)
        return cls(
            pid=pid,
            name=name,
            alias=data.get("alias") or None,
            words3min=words,
            wpm=wpm,
            wps=wps,
            errors=errors,
            wcpm=to_number(wcpm),
            person_points=to_number(data.get("personPoints")),
        )


@dataclass
class WeekFlags:
    improved_wpm: bool = False
    reduced_errors: bool = False
    coaching_met: bool = False
    mission_met: bool = False

    def __post_init__(self):
        self.improved_wpm = bool(self.improved_wpm)
        self.reduced_errors = bool(self.reduced_errors)
        self.coaching_met = bool(self.coaching_met)
        self.mission_met = bool(self.mission_met)

    def as_dict(self) -> dict:
        return {
            "improvedWpm": self.improved_wpm,
            "reducedErrors": self.reduced_errors,
            "coachingMet": self.coaching_met,
            "missionMet": self.mission_met,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "WeekFlags":
        data = data or {}
        return cls(
            improved_wpm=data.get("improvedWpm", data.get("flagA")),
            reduced_errors=data.get("reducedErrors", data.get("flagB")),
            coaching_met=data.get("coachingMet", data.get("flagC")),
            mission_met=data.get("missionMet", data.get("flagD")),
        )


@dataclass
class Week:
    group_id: str
    week_number: int
    person_count: int = 0
    persons: List[PersonMeasurement] = field(default_factory=list)
    flags: WeekFlags = field(default_factory=WeekFlags)
    points_raw: float = 0
    points_normalized: float = 0
    points_cumulative: float = 0
    saved_at: Optional[str] = None

    @property
    def key(self) -> str:
        return week_key(self.group_id, self.week_number)

    def as_dict(self) -> dict:
        return {
            "groupId": self.group_id,
            "weekNumber": self.week_number,
            "personCount": self.person_count,
            "persons": [p.as_dict() for p in self.persons],
            "flags": self.flags.as_dict(),
            "pointsRaw": self.points_raw,
            "pointsNormalized": self.points_normalized,
            "pointsCumulative": self.points_cumulative,
            "savedAt": self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Week":
        """Build a week from the internal record shape, validating its keys."""
        group_id = data.get("groupId")
        if group_id is None or str(group_id) == "":
            raise ValidationError("Week needs a groupId.")
        week_number = to_week_number(data.get("weekNumber"))
        raw_persons = data.get("persons") or []
        if not isinstance(raw_persons, list) or not all(
            isinstance(p, Mapping) for p in raw_persons
        ):
            raise FormatError("Week persons must be an array of objects.")
        persons = [PersonMeasurement.from_dict(p) for p in raw_persons]
        count = data.get("personCount")
        return cls(
            group_id=str(group_id),
            week_number=week_number,
            person_count=len(persons) if count is None else int(to_number(count)),
            persons=persons,
            flags=WeekFlags.from_dict(data.get("flags")),
            points_raw=to_number(data.get("pointsRaw")),
            points_normalized=to_number(data.get("pointsNormalized")),
            points_cumulative=to_number(data.get("pointsCumulative")),
            saved_at=data.get("savedAt"),
        )


@dataclass
class Setting:
    name: str
    value: Any = None

    def as_dict(self) -> dict:
        return {"name": self.name, "value": self.value}


@dataclass
class Dataset:
    """Everything a store holds, in canonical form."""

    groups: List[Group] = field(default_factory=list)
    weeks: List[Week] = field(default_factory=list)
    settings: List[Setting] = field(default_factory=list)
