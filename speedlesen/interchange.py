"""
Import/export of the whole dataset as JSON.

Two shapes are accepted on import:

* canonical: ``groups`` / ``weeks`` / ``settings`` arrays, rosters embedded
  in each group (the only shape ever exported);
* legacy: ``gruppen`` / ``mitglieder`` / ``messungen`` arrays, with members
  kept in a flat list that points at their group via ``gruppe_id``.

A payload is classified once (``classify``) and turned into a ``Dataset``
(``normalize``) before any storage call is made.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Union

from speedlesen.errors import FormatError, ValidationError
from speedlesen.models import Dataset, Group, Person, Setting, Week
from speedlesen.schema import SCHEMA_VERSION

CANONICAL_KEYS = ("groups", "weeks")
LEGACY_KEYS = ("gruppen", "mitglieder", "messungen")

# internal measurement field -> wire field
PERSON_WIRE_FIELDS = (
    ("words3min", "woerter3"),
    ("wpm", "wpm"),
    ("wps", "wps"),
    ("errors", "fehler"),
    ("wcpm", "wcpm"),
    ("personPoints", "punkte_person"),
)

LEGACY_FLAG_FIELDS = ("flagA", "flagB", "flagC", "flagD")


@dataclass(frozen=True)
class CanonicalPayload:
    data: Mapping[str, Any]
    kind: ClassVar[str] = "canonical"


@dataclass(frozen=True)
class LegacyPayload:
    data: Mapping[str, Any]
    kind: ClassVar[str] = "legacy"


TaggedPayload = Union[CanonicalPayload, LegacyPayload]


def _has_list(payload: Mapping[str, Any], keys: Iterable[str]) -> bool:
    return any(isinstance(payload.get(key), list) for key in keys)


def classify(payload: Any) -> TaggedPayload:
    """Decide which import shape ``payload`` uses."""
    if not isinstance(payload, Mapping):
        raise FormatError("Import payload must be a JSON object.")
    if _has_list(payload, CANONICAL_KEYS):
        return CanonicalPayload(payload)
    if _has_list(payload, LEGACY_KEYS):
        return LegacyPayload(payload)
    raise FormatError(
        "Import payload has neither groups/weeks nor gruppen/mitglieder/messungen."
    )


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _records(payload: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    items = payload.get(key) or []
    if not isinstance(items, list):
        raise FormatError(f"'{key}' must be an array.")
    for item in items:
        if not isinstance(item, Mapping):
            raise FormatError(f"Entries of '{key}' must be objects.")
    return items


def _measurement(data: Mapping[str, Any]) -> Dict[str, Any]:
    record = {
        "pid": data.get("pid"),
        "id": data.get("id"),
        "name": data.get("name"),
        "alias": data.get("alias"),
    }
    for internal, wire in PERSON_WIRE_FIELDS:
        record[internal] = _first(data, wire, internal)
    return {k: v for k, v in record.items() if v is not None}


def _week(data: Mapping[str, Any], group_keys: Iterable[str]) -> Week:
    flags = data.get("flags") or {}
    if not isinstance(flags, Mapping):
        raise FormatError("Week flags must be an object.")
    flags = dict(flags)
    for name in LEGACY_FLAG_FIELDS:
        if name not in flags and name in data:
            flags[name] = data[name]
    persons = _first(data, "personen", "persons") or []
    if not isinstance(persons, list) or not all(
        isinstance(p, Mapping) for p in persons
    ):
        raise FormatError("Week persons must be an array of objects.")
    record = {
        "groupId": _first(data, *group_keys),
        "weekNumber": _first(data, "weekNumber", "woche"),
        "personCount": _first(data, "anzahl_personen", "personCount"),
        "persons": [_measurement(p) for p in persons],
        "flags": flags,
        "pointsRaw": _first(data, "punkte_gruppe_roh", "pointsRaw"),
        "pointsNormalized": _first(
            data, "punkte_gruppe_normalisiert", "pointsNormalized"
        ),
        "pointsCumulative": _first(
            data, "punkte_gruppe_kumuliert", "pointsCumulative"
        ),
        "savedAt": data.get("savedAt"),
    }
    return Week.from_dict(record)


def _settings(payload: Mapping[str, Any]) -> List[Setting]:
    settings: Dict[str, Setting] = {}
    for item in _records(payload, "settings"):
        name = item.get("name")
        if not name:
            raise ValidationError("Setting needs a name.")
        settings[str(name)] = Setting(name=str(name), value=item.get("value"))
    return list(settings.values())


class _DatasetBuilder:
    """Collects records, merging duplicates by natural key (last one wins)."""

    def __init__(self):
        self.groups: Dict[str, Dict[str, Person]] = {}
        self.weeks: Dict[str, Week] = {}

    def group(self, group_id: Any) -> Dict[str, Person]:
        if group_id is None or str(group_id) == "":
            raise ValidationError("Group needs an id.")
        return self.groups.setdefault(str(group_id), {})

    def member(self, group_id: Any, data: Mapping[str, Any]) -> None:
        if not isinstance(data, Mapping):
            raise FormatError("Roster entries must be objects.")
        person = Person.from_dict(data)
        self.group(group_id)[person.pid] = person

    def week(self, week: Week) -> None:
        self.group(week.group_id)
        self.weeks[week.key] = week

    def build(self, settings: List[Setting]) -> Dataset:
        return Dataset(
            groups=[
                Group(id=group_id, members=list(members.values()))
                for group_id, members in self.groups.items()
            ],
            weeks=list(self.weeks.values()),
            settings=settings,
        )


def _normalize_canonical(payload: Mapping[str, Any]) -> Dataset:
    builder = _DatasetBuilder()
    for group in _records(payload, "groups"):
        group_id = group.get("id")
        builder.group(group_id)
        for member in _first(group, "personen", "members") or []:
            builder.member(group_id, member)
    for week in _records(payload, "weeks"):
        builder.week(_week(week, ("groupId", "gruppe")))
    return builder.build(_settings(payload))


def _normalize_legacy(payload: Mapping[str, Any]) -> Dataset:
    builder = _DatasetBuilder()
    for group in _records(payload, "gruppen"):
        builder.group(group.get("id"))
    for member in _records(payload, "mitglieder"):
        builder.member(_first(member, "gruppe_id", "gruppe"), member)
    for week in _records(payload, "messungen"):
        builder.week(_week(week, ("gruppe_id", "gruppe", "groupId")))
    return builder.build(_settings(payload))


def normalize(tagged: TaggedPayload) -> Dataset:
    """Convert a classified payload into the canonical model."""
    if isinstance(tagged, LegacyPayload):
        return _normalize_legacy(tagged.data)
    return _normalize_canonical(tagged.data)


def parse(payload: Any) -> Dataset:
    return normalize(classify(payload))


def _person_to_wire(person: Person) -> Dict[str, Any]:
    return {
        "pid": person.pid,
        "name": person.name,
        "alias": person.alias or person.name,
    }


def _week_to_wire(week: Week) -> Dict[str, Any]:
    personen = []
    for person in week.persons:
        record = _person_to_wire(person)
        internal = person.as_dict()
        for field_name, wire in PERSON_WIRE_FIELDS:
            record[wire] = internal[field_name]
        personen.append(record)
    return {
        "groupId": week.group_id,
        "weekNumber": week.week_number,
        "gruppe": week.group_id,
        "woche": week.week_number,
        "anzahl_personen": week.person_count,
        "personen": personen,
        "flags": week.flags.as_dict(),
        "punkte_gruppe_roh": week.points_raw,
        "punkte_gruppe_normalisiert": week.points_normalized,
        "punkte_gruppe_kumuliert": week.points_cumulative,
        "savedAt": week.saved_at,
    }


def serialize(dataset: Dataset, exported_at: str) -> Dict[str, Any]:
    """Canonical export of ``dataset``. Records are emitted in key order."""
    groups = sorted(dataset.groups, key=lambda g: g.id)
    weeks = sorted(dataset.weeks, key=lambda w: (w.group_id, w.week_number))
    settings = sorted(dataset.settings, key=lambda s: s.name)
    return {
        "version": SCHEMA_VERSION,
        "groups": [
            {"id": g.id, "personen": [_person_to_wire(p) for p in g.members]}
            for g in groups
        ],
        "weeks": [_week_to_wire(w) for w in weeks],
        "settings": [s.as_dict() for s in settings],
        "exportedAt": exported_at,
    }
