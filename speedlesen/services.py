"""
Workflows that combine scoring with the store.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from speedlesen import scoring
from speedlesen.csv_export import CsvRow
from speedlesen.models import PersonMeasurement, Week, WeekFlags
from speedlesen.store import StoreFacade

logger = logging.getLogger(__name__)

MODE_SETTING = "mode"


def record_week(
    store: StoreFacade,
    group_id: str,
    week_number: int,
    readings: Iterable[Mapping[str, Any]],
    coaching_met: bool = False,
    mission_met: bool = False,
    saved_at: Optional[str] = None,
) -> Week:
    """
    Score raw readings (words read in three minutes, errors) for one week and
    persist the result. Points are compared against the closest earlier week
    and accumulated over all earlier weeks of the group.
    """
    persons = [
        PersonMeasurement.from_dict(
            {
                "pid": r.get("pid"),
                "id": r.get("id"),
                "name": r.get("name"),
                "alias": r.get("alias"),
                "words3min": r.get("words3min", 0),
                "errors": r.get("errors", 0),
                "personPoints": r.get("personPoints"),
            }
        )
        for r in readings
    ]
    earlier = [
        w for w in store.get_group_weeks(group_id) if w.week_number < week_number
    ]
    previous = earlier[-1].persons if earlier else []
    mode = store.get_setting(MODE_SETTING, scoring.MODE_STANDARD)

    points = scoring.team_points(previous, persons, coaching_met, mission_met, mode)
    normalized = scoring.normalize_team_points(points.raw, len(persons))
    cumulative = sum(w.points_normalized for w in earlier) + normalized

    week = Week(
        group_id=group_id,
        week_number=week_number,
        person_count=len(persons),
        persons=persons,
        flags=WeekFlags(points.flag_a, points.flag_b, points.flag_c, points.flag_d),
        points_raw=points.raw,
        points_normalized=normalized,
        points_cumulative=cumulative,
        saved_at=saved_at or datetime.now(timezone.utc).isoformat(),
    )
    logger.info(
        "Recording week %s for group %s: %s raw points (%s mode)",
        week_number,
        group_id,
        points.raw,
        mode,
    )
    return store.write_week(week)


def group_summary(store: StoreFacade, group_id: str) -> Dict[str, Any]:
    weeks = store.get_group_weeks(group_id)
    cumulative = sum(w.points_normalized for w in weeks)
    return {
        "groupId": group_id,
        "weeks": len(weeks),
        "cumulativePoints": cumulative,
        "level": scoring.level_for_cumulative(cumulative),
        "lastLevelUpWeek": scoring.last_level_up_week(weeks),
        "medianWcpmLastWeek": scoring.median_wcpm_last_week(weeks),
    }


def csv_rows(store: StoreFacade) -> List[CsvRow]:
    rows: List[CsvRow] = []
    for group in store.get_groups():
        for week in store.get_group_weeks(group.id):
            flags = week.flags
            common = dict(
                week=week.week_number,
                group=week.group_id,
                person_count=week.person_count,
                flag_a=flags.improved_wpm,
                flag_b=flags.reduced_errors,
                flag_c=flags.coaching_met,
                flag_d=flags.mission_met,
                points_raw=week.points_raw,
                points_normalized=week.points_normalized,
                points_cumulative=week.points_cumulative,
            )
            if not week.persons:
                rows.append(
                    CsvRow(
                        reader_name="",
                        words3min=None,
                        wpm=None,
                        wps=None,
                        errors=None,
                        wcpm=None,
                        **common,
                    )
                )
            for person in week.persons:
                rows.append(
                    CsvRow(
                        reader_name=person.alias or person.name,
                        words3min=person.words3min,
                        wpm=person.wpm,
                        wps=person.wps,
                        errors=person.errors,
                        wcpm=person.wcpm,
                        **common,
                    )
                )
    return rows
