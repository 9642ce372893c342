"""
Keeps group rosters in step with the people who appear in weekly records.
"""

from __future__ import annotations

from typing import Iterable, List

from speedlesen.models import Person, PersonMeasurement


def missing_roster_entries(
    roster: Iterable[Person], persons: Iterable[PersonMeasurement]
) -> List[Person]:
    """
    Return minimal roster entries for measured people not yet on the roster.

    Entries come back in order of first appearance; existing roster entries
    are never touched, so aliases set elsewhere survive.
    """
    known = {member.pid for member in roster}
    added: List[Person] = []
    for person in persons:
        if person.pid in known:
            continue
        known.add(person.pid)
        added.append(Person(pid=person.pid, name=person.name))
    return added
