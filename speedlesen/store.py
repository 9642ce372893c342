"""
Single entry point to persisted data.

``open_store`` probes the transactional backend once and falls back to the
snapshot backend when it is unavailable. The resulting ``StoreFacade`` is
the handle every caller shares; it never switches backend afterwards.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from speedlesen import interchange
from speedlesen.config import Settings, get_settings
from speedlesen.db import SnapshotStore, SqlStore, StoreBackend
from speedlesen.errors import ValidationError
from speedlesen.models import Dataset, Group, Person, Setting, Week, person_id

logger = logging.getLogger(__name__)


def _required(data: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if value is not None and str(value) != "":
            return str(value)
    return None


class StoreFacade:
    """Uniform store API over whichever backend was selected."""

    def __init__(self, backend: StoreBackend):
        self.backend = backend

    @property
    def backend_name(self) -> str:
        return self.backend.name

    # Groups
    def add_group(self, group: Union[Group, Mapping[str, Any], str]) -> None:
        if isinstance(group, Group):
            group_id = group.id
        elif isinstance(group, str):
            group_id = group
        else:
            group_id = _required(group, "id", "groupId")
        if not group_id:
            raise ValidationError("Group needs an id.")
        self.backend.ensure_group(group_id)

    def get_groups(self) -> List[Group]:
        return sorted(self.backend.list_groups(), key=lambda g: g.id)

    # Members
    def add_member(self, member: Mapping[str, Any]) -> bool:
        """Add a person to a group roster. Returns False if already present."""
        group_id = _required(member, "groupId", "gruppe_id")
        if not group_id:
            raise ValidationError("Member needs a groupId.")
        pid = person_id(member)
        if pid is None:
            raise ValidationError("Member needs a pid, id or name.")
        name = member.get("name")
        person = Person(
            pid=pid,
            name=pid if name is None else str(name),
            alias=member.get("alias") or None,
        )
        return self.backend.add_member(group_id, person)

    def get_members_by_group(self, group_id: str) -> List[Person]:
        return self.backend.list_members(group_id)

    # Weeks
    def write_week(self, week: Union[Week, Mapping[str, Any]]) -> Week:
        record = week.as_dict() if isinstance(week, Week) else week
        normalized = Week.from_dict(record)
        self.backend.write_week(normalized)
        return normalized

    def get_group_weeks(self, group_id: str) -> List[Week]:
        return sorted(self.backend.list_weeks(group_id), key=lambda w: w.week_number)

    # Settings
    def get_setting(self, name: str, default: Any = None) -> Any:
        setting = self.backend.get_setting(name)
        return default if setting is None else setting.value

    def put_setting(self, name: str, value: Any) -> None:
        if not name:
            raise ValidationError("Setting needs a name.")
        self.backend.put_setting(Setting(name=name, value=value))

    def get_settings(self) -> List[Setting]:
        return sorted(self.backend.list_settings(), key=lambda s: s.name)

    def reset_all(self) -> None:
        logger.info("Clearing all collections (%s backend)", self.backend_name)
        self.backend.reset()

    # Interchange
    def export_json(self, exported_at: Optional[str] = None) -> Dict[str, Any]:
        dataset = Dataset(
            groups=self.get_groups(),
            weeks=self.backend.list_all_weeks(),
            settings=self.get_settings(),
        )
        stamp = exported_at or datetime.now(timezone.utc).isoformat()
        return interchange.serialize(dataset, stamp)

    def import_json(self, payload: Any, overwrite: bool = False) -> Dict[str, int]:
        """
        Import a canonical or legacy payload.

        The payload is classified and normalized before anything is written;
        ``overwrite`` replaces all data, otherwise records are upserted by
        their natural keys.
        """
        tagged = interchange.classify(payload)
        dataset = interchange.normalize(tagged)
        self.backend.load_dataset(dataset, overwrite=overwrite)
        counts = {
            "groups": len(dataset.groups),
            "weeks": len(dataset.weeks),
            "settings": len(dataset.settings),
        }
        logger.info(
            "Imported %s payload (overwrite=%s): %s",
            tagged.kind,
            overwrite,
            counts,
        )
        return counts

    def schema_status(self) -> Dict[str, Any]:
        status = self.backend.schema_status()
        return {"backend": self.backend_name, **status}


def open_store(settings: Optional[Settings] = None) -> StoreFacade:
    """Select a backend once and return the store handle."""
    settings = settings or get_settings()
    if settings.database_url and not settings.use_snapshot_backend:
        try:
            backend = SqlStore(settings.database_url)
            backend.probe()
            backend.initialize()
        except (SQLAlchemyError, ImportError, ValueError) as exc:
            logger.warning(
                "Transactional backend unavailable (%s); using snapshot store", exc
            )
        else:
            logger.info("Using transactional backend")
            return StoreFacade(backend)
    logger.info("Using snapshot backend (%s)", settings.snapshot_path)
    return StoreFacade(SnapshotStore(settings.snapshot_path))
