"""
Storage backends: a transactional SQLAlchemy store and a snapshot fallback.

Both implement ``StoreBackend`` over model objects. Input validation and
normalization happen in ``speedlesen.store``; backends only persist.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from contextlib import contextmanager, nullcontext
from typing import Any, Dict, Iterator, List, Optional, Protocol

from sqlalchemy import create_engine, delete, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from speedlesen.errors import StorageError
from speedlesen.models import Dataset, Group, Person, Setting, Week
from speedlesen.reconcile import missing_roster_entries
from speedlesen.schema import (
    GroupRow,
    MemberRow,
    SchemaManager,
    SettingRow,
    WeekRow,
    empty_snapshot,
    ensure_snapshot_defaults,
    snapshot_missing_collections,
)

logger = logging.getLogger(__name__)


class StoreBackend(Protocol):
    """Interface both backends provide to the facade."""

    name: str

    def ensure_group(self, group_id: str) -> None:
        ...

    def list_groups(self) -> List[Group]:
        ...

    def add_member(self, group_id: str, person: Person) -> bool:
        ...

    def list_members(self, group_id: str) -> List[Person]:
        ...

    def write_week(self, week: Week) -> None:
        ...

    def list_weeks(self, group_id: str) -> List[Week]:
        ...

    def list_all_weeks(self) -> List[Week]:
        ...

    def get_setting(self, name: str) -> Optional[Setting]:
        ...

    def put_setting(self, setting: Setting) -> None:
        ...

    def list_settings(self) -> List[Setting]:
        ...

    def reset(self) -> None:
        ...

    def load_dataset(self, dataset: Dataset, *, overwrite: bool) -> None:
        ...

    def schema_status(self) -> Dict[str, Any]:
        ...


def _is_sqlite_memory(url: str) -> bool:
    return url.startswith("sqlite") and (
        ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://")
    )


class SqlStore:
    """
    SQLAlchemy-backed store. Accepts any SQLAlchemy URL (e.g., Postgres or
    SQLite). Every public call runs inside a single transaction.
    """

    name = "sql"

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("database_url is required for SqlStore")
        options: Dict[str, Any] = {"future": True, "pool_pre_ping": True}
        shared_connection = _is_sqlite_memory(database_url)
        if shared_connection:
            options["poolclass"] = StaticPool
        if database_url.startswith("sqlite"):
            options["connect_args"] = {"check_same_thread": False}
        self.engine = create_engine(database_url, **options)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        self.schema = SchemaManager(self.engine)
        # A single shared SQLite connection cannot hold two transactions.
        self._serial = threading.RLock() if shared_connection else None

    def probe(self) -> None:
        """Raise if the database cannot be reached."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def initialize(self) -> None:
        self.schema.initialize()
        self.schema.verify()

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        with self._serial or nullcontext():
            try:
                with self.Session.begin() as session:
                    yield session
            except SQLAlchemyError as exc:
                logger.error("Transaction aborted: %s", exc)
                raise StorageError(f"Storage transaction failed: {exc}") from exc

    def _ensure_group(self, session: Session, group_id: str) -> None:
        if session.get(GroupRow, group_id) is None:
            session.add(GroupRow(id=group_id))
            session.flush()

    def _roster(self, session: Session, group_id: str) -> List[MemberRow]:
        stmt = (
            select(MemberRow)
            .where(MemberRow.group_id == group_id)
            .order_by(MemberRow.position.asc())
        )
        return list(session.execute(stmt).scalars())

    def _append_members(
        self, session: Session, group_id: str, people: List[Person]
    ) -> None:
        if not people:
            return
        stmt = select(func.max(MemberRow.position)).where(
            MemberRow.group_id == group_id
        )
        last = session.execute(stmt).scalar_one_or_none()
        position = -1 if last is None else last
        for person in people:
            position += 1
            session.add(
                MemberRow(
                    group_id=group_id,
                    pid=person.pid,
                    position=position,
                    name=person.name,
                    alias=person.alias,
                )
            )
        session.flush()

    def _upsert_week(self, session: Session, week: Week) -> None:
        self._ensure_group(session, week.group_id)
        row = session.get(WeekRow, week.key)
        if row:
            row.data = week.as_dict()
        else:
            session.add(
                WeekRow(
                    key=week.key,
                    group_id=week.group_id,
                    week_number=week.week_number,
                    data=week.as_dict(),
                )
            )
        roster = [
            Person(pid=m.pid, name=m.name, alias=m.alias)
            for m in self._roster(session, week.group_id)
        ]
        self._append_members(
            session, week.group_id, missing_roster_entries(roster, week.persons)
        )

    def _clear(self, session: Session) -> None:
        for model in (WeekRow, MemberRow, SettingRow, GroupRow):
            session.execute(delete(model))

    def ensure_group(self, group_id: str) -> None:
        with self._transaction() as session:
            self._ensure_group(session, group_id)

    def list_groups(self) -> List[Group]:
        with self._transaction() as session:
            groups = {
                row.id: Group(id=row.id)
                for row in session.execute(
                    select(GroupRow).order_by(GroupRow.id.asc())
                ).scalars()
            }
            members = session.execute(
                select(MemberRow).order_by(
                    MemberRow.group_id.asc(), MemberRow.position.asc()
                )
            ).scalars()
            for m in members:
                if m.group_id in groups:
                    groups[m.group_id].members.append(
                        Person(pid=m.pid, name=m.name, alias=m.alias)
                    )
            return list(groups.values())

    def add_member(self, group_id: str, person: Person) -> bool:
        with self._transaction() as session:
            self._ensure_group(session, group_id)
            if session.get(MemberRow, (group_id, person.pid)) is not None:
                return False
            self._append_members(session, group_id, [person])
            return True

    def list_members(self, group_id: str) -> List[Person]:
        with self._transaction() as session:
            return [
                Person(pid=m.pid, name=m.name, alias=m.alias)
                for m in self._roster(session, group_id)
            ]

    def write_week(self, week: Week) -> None:
        with self._transaction() as session:
            self._upsert_week(session, week)

    def list_weeks(self, group_id: str) -> List[Week]:
        with self._transaction() as session:
            stmt = (
                select(WeekRow)
                .where(WeekRow.group_id == group_id)
                .order_by(WeekRow.week_number.asc())
            )
            return [Week.from_dict(row.data) for row in session.execute(stmt).scalars()]

    def list_all_weeks(self) -> List[Week]:
        with self._transaction() as session:
            stmt = select(WeekRow).order_by(
                WeekRow.group_id.asc(), WeekRow.week_number.asc()
            )
            return [Week.from_dict(row.data) for row in session.execute(stmt).scalars()]

    def get_setting(self, name: str) -> Optional[Setting]:
        with self._transaction() as session:
            row = session.get(SettingRow, name)
            return Setting(name=row.name, value=row.value) if row else None

    def put_setting(self, setting: Setting) -> None:
        with self._transaction() as session:
            row = session.get(SettingRow, setting.name)
            if row:
                row.value = setting.value
            else:
                session.add(SettingRow(name=setting.name, value=setting.value))

    def list_settings(self) -> List[Setting]:
        with self._transaction() as session:
            rows = session.execute(
                select(SettingRow).order_by(SettingRow.name.asc())
            ).scalars()
            return [Setting(name=row.name, value=row.value) for row in rows]

    def reset(self) -> None:
        with self._transaction() as session:
            self._clear(session)

    def load_dataset(self, dataset: Dataset, *, overwrite: bool) -> None:
        with self._transaction() as session:
            if overwrite:
                self._clear(session)
                session.flush()
            for group in dataset.groups:
                self._ensure_group(session, group.id)
                fresh: List[Person] = []
                for person in group.members:
                    row = session.get(MemberRow, (group.id, person.pid))
                    if row is None:
                        fresh.append(person)
                    else:
                        row.name = person.name
                        row.alias = person.alias
                self._append_members(session, group.id, fresh)
            for week in dataset.weeks:
                self._upsert_week(session, week)
            for setting in dataset.settings:
                row = session.get(SettingRow, setting.name)
                if row:
                    row.value = setting.value
                else:
                    session.add(SettingRow(name=setting.name, value=setting.value))

    def schema_status(self) -> Dict[str, Any]:
        try:
            missing = self.schema.missing_tables()
        except SQLAlchemyError as exc:
            raise StorageError(f"Schema inspection failed: {exc}") from exc
        return {"ok": not missing, "missing": missing}


class SnapshotStore:
    """
    Fallback store holding everything in one JSON snapshot.

    Each mutation updates the in-memory state and then rewrites the whole
    snapshot file. A failure between those steps can leave the file behind
    the in-memory state; there is no cross-step atomicity. Without a path
    nothing is written and the state lives only as long as the process.
    """

    name = "snapshot"

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._lock = threading.RLock()
        self._state = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path or not os.path.exists(self.path):
            return empty_snapshot()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Cannot read snapshot {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Snapshot {self.path} is not a JSON object")
        missing = snapshot_missing_collections(data)
        if missing:
            logger.warning("Snapshot is missing collections: %s", ", ".join(missing))
        return ensure_snapshot_defaults(data)

    def _persist(self) -> None:
        if not self.path:
            return
        blob = json.dumps(self._state, ensure_ascii=False)
        tmp_path = f"{self.path}.tmp"
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageError(f"Cannot write snapshot {self.path}: {exc}") from exc

    def _find_group(self, group_id: str) -> Optional[Dict[str, Any]]:
        for group in self._state["groups"]:
            if group["id"] == group_id:
                return group
        return None

    def _ensure_group(self, group_id: str) -> Dict[str, Any]:
        group = self._find_group(group_id)
        if group is None:
            group = {"id": group_id, "members": []}
            self._state["groups"].append(group)
        return group

    def _upsert_week(self, week: Week) -> None:
        group = self._ensure_group(week.group_id)
        weeks = self._state["weeks"]
        record = week.as_dict()
        for i, existing in enumerate(weeks):
            if (existing["groupId"], existing["weekNumber"]) == (
                week.group_id,
                week.week_number,
            ):
                weeks[i] = record
                break
        else:
            weeks.append(record)
        roster = [Person(**m) for m in group["members"]]
        for person in missing_roster_entries(roster, week.persons):
            group["members"].append(person.as_dict())

    def _upsert_setting(self, setting: Setting) -> None:
        for existing in self._state["settings"]:
            if existing["name"] == setting.name:
                existing["value"] = copy.deepcopy(setting.value)
                return
        self._state["settings"].append(copy.deepcopy(setting.as_dict()))

    def _weeks(self, group_id: Optional[str] = None) -> List[Week]:
        records = [
            w
            for w in self._state["weeks"]
            if group_id is None or w["groupId"] == group_id
        ]
        records.sort(key=lambda w: (w["groupId"], w["weekNumber"]))
        return [Week.from_dict(w) for w in records]

    def ensure_group(self, group_id: str) -> None:
        with self._lock:
            if self._find_group(group_id) is None:
                self._ensure_group(group_id)
                self._persist()

    def list_groups(self) -> List[Group]:
        with self._lock:
            groups = [Group.from_dict(g) for g in self._state["groups"]]
        return sorted(groups, key=lambda g: g.id)

    def add_member(self, group_id: str, person: Person) -> bool:
        with self._lock:
            group = self._ensure_group(group_id)
            added = all(m["pid"] != person.pid for m in group["members"])
            if added:
                group["members"].append(person.as_dict())
            self._persist()
            return added

    def list_members(self, group_id: str) -> List[Person]:
        with self._lock:
            group = self._find_group(group_id)
            return [Person(**m) for m in group["members"]] if group else []

    def write_week(self, week: Week) -> None:
        with self._lock:
            self._upsert_week(week)
            self._persist()

    def list_weeks(self, group_id: str) -> List[Week]:
        with self._lock:
            return self._weeks(group_id)

    def list_all_weeks(self) -> List[Week]:
        with self._lock:
            return self._weeks()

    def get_setting(self, name: str) -> Optional[Setting]:
        with self._lock:
            for s in self._state["settings"]:
                if s["name"] == name:
                    return Setting(name=s["name"], value=copy.deepcopy(s["value"]))
        return None

    def put_setting(self, setting: Setting) -> None:
        with self._lock:
            self._upsert_setting(setting)
            self._persist()

    def list_settings(self) -> List[Setting]:
        with self._lock:
            settings = copy.deepcopy(self._state["settings"])
        return sorted((Setting(**s) for s in settings), key=lambda s: s.name)

    def reset(self) -> None:
        with self._lock:
            self._state = empty_snapshot()
            self._persist()

    def load_dataset(self, dataset: Dataset, *, overwrite: bool) -> None:
        with self._lock:
            if overwrite:
                self._state = empty_snapshot()
            for incoming in dataset.groups:
                group = self._ensure_group(incoming.id)
                by_pid = {m["pid"]: m for m in group["members"]}
                for person in incoming.members:
                    if person.pid in by_pid:
                        by_pid[person.pid].update(person.as_dict())
                    else:
                        record = person.as_dict()
                        group["members"].append(record)
                        by_pid[person.pid] = record
            for week in dataset.weeks:
                self._upsert_week(week)
            for setting in dataset.settings:
                self._upsert_setting(setting)
            self._persist()

    def schema_status(self) -> Dict[str, Any]:
        with self._lock:
            missing = snapshot_missing_collections(self._state)
        return {"ok": not missing, "missing": missing}
