"""
Collection layout shared by both backends.

The SQL tables (with their keys and indexes) are declared here, together with
the default shape of the single-blob snapshot used by the fallback backend.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy import (
    JSON,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    inspect,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

Base = declarative_base()


class GroupRow(Base):
    __tablename__ = "groups"

    id = Column(String, primary_key=True)


class MemberRow(Base):
    __tablename__ = "group_members"

    group_id = Column(
        String, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True
    )
    pid = Column(String, primary_key=True)
    position = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    alias = Column(String, nullable=False)

    __table_args__ = (Index("ix_group_members_roster", "group_id", "position"),)


class WeekRow(Base):
    __tablename__ = "weeks"

    key = Column(String, primary_key=True)
    group_id = Column(String, ForeignKey("groups.id"), nullable=False, index=True)
    week_number = Column(Integer, nullable=False)
    data = Column(JSON, nullable=False)

    __table_args__ = (
        UniqueConstraint("group_id", "week_number", name="uq_weeks_group_week"),
    )


class SettingRow(Base):
    __tablename__ = "settings"

    name = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)


EXPECTED_TABLES = tuple(sorted(Base.metadata.tables))

SNAPSHOT_COLLECTIONS = ("groups", "weeks", "settings")


class SchemaManager:
    """Creates and checks the SQL schema for one engine."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def initialize(self) -> None:
        """Create missing tables and indexes. Safe to call repeatedly."""
        Base.metadata.create_all(self.engine)

    def missing_tables(self) -> List[str]:
        present = set(inspect(self.engine).get_table_names())
        return [name for name in EXPECTED_TABLES if name not in present]

    def verify(self) -> bool:
        missing = self.missing_tables()
        if missing:
            logger.warning(
                "Schema mismatch: missing tables [%s], expected [%s]",
                ", ".join(missing),
                ", ".join(EXPECTED_TABLES),
            )
        return not missing


def empty_snapshot() -> Dict[str, Any]:
    return {"version": SCHEMA_VERSION, "groups": [], "weeks": [], "settings": []}


def ensure_snapshot_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    data.setdefault("version", SCHEMA_VERSION)
    for key in SNAPSHOT_COLLECTIONS:
        if not isinstance(data.get(key), list):
            data[key] = []
    return data


def snapshot_missing_collections(data: Dict[str, Any]) -> List[str]:
    return [key for key in SNAPSHOT_COLLECTIONS if not isinstance(data.get(key), list)]
