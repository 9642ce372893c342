"""
Pydantic schemas for the HTTP API.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class GroupCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)


class MemberCreate(BaseModel):
    groupId: str = Field(..., min_length=1)
    pid: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    alias: Optional[str] = None


class MemberAddedResponse(BaseModel):
    added: bool


class Reading(BaseModel):
    pid: Optional[str] = None
    name: Optional[str] = None
    alias: Optional[str] = None
    words3min: Union[int, float] = Field(default=0, ge=0)
    errors: Union[int, float] = Field(default=0, ge=0)


class RecordWeekRequest(BaseModel):
    readings: list[Reading]
    coachingMet: bool = False
    missionMet: bool = False
    savedAt: Optional[str] = None


class SettingValue(BaseModel):
    value: Any = None


class SettingResponse(BaseModel):
    name: str
    value: Any = None


class ImportResponse(BaseModel):
    status: Literal["ok"]
    groups: int
    weeks: int
    settings: int


class RestoreResponse(BaseModel):
    ok: bool
    version: Optional[int] = None
    exportedAt: Optional[str] = None


class HealthResponse(BaseModel):
    backend: str
    ok: bool
    missing: list[str]


class StatusResponse(BaseModel):
    status: Literal["ok"]


class GroupSummaryResponse(BaseModel):
    groupId: str
    weeks: int
    cumulativePoints: float
    level: str
    lastLevelUpWeek: int
    medianWcpmLastWeek: float
