"""
HTTP routes for the tracker API.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import Response

from speedlesen import backup, services
from speedlesen.csv_export import to_csv
from speedlesen.dependencies import get_store
from speedlesen.schemas import (
    GroupCreate,
    GroupSummaryResponse,
    HealthResponse,
    ImportResponse,
    MemberAddedResponse,
    MemberCreate,
    RecordWeekRequest,
    RestoreResponse,
    SettingResponse,
    SettingValue,
    StatusResponse,
)
from speedlesen.store import StoreFacade

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health(store: StoreFacade = Depends(get_store)):
    return HealthResponse(**store.schema_status())


@router.get("/groups")
def list_groups(store: StoreFacade = Depends(get_store)):
    return [group.as_dict() for group in store.get_groups()]


@router.post("/groups", response_model=StatusResponse, status_code=201)
def create_group(payload: GroupCreate, store: StoreFacade = Depends(get_store)):
    store.add_group(payload.id)
    return StatusResponse(status="ok")


@router.get("/groups/{group_id}/members")
def list_members(group_id: str, store: StoreFacade = Depends(get_store)):
    return [member.as_dict() for member in store.get_members_by_group(group_id)]


@router.post("/members", response_model=MemberAddedResponse)
def add_member(payload: MemberCreate, store: StoreFacade = Depends(get_store)):
    added = store.add_member(payload.model_dump(exclude_none=True))
    return MemberAddedResponse(added=added)


@router.get("/groups/{group_id}/weeks")
def list_weeks(group_id: str, store: StoreFacade = Depends(get_store)):
    return [week.as_dict() for week in store.get_group_weeks(group_id)]


@router.get("/groups/{group_id}/summary", response_model=GroupSummaryResponse)
def group_summary(group_id: str, store: StoreFacade = Depends(get_store)):
    return GroupSummaryResponse(**services.group_summary(store, group_id))


@router.post("/weeks")
def write_week(
    payload: Dict[str, Any] = Body(...), store: StoreFacade = Depends(get_store)
):
    """Store a fully computed week record as-is."""
    return store.write_week(payload).as_dict()


@router.post("/groups/{group_id}/weeks/{week_number}/record")
def record_week(
    group_id: str,
    week_number: int,
    payload: RecordWeekRequest,
    store: StoreFacade = Depends(get_store),
):
    """Score raw readings for one week and store the result."""
    week = services.record_week(
        store,
        group_id,
        week_number,
        [reading.model_dump() for reading in payload.readings],
        coaching_met=payload.coachingMet,
        mission_met=payload.missionMet,
        saved_at=payload.savedAt,
    )
    return week.as_dict()


@router.get("/settings/{name}", response_model=SettingResponse)
def get_setting(name: str, store: StoreFacade = Depends(get_store)):
    sentinel = object()
    value = store.get_setting(name, sentinel)
    if value is sentinel:
        raise HTTPException(status_code=404, detail="Setting not found")
    return SettingResponse(name=name, value=value)


@router.put("/settings/{name}", response_model=SettingResponse)
def put_setting(
    name: str, payload: SettingValue, store: StoreFacade = Depends(get_store)
):
    store.put_setting(name, payload.value)
    return SettingResponse(name=name, value=payload.value)


@router.get("/export")
def export_json(store: StoreFacade = Depends(get_store)):
    return store.export_json()


@router.post("/import", response_model=ImportResponse)
def import_json(
    payload: Any = Body(...),
    overwrite: bool = Query(False),
    store: StoreFacade = Depends(get_store),
):
    counts = store.import_json(payload, overwrite=overwrite)
    return ImportResponse(status="ok", **counts)


@router.get("/export.csv")
def export_csv(store: StoreFacade = Depends(get_store)):
    text = to_csv(services.csv_rows(store))
    return Response(
        content=text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="speedlesen.csv"'},
    )


@router.get("/backup")
def download_backup(store: StoreFacade = Depends(get_store)):
    payload = backup.create_backup_payload(store)
    filename = backup.backup_filename()
    return Response(
        content=backup.dumps_backup(payload),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/backup/restore", response_model=RestoreResponse)
def restore_backup(
    payload: Any = Body(...),
    overwrite: bool = Query(False),
    store: StoreFacade = Depends(get_store),
):
    return RestoreResponse(**backup.restore_backup(store, payload, overwrite=overwrite))


@router.post("/reset", response_model=StatusResponse)
def reset_all(store: StoreFacade = Depends(get_store)):
    store.reset_all()
    return StatusResponse(status="ok")
