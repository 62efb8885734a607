"""Launch preference resolution routes."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from errors import LaunchConfigNotFound
from launches.models import LaunchDTO
from launches.service import launch_preference_service

router = APIRouter(prefix="/api/launches", tags=["launches"])


class PreferenceKeyResponse(BaseModel):
    config_name: str
    preferred_name: str


class DuplicateResponse(BaseModel):
    config_name: str
    preferred_name: str
    targets: list[str]
    tie: bool


class EffectiveLaunchesResponse(BaseModel):
    launches: list[LaunchDTO]
    effective: list[LaunchDTO]
    duplicates: list[DuplicateResponse]
    conflicts: list[PreferenceKeyResponse] = []


@router.get("", response_model=EffectiveLaunchesResponse)
def get_effective_launches(
    config: str = Query(...),
    host: Optional[str] = Query(default=None),
    user: Optional[str] = Query(default=None),
    preferred_type: Optional[str] = Query(default=None),
):
    if not (host or user):
        raise HTTPException(status_code=400, detail="host or user is required")
    try:
        resolved = launch_preference_service.resolve(host, user, config, preferred_type)
    except LaunchConfigNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return EffectiveLaunchesResponse(
        launches=resolved.launches,
        effective=list(resolved.effective.values()),
        duplicates=[
            DuplicateResponse(
                config_name=d.config_name,
                preferred_name=d.preferred_name,
                targets=list(d.targets),
                tie=d.tie,
            )
            for d in resolved.duplicates
        ],
        conflicts=[
            PreferenceKeyResponse(config_name=config_name, preferred_name=preferred_name)
            for config_name, preferred_name in resolved.conflicts
        ],
    )


@router.get("/groups/{group_name}", response_model=list[LaunchDTO])
def get_group_launches(group_name: str, config: Optional[str] = Query(default=None)):
    try:
        return launch_preference_service.retrieve_launches_by_group(group_name, config)
    except LaunchConfigNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
