"""Client version compatibility routes."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from errors import NoCompatibleVersion, ValidationError
from versions.models import VersionResolution
from versions.resolver import version_resolver

router = APIRouter(prefix="/api/versions", tags=["versions"])


@router.get("/minimal", response_model=VersionResolution)
def get_minimal_version(version: str = Query(...)):
    try:
        return version_resolver.resolve_minimal_version(version)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NoCompatibleVersion as exc:
        # 426 Upgrade Required: the client must install a newer release
        raise HTTPException(status_code=426, detail=str(exc)) from exc
