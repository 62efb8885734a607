"""Archive search routes."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel

from connectors.criteria import IHESearchCriteria, SearchCriteria
from connectors.models import ArchiveQueryResult
from connectors.resolver import ArchiveOutcome, SearchCriteriaResolver, merged_results
from errors import SearchTimeout, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/search", tags=["search"])

search_resolver: Optional[SearchCriteriaResolver] = None


class SearchResponse(BaseModel):
    archives: list[ArchiveOutcome]
    results: list[ArchiveQueryResult]


def get_resolver() -> SearchCriteriaResolver:
    global search_resolver
    if search_resolver is None:
        search_resolver = SearchCriteriaResolver()
    return search_resolver


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def _run_search(criteria: SearchCriteria, authorization: Optional[str]) -> SearchResponse:
    try:
        outcomes = get_resolver().resolve(criteria, access_token=_bearer_token(authorization))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SearchTimeout as exc:
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    archives = list(outcomes.values())
    return SearchResponse(archives=archives, results=merged_results(archives))


@router.post("", response_model=SearchResponse)
def search(criteria: SearchCriteria, authorization: Optional[str] = Header(default=None)):
    """Query the requested archives; per-archive failures are reported in ``archives``."""
    return _run_search(criteria, authorization)


@router.post("/ihe", response_model=SearchResponse)
def search_ihe(criteria: IHESearchCriteria, authorization: Optional[str] = Header(default=None)):
    return _run_search(criteria, authorization)
