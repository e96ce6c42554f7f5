"""
Sub-record CRUD routes, scoped to a visit.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response

from eyeexam.deps import get_repositories
from eyeexam.models.api import RecordPage
from eyeexam.services.repository import SubRecordRepository

router = APIRouter()


def _repository(kind: str, repositories: Dict[str, SubRecordRepository]) -> SubRecordRepository:
    for repository in repositories.values():
        if kind in (repository.kind.name, repository.kind.slug):
            return repository
    raise HTTPException(status_code=404, detail=f"Unknown record kind: {kind}")


@router.get("/{visit_id}/records/{kind}", response_model=RecordPage)
def list_records(
    visit_id: str,
    kind: str,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=100),
    search: Optional[str] = None,
    repositories=Depends(get_repositories),
):
    return _repository(kind, repositories).list(visit_id, page=page, per_page=per_page, search=search)


@router.post("/{visit_id}/records/{kind}", status_code=201)
def create_record(visit_id: str, kind: str, payload: Dict[str, Any] = Body(...), repositories=Depends(get_repositories)):
    """Create a record from its flat form; the path's visit id wins over any in the body."""
    return _repository(kind, repositories).create({**payload, "visit_id": visit_id})


@router.patch("/{visit_id}/records/{kind}/{record_id}")
def update_record(visit_id: str, kind: str, record_id: str, payload: Dict[str, Any] = Body(...), repositories=Depends(get_repositories)):
    # ownership of record_id by visit_id is enforced by the backend
    return _repository(kind, repositories).update(record_id, payload)


@router.delete("/{visit_id}/records/{kind}/{record_id}", status_code=204)
def delete_record(visit_id: str, kind: str, record_id: str, repositories=Depends(get_repositories)):
    _repository(kind, repositories).delete(record_id)
    return Response(status_code=204)


@router.get("/{visit_id}/records/{kind}/{record_id}/form")
def record_form(visit_id: str, kind: str, record_id: str, repositories=Depends(get_repositories)):
    repository = _repository(kind, repositories)
    record = repository.get(record_id)
    return {"record_id": record.get("id", record_id), "kind": repository.kind.name, "values": repository.kind.decode(record)}
