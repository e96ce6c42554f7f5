"""
Examination snapshot and report routes (interactive JSON and printable HTML).
"""
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from eyeexam.config import settings
from eyeexam.deps import get_patient_client, get_repositories
from eyeexam.models.api import ReportView, SnapshotResponse, VisitContext
from eyeexam.services.aggregator import collect_snapshot, load_consolidated_snapshot, snapshot_for_report
from eyeexam.services.renderer import build_report, render_printable
from eyeexam.services.snapshot import snapshot_as_json

router = APIRouter()


def _context(patient_name: Optional[str] = None, visit_date: Optional[str] = None, visit_type: Optional[str] = None) -> VisitContext:
    return VisitContext(patient_name=patient_name, visit_date=visit_date, visit_type=visit_type)


@router.get("/visits/{visit_id}/snapshot", response_model=SnapshotResponse)
def get_snapshot(visit_id: str, repositories=Depends(get_repositories)):
    snapshot = collect_snapshot(visit_id, repositories)
    return SnapshotResponse(
        visit_id=snapshot.visit_id,
        values=snapshot_as_json(snapshot),
        missing_kinds=sorted(snapshot.missing_kinds),
        sources=snapshot.sources,
    )


@router.get("/visits/{visit_id}/report", response_model=ReportView)
def get_report(
    visit_id: str,
    consultation_id: Optional[str] = None,
    context: VisitContext = Depends(_context),
    repositories=Depends(get_repositories),
    client=Depends(get_patient_client),
):
    snapshot = snapshot_for_report(
        visit_id, repositories, client, consultation_id, prefer_consolidated=settings.use_consolidated_snapshot
    )
    return build_report(snapshot, context)


@router.get("/visits/{visit_id}/report/print", response_class=HTMLResponse)
def print_report(
    visit_id: str,
    consultation_id: Optional[str] = None,
    context: VisitContext = Depends(_context),
    repositories=Depends(get_repositories),
    client=Depends(get_patient_client),
):
    snapshot = snapshot_for_report(
        visit_id, repositories, client, consultation_id, prefer_consolidated=settings.use_consolidated_snapshot
    )
    return HTMLResponse(render_printable(snapshot, context))


@router.get("/consultations/{consultation_id}/report/print", response_class=HTMLResponse)
def print_consultation_report(
    consultation_id: str,
    context: VisitContext = Depends(_context),
    client=Depends(get_patient_client),
):
    snapshot = load_consolidated_snapshot(client, consultation_id)
    return HTMLResponse(render_printable(snapshot, context))
