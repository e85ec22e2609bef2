from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from leadms.auth.session import Session
from leadms.dependencies import Workspace, get_workspace, require_session
from leadms.models.lead import (
    FollowUpDateChange,
    Lead,
    LeadCreate,
    LeadStatus,
    LeadUpdate,
    Stage,
    StageChange,
    StageColumn,
    StatusChange,
)
from leadms.services.filters import FilterCriteria
from leadms.services.lead_collection import (
    LeadMutationError,
    LeadNotFoundError,
    LeadValidationError,
)
from leadms.services.pipeline import move_to_stage, reschedule_followup, set_status
from leadms.utils.logger import get_logger

router = APIRouter(tags=["leads"], dependencies=[Depends(require_session)])
logger = get_logger(__name__)


def _run_mutation(action, *args):
    try:
        return action(*args)
    except LeadNotFoundError:
        raise HTTPException(status_code=404, detail="Lead not found.")
    except LeadValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors)
    except LeadMutationError as exc:
        raise HTTPException(status_code=502, detail=exc.notice)


@router.get("/leads", response_model=List[Lead], summary="List leads visible under the given filters")
def list_leads(
    city: Optional[str] = Query(None),
    service: Optional[str] = Query(None),
    q: Optional[str] = Query(None, description="Search names, phone, email, notes and conversations"),
    stage: Optional[Stage] = Query(None),
    status: Optional[LeadStatus] = Query(None),
    workspace: Workspace = Depends(get_workspace),
) -> List[Lead]:
    criteria = FilterCriteria(
        city_contains=city,
        service_contains=service,
        free_text_query=q,
        conversation_match_ids=workspace.conversations.search_lead_ids(q) if q else None,
        stage=stage,
        lead_status=status,
    )
    return workspace.leads.visible(criteria)


@router.post("/leads/refresh", response_model=List[Lead], summary="Reload leads from the store")
def refresh_leads(workspace: Workspace = Depends(get_workspace)) -> List[Lead]:
    return workspace.leads.load()


@router.post("/leads", response_model=Lead, status_code=201, summary="Add a lead")
def create_lead(
    payload: LeadCreate,
    session: Session = Depends(require_session),
    workspace: Workspace = Depends(get_workspace),
) -> Lead:
    logger.info("Adding lead business_name=%s", payload.business_name)
    return _run_mutation(workspace.leads.add, payload, session)


@router.get("/leads/{lead_id}", response_model=Lead, summary="Fetch a single lead")
def get_lead(lead_id: str, workspace: Workspace = Depends(get_workspace)) -> Lead:
    try:
        return workspace.leads.get(lead_id)
    except LeadNotFoundError:
        raise HTTPException(status_code=404, detail="Lead not found.")


@router.patch("/leads/{lead_id}", response_model=Lead, summary="Edit lead fields")
def update_lead(
    lead_id: str,
    payload: LeadUpdate,
    workspace: Workspace = Depends(get_workspace),
) -> Lead:
    """Only the fields present in the body are written."""
    if not payload.model_fields_set:
        raise HTTPException(status_code=400, detail="No editable fields were provided.")
    return _run_mutation(workspace.leads.update, lead_id, payload)


@router.delete("/leads/{lead_id}", status_code=204, summary="Delete a lead")
def delete_lead(lead_id: str, workspace: Workspace = Depends(get_workspace)) -> Response:
    _run_mutation(workspace.leads.delete, lead_id)
    return Response(status_code=204)


@router.put("/leads/{lead_id}/stage", response_model=Lead, summary="Move a lead to another stage")
def change_stage(
    lead_id: str,
    payload: StageChange,
    workspace: Workspace = Depends(get_workspace),
) -> Lead:
    return _run_mutation(move_to_stage, workspace.leads, lead_id, payload.stage)


@router.put("/leads/{lead_id}/status", response_model=Lead, summary="Set Hot/Warm/Cold")
def change_status(
    lead_id: str,
    payload: StatusChange,
    workspace: Workspace = Depends(get_workspace),
) -> Lead:
    return _run_mutation(set_status, workspace.leads, lead_id, payload.lead_status)


@router.put("/leads/{lead_id}/followup-date", response_model=Lead, summary="Reschedule the next follow-up")
def change_followup_date(
    lead_id: str,
    payload: FollowUpDateChange,
    workspace: Workspace = Depends(get_workspace),
) -> Lead:
    return _run_mutation(reschedule_followup, workspace.leads, lead_id, payload.next_followup_date)


@router.get("/board", response_model=List[StageColumn], summary="Kanban columns")
def board(
    city: Optional[str] = Query(None),
    service: Optional[str] = Query(None),
    workspace: Workspace = Depends(get_workspace),
) -> List[StageColumn]:
    columns: Dict[str, List[Lead]] = workspace.leads.board(
        FilterCriteria(city_contains=city, service_contains=service)
    )
    return [
        StageColumn(stage=stage, count=len(leads), leads=leads)
        for stage, leads in columns.items()
    ]


@router.get("/cities", response_model=List[str], summary="Cities present in the lead list")
def cities(workspace: Workspace = Depends(get_workspace)) -> List[str]:
    return workspace.leads.cities()
