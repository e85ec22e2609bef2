from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from leadms.auth.session import Session
from leadms.dependencies import Workspace, get_workspace, require_session
from leadms.models.conversation import ConversationCreate, FollowUpConversation
from leadms.services.lead_collection import LeadMutationError, LeadNotFoundError

router = APIRouter(
    prefix="/leads/{lead_id}/conversations",
    tags=["conversations"],
    dependencies=[Depends(require_session)],
)


def _ensure_lead(workspace: Workspace, lead_id: str) -> None:
    try:
        workspace.leads.get(lead_id)
    except LeadNotFoundError:
        raise HTTPException(status_code=404, detail="Lead not found.")


@router.get("", response_model=List[FollowUpConversation], summary="Conversation history, newest first")
def list_conversations(lead_id: str, workspace: Workspace = Depends(get_workspace)) -> List[FollowUpConversation]:
    _ensure_lead(workspace, lead_id)
    return workspace.conversations.list_for_lead(lead_id)


@router.get("/latest", response_model=Optional[FollowUpConversation], summary="Most recent conversation")
def latest_conversation(lead_id: str, workspace: Workspace = Depends(get_workspace)) -> Optional[FollowUpConversation]:
    _ensure_lead(workspace, lead_id)
    return workspace.conversations.latest_for_lead(lead_id)


@router.post("", response_model=FollowUpConversation, status_code=201, summary="Log a follow-up conversation")
def add_conversation(
    lead_id: str,
    payload: ConversationCreate,
    session: Session = Depends(require_session),
    workspace: Workspace = Depends(get_workspace),
) -> FollowUpConversation:
    _ensure_lead(workspace, lead_id)
    try:
        return workspace.conversations.add(lead_id, payload, session)
    except LeadMutationError as exc:
        raise HTTPException(status_code=502, detail=exc.notice)
