from typing import List

from fastapi import APIRouter, Depends

from leadms.dependencies import Workspace, get_workspace, require_session
from leadms.models.attachment import Attachment
from leadms.routes.conversations import _ensure_lead
from leadms.services.attachments import list_attachments

router = APIRouter(
    prefix="/leads/{lead_id}/attachments",
    tags=["attachments"],
    dependencies=[Depends(require_session)],
)


@router.get("", response_model=List[Attachment], summary="Files recorded against a lead")
def get_attachments(lead_id: str, workspace: Workspace = Depends(get_workspace)) -> List[Attachment]:
    _ensure_lead(workspace, lead_id)
    return list_attachments(workspace.store, lead_id)
