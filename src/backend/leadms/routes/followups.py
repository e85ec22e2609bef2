from typing import List

from fastapi import APIRouter, Depends, Query

from leadms.dependencies import Workspace, get_workspace, require_session
from leadms.models.lead import FollowUpBucketOption, FollowUpEntry
from leadms.services.followups import BUCKET_ALL, FOLLOWUP_BUCKETS, is_overdue, local_today

router = APIRouter(prefix="/followups", tags=["followups"], dependencies=[Depends(require_session)])


@router.get("/buckets", response_model=List[FollowUpBucketOption], summary="Sidebar bucket choices")
def list_buckets() -> List[FollowUpBucketOption]:
    return [FollowUpBucketOption(**bucket) for bucket in FOLLOWUP_BUCKETS]


@router.get("", response_model=List[FollowUpEntry], summary="Leads due for follow-up")
def list_followups(
    bucket: str = Query(BUCKET_ALL),
    workspace: Workspace = Depends(get_workspace),
) -> List[FollowUpEntry]:
    today = local_today()
    return [
        FollowUpEntry(lead=lead, overdue=is_overdue(lead, today))
        for lead in workspace.leads.followups(bucket, today=today)
    ]
