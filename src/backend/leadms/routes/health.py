from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from leadms.dependencies import Workspace, get_workspace

router = APIRouter(prefix="", tags=["health"])


@router.get("/health")
def health_check(workspace: Workspace = Depends(get_workspace)):
    return {
        "status": "ok",
        "ts": datetime.now(timezone.utc).isoformat(),
        "signed_in": workspace.sessions.current_session() is not None,
        "leads_loaded": len(workspace.leads.snapshot()),
    }
