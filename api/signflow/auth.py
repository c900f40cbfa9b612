from typing import Optional
from fastapi import Depends, Header, HTTPException, Query, Request, status

from . import config
from .workflow import WorkflowEngine


def get_workflow(request: Request) -> WorkflowEngine:
    return request.app.state.workflow


def require_admin_access(
    x_access_token: Optional[str] = Header(default=None, alias="X-Access-Token"),
) -> str:
    if not x_access_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing access token")
    if not config.ADMIN_ACCESS_TOKEN or x_access_token != config.ADMIN_ACCESS_TOKEN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return "admin"


def resolve_signer(
    session_id: str,
    token: Optional[str] = Query(default=None),
    workflow: WorkflowEngine = Depends(get_workflow),
) -> str:
    """Return the signer email carried by a valid signing token for this session."""
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing signing token")
    decoded = workflow.tokens.read(token)
    if not decoded or decoded[0] != session_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signing token")
    signer_email = decoded[1]
    if not workflow.validate_access(session_id, signer_email, token):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signing token")
    return signer_email
