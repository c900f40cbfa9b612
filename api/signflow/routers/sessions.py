from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from ..auth import get_workflow, require_admin_access
from ..fields import STANDARD_DOCUMENT_TYPES, standard_fields
from ..schemas import ExtendRequest, SessionCreate, SessionStatus
from ..workflow import WorkflowEngine
from . import raise_for_result

router = APIRouter(dependencies=[Depends(require_admin_access)])

@router.post("")
def create_session(data: SessionCreate, workflow: WorkflowEngine = Depends(get_workflow)):
    result = raise_for_result(workflow.create_session(data))
    return {"id": result.session_id, "status": result.status}

@router.get("")
def list_sessions(status: Optional[SessionStatus] = None, workflow: WorkflowEngine = Depends(get_workflow)):
    return [
        {
            "id": s.id,
            "document_name": s.document_name,
            "status": s.status,
            "created_at": s.created_at,
            "expires_at": s.expires_at,
            "signers": [{"email": x.email, "status": x.status} for x in s.signers],
        }
        for s in workflow.list_sessions(status)
    ]

@router.get("/templates/{document_type}")
def get_template(document_type: str, signer_email: str = ""):
    if document_type not in STANDARD_DOCUMENT_TYPES:
        raise HTTPException(404, "unknown document type")
    return {"document_type": document_type, "fields": standard_fields(document_type, signer_email)}

@router.get("/{session_id}")
def get_session(session_id: str, workflow: WorkflowEngine = Depends(get_workflow)):
    session = workflow.get_session(session_id)
    if not session:
        raise HTTPException(404, "session not found")
    return session.model_dump(mode="json", exclude={"version"})

@router.get("/{session_id}/events")
def get_events(session_id: str, workflow: WorkflowEngine = Depends(get_workflow)):
    if not workflow.get_session(session_id):
        raise HTTPException(404, "session not found")
    events = workflow.events_for(session_id)
    return {
        "session_id": session_id,
        "chain_valid": workflow.verify_events(session_id),
        "events": [e.model_dump(mode="json") for e in events],
    }

# Operator helper: get signing links without tailing the mail log
@router.get("/{session_id}/links")
def get_links(session_id: str, workflow: WorkflowEngine = Depends(get_workflow)):
    session = workflow.get_session(session_id)
    if not session:
        raise HTTPException(404, "session not found")
    return {
        "session_id": session_id,
        "links": [
            {
                "signer": {"email": s.email, "name": s.name, "status": s.status},
                "link": workflow.signing_link(session_id, s.email),
            }
            for s in session.signers
        ],
    }

@router.post("/{session_id}/extend")
def extend_session(session_id: str, payload: ExtendRequest, workflow: WorkflowEngine = Depends(get_workflow)):
    extended = workflow.extend_expiration(session_id, payload.additional_days)
    session = workflow.get_session(session_id)
    if not session:
        raise HTTPException(404, "session not found")
    return {"ok": extended, "expires_at": session.expires_at, "status": session.status}

@router.post("/{session_id}/cancel")
def cancel_session(session_id: str, workflow: WorkflowEngine = Depends(get_workflow)):
    cancelled = workflow.cancel(session_id)
    session = workflow.get_session(session_id)
    if not session:
        raise HTTPException(404, "session not found")
    return {"ok": cancelled, "status": session.status}
