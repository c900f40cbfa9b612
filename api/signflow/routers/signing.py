from fastapi import APIRouter, Depends, Request
from ..auth import get_workflow, resolve_signer
from ..schemas import DeclineRequest, SignerStatus, SignSubmit
from ..workflow import WorkflowEngine
from . import raise_for_result

router = APIRouter()

def _client(request: Request):
    ip = request.client.host if request.client else ""
    return ip, request.headers.get("user-agent", "")

@router.get("/{session_id}")
def load_signing_session(
    session_id: str,
    request: Request,
    signer_email: str = Depends(resolve_signer),
    workflow: WorkflowEngine = Depends(get_workflow),
):
    ip, ua = _client(request)
    raise_for_result(workflow.record_view(session_id, signer_email, ip, ua))
    session = workflow.get_session(session_id)
    signer = session.signer(signer_email)
    waiting_on = len([s for s in session.signers if s.status != SignerStatus.SIGNED and s.email != signer_email])
    return {
        "session": {
            "id": session.id,
            "document_name": session.document_name,
            "document_url": session.document_url,
            "status": session.status,
            "expires_at": session.expires_at,
        },
        "signer": signer.model_dump(mode="json"),
        "waiting_on": waiting_on,
        "fields": [f.model_dump(mode="json") for f in session.fields_for(signer_email)],
    }

@router.post("/{session_id}/complete")
def complete_signing(
    session_id: str,
    payload: SignSubmit,
    request: Request,
    signer_email: str = Depends(resolve_signer),
    workflow: WorkflowEngine = Depends(get_workflow),
):
    ip, ua = _client(request)
    result = raise_for_result(workflow.submit_signature(session_id, signer_email, payload.values, ip, ua))
    return result.model_dump(mode="json")

@router.post("/{session_id}/decline")
def decline_signing(
    session_id: str,
    payload: DeclineRequest,
    request: Request,
    signer_email: str = Depends(resolve_signer),
    workflow: WorkflowEngine = Depends(get_workflow),
):
    ip, ua = _client(request)
    result = raise_for_result(workflow.decline(session_id, signer_email, payload.reason, ip, ua))
    return result.model_dump(mode="json")
