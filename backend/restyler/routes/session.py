from fastapi import APIRouter, HTTPException

from ..errors import FetchError, NotAGoogleForm, ParseError
from ..schemas import StartSessionRequest, SetDocumentRequest
from ..services import scraper
from ..services.session import (
    start_session as svc_start_session,
    list_sessions as svc_list_sessions,
    clear_history as svc_clear_history,
    history_turns as svc_history_turns,
    set_document as svc_set_document,
    describe,
)
from ..services.session import SESSION_META

router = APIRouter()


@router.post("/session/start")
async def start_session(payload: StartSessionRequest):
    structure = payload.structure
    if structure is None:
        if not payload.url:
            raise HTTPException(status_code=400, detail="url or structure is required")
        try:
            structure = await scraper.scrape_form(payload.url)
        except NotAGoogleForm as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except FetchError as exc:
            raise HTTPException(status_code=502, detail=str(exc))
        except ParseError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
    sid = svc_start_session(structure=structure, form_url=payload.url, metadata=payload.metadata)
    return {"session_id": sid, "structure": structure.to_wire()}


@router.get("/session/list")
async def list_sessions():
    return {"sessions": svc_list_sessions()}


@router.get("/session/{session_id}/history")
async def get_history(session_id: str):
    try:
        turns = svc_history_turns(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")
    return {
        "session_id": session_id,
        "messages": [t.model_dump() for t in turns],
        "meta": describe(SESSION_META[session_id]),
    }


@router.post("/session/{session_id}/clear")
async def clear_history(session_id: str):
    try:
        svc_clear_history(session_id)
        return {"ok": True}
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")


@router.post("/session/{session_id}/document")
async def set_document(session_id: str, payload: SetDocumentRequest):
    try:
        svc_set_document(session_id, html=payload.html, title=payload.title)
        return {"ok": True}
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")
