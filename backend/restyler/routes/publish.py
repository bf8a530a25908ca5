from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse

from ..schemas import PublishRequest, PublishedForm
from ..utils import new_id, now_utc_iso
from .deps import get_store

router = APIRouter()
pages = APIRouter()


@router.post("/publish")
async def publish(payload: PublishRequest, request: Request):
    if not payload.html or not payload.form_id:
        raise HTTPException(status_code=400, detail="html and formId are required")
    record_id = new_id(10)
    get_store(request).save(record_id, PublishedForm(html=payload.html, form_id=payload.form_id, created_at=now_utc_iso()))
    return {"url": f"/f/{record_id}", "id": record_id}


@pages.get("/f/{record_id}", response_class=HTMLResponse)
async def published_form(record_id: str, request: Request):
    record = get_store(request).get(record_id)
    if record is None:
        return HTMLResponse("<h1>Form not found</h1>", status_code=404)
    return HTMLResponse(record.html)
