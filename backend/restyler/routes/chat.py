from fastapi import APIRouter, HTTPException, Request

from ..errors import RestylerError
from ..schemas import ChatRequest
from ..services.generation import regenerate_form
from ..services.session import get_meta, history_turns, record_turn
from .deps import generation_http_error, get_settings, image_generator, observer, submit_url

router = APIRouter()


@router.post("/chat")
async def chat(req: ChatRequest, request: Request):
    try:
        meta = get_meta(req.session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")

    structure = meta["structure"]
    prompt = req.message.content
    try:
        result = await regenerate_form(
            structure=structure,
            prompt=prompt,
            history=history_turns(req.session_id),
            previous_html=meta.get("document_html") or "",
            submit_url=submit_url(request, structure.form_id),
            screenshot=req.screenshot_base64,
            style_guide=req.style_guide,
            include_images=req.include_images,
            image_generator=image_generator(request) if req.include_images else None,
            active_images=list(meta.get("active_images") or []),
            observer=observer(),
            settings=get_settings(request),
        )
    except RestylerError as exc:
        raise generation_http_error(exc)

    record_turn(req.session_id, prompt=prompt, html=result.html, images=result.images)
    return {
        "session_id": req.session_id,
        "html": result.html,
        "generatedImages": [img.to_wire() for img in result.images],
        "activeImages": [img.url for img in meta["active_images"]],
    }
