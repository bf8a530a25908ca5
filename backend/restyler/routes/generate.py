from fastapi import APIRouter, HTTPException, Request

from ..errors import ImageGenerationError, RestylerError
from ..schemas import GenerateImageRequest, GenerateRequest, ImageRequest
from ..services.generation import regenerate_form
from .deps import generation_http_error, get_settings, image_generator, observer, submit_url

router = APIRouter()


@router.post("/generate")
async def generate_form(data: GenerateRequest, request: Request):
    try:
        result = await regenerate_form(
            structure=data.structure,
            prompt=data.prompt,
            history=data.history,
            previous_html=data.previous_html,
            submit_url=submit_url(request, data.structure.form_id if data.structure else ""),
            screenshot=data.screenshot_base64,
            style_guide=data.style_guide,
            include_images=data.include_images,
            image_generator=image_generator(request) if data.include_images else None,
            active_images=data.active_images,
            observer=observer(),
            settings=get_settings(request),
        )
    except RestylerError as exc:
        raise generation_http_error(exc)
    return {"html": result.html, "generatedImages": [img.to_wire() for img in result.images]}


@router.post("/generate-image")
async def generate_image(data: GenerateImageRequest, request: Request):
    if not data.prompt:
        raise HTTPException(status_code=400, detail="prompt is required")
    generator = image_generator(request)
    if generator is None:
        raise HTTPException(status_code=500, detail="OPENAI_API_KEY not configured")
    try:
        image = await generator(ImageRequest(
            prompt=data.prompt,
            kind=data.kind,
            color_hint=data.color_hint,
            aspect_hint=data.aspect_hint,
        ))
    except ImageGenerationError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return image.to_wire()
