import logging

from fastapi import APIRouter, File, HTTPException, Request, UploadFile

from ..utils import new_id
from .deps import base_url, get_settings

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_SIZE_BYTES = 10 * 1024 * 1024
ALLOWED_MIME = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}


@router.post("/upload")
async def upload(request: Request, image: UploadFile = File(None)):
    if image is None:
        raise HTTPException(status_code=400, detail="No image provided")
    ext = ALLOWED_MIME.get(image.content_type or "")
    if ext is None:
        raise HTTPException(status_code=400, detail="Unsupported file type. Use JPG, PNG, GIF, WebP or SVG.")

    content = await image.read(MAX_SIZE_BYTES + 1)
    if len(content) > MAX_SIZE_BYTES:
        raise HTTPException(status_code=400, detail="Image must be under 10 MB")

    # Never trust the client filename
    filename = f"{new_id(21)}.{ext}"
    upload_dir = get_settings(request).storage_dir / "uploads"
    try:
        upload_dir.mkdir(parents=True, exist_ok=True)
        (upload_dir / filename).write_bytes(content)
    except OSError as exc:
        logger.error("upload failed: %s", exc)
        raise HTTPException(status_code=500, detail="Upload failed")
    return {"url": f"{base_url(request)}/uploads/{filename}"}
