import logging

from fastapi import APIRouter, HTTPException

from ..errors import ScreenshotTimeout, UnsafeURLError
from ..schemas import ScreenshotRequest
from ..services import screenshot as screenshots

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/screenshot")
async def screenshot(payload: ScreenshotRequest):
    if not payload.url:
        raise HTTPException(status_code=400, detail="url is required")
    try:
        image = await screenshots.capture_screenshot(payload.url)
    except UnsafeURLError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ScreenshotTimeout as exc:
        raise HTTPException(status_code=408, detail=str(exc))
    except Exception as exc:  # pragma: no cover
        logger.exception("screenshot failed")
        raise HTTPException(status_code=500, detail=str(exc) or "Screenshot failed")
    return {"imageBase64": image}
