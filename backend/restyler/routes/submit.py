from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from ..errors import SubmissionRejected, ValidationError
from ..services.submission import forward_submission

router = APIRouter()

# Published pages run in sandboxed iframes and post with a null origin.
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


@router.options("/submit/{form_id}")
async def submit_preflight(form_id: str):
    return Response(status_code=204, headers=CORS_HEADERS)


@router.post("/submit/{form_id}")
async def submit(form_id: str, request: Request):
    try:
        body = await request.json()
        await forward_submission(form_id, body)
    except ValueError:
        return JSONResponse({"error": "invalid JSON body"}, status_code=400, headers=CORS_HEADERS)
    except ValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400, headers=CORS_HEADERS)
    except SubmissionRejected as exc:
        return JSONResponse(
            {"error": str(exc), "googleStatus": exc.status_code},
            status_code=502,
            headers=CORS_HEADERS,
        )
    return JSONResponse({"status": "ok"}, headers=CORS_HEADERS)
