from fastapi import APIRouter, HTTPException

from ..errors import FetchError, NotAGoogleForm, ParseError
from ..schemas import ScrapeRequest
from ..services import scraper

router = APIRouter()


@router.post("/scrape")
async def scrape(payload: ScrapeRequest):
    if not payload.url:
        raise HTTPException(status_code=400, detail="url is required")
    try:
        structure = await scraper.scrape_form(payload.url)
    except NotAGoogleForm as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except ParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {"structure": structure.to_wire()}
