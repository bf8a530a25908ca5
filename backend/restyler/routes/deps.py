from fastapi import HTTPException, Request

from ..config import Settings
from ..errors import ConfigurationError, UpstreamGenerationError, ValidationError
from ..observer import LoggingObserver
from ..services.images import LocalImageStore, OpenAIImageGenerator
from ..services.store import PublishStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> PublishStore:
    return request.app.state.publish_store


def base_url(request: Request) -> str:
    settings = get_settings(request)
    return settings.public_base_url or str(request.base_url).rstrip("/")


def submit_url(request: Request, form_id: str) -> str:
    return f"{base_url(request)}/api/submit/{form_id}"


def image_generator(request: Request):
    settings = get_settings(request)
    if not settings.openai_api_key:
        return None
    store = LocalImageStore(settings.storage_dir / "generated", base_url(request), prefix="/generated")
    return OpenAIImageGenerator(settings, store)


def observer() -> LoggingObserver:
    return LoggingObserver()


def generation_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=500, detail=str(exc))
    if isinstance(exc, UpstreamGenerationError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc) or "Generation failed")
