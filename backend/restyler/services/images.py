import base64
import binascii
import logging
import pathlib
from typing import Optional

import openai
from openai import AsyncOpenAI

from ..config import Settings
from ..errors import GenerationFailed, UploadFailed
from ..schemas import GeneratedImage, ImageRequest
from ..utils import new_id


logger = logging.getLogger(__name__)

_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


class LocalImageStore:
    """Writes generated images to a directory served by the app."""

    def __init__(self, directory: pathlib.Path, base_url: str, prefix: str = "/generated"):
        self.directory = pathlib.Path(directory)
        self.base_url = base_url.rstrip("/")
        self.prefix = prefix

    def put(self, filename: str, content: bytes) -> str:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            (self.directory / filename).write_bytes(content)
        except OSError as exc:
            raise UploadFailed(f"could not store image: {exc}") from exc
        return f"{self.base_url}{self.prefix}/{filename}"


def build_image_prompt(request: ImageRequest) -> str:
    pieces = [
        request.prompt,
        f"Use these dominant colors: {request.color_hint}." if request.color_hint else "",
        f"Aspect ratio: {request.aspect_hint}." if request.aspect_hint else "",
        "This image will be used as a form background. Keep it subtle with low contrast so text remains readable over it."
        if request.kind == "background" else "",
        "This image will be used as a header/banner at the top of a form. Make it visually striking."
        if request.kind == "header" else "",
        "Do not include any text, words, letters, or numbers in the image.",
    ]
    return " ".join(p for p in pieces if p)


def image_size(aspect_hint: str) -> str:
    hint = (aspect_hint or "").strip().lower()
    if hint in {"1:1", "square"}:
        return "1024x1024"
    if hint in {"9:16", "2:3", "3:4", "portrait"}:
        return "1024x1536"
    return "1536x1024"


class OpenAIImageGenerator:
    """Image generator handed to the agent loop; one instance per request."""

    def __init__(self, settings: Settings, store: LocalImageStore, client=None, output_format: str = "png"):
        self.settings = settings
        self.store = store
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.openai_timeout_s)
        self.output_format = output_format

    async def __call__(self, request: ImageRequest) -> GeneratedImage:
        return await self.generate(request)

    async def generate(self, request: ImageRequest) -> GeneratedImage:
        logger.info("generating %s image with %s", request.kind, self.settings.openai_image_model)
        try:
            response = await self.client.images.generate(
                model=self.settings.openai_image_model,
                prompt=build_image_prompt(request),
                size=image_size(request.aspect_hint),
                output_format=self.output_format,
                n=1,
            )
        except openai.OpenAIError as exc:
            raise GenerationFailed(f"image model request failed: {exc}") from exc

        b64 = _first_b64(response)
        if not b64:
            raise GenerationFailed("No image generated: model returned no image data")
        try:
            content = base64.b64decode(b64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise GenerationFailed("image model returned malformed data") from exc

        mime_type = f"image/{'jpeg' if self.output_format == 'jpeg' else self.output_format}"
        filename = f"form-{request.kind}-{new_id(8)}.{_EXTENSIONS.get(mime_type, 'png')}"
        url = self.store.put(filename, content)
        logger.info("stored %s image (%d bytes) at %s", request.kind, len(content), url)
        return GeneratedImage(url=url, kind=request.kind, data=b64, mime_type=mime_type)


def _first_b64(response) -> Optional[str]:
    data = getattr(response, "data", None) or []
    if not data:
        return None
    return getattr(data[0], "b64_json", None)
