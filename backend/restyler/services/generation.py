from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from openai import AsyncOpenAI

from ..config import Settings, load_settings
from ..errors import ConfigurationError, UpstreamGenerationError, ValidationError
from ..observer import GenerationObserver, NullObserver
from ..schemas import FormStructure, GeneratedImage, HistoryTurn, StyleGuide
from .agent_loop import ImageGenerator, ImageRequestLoop
from .conversation import ConversationSession
from .prompts import IMAGE_TOOL, build_message_parts, build_system_prompt, recent_history
from .sanitizer import sanitize_html


@dataclass
class GenerationResult:
    html: str
    images: List[GeneratedImage] = field(default_factory=list)
    image_rounds: int = 0


async def regenerate_form(
    *,
    structure: Optional[FormStructure],
    prompt: Optional[str],
    history: Sequence[HistoryTurn] = (),
    previous_html: str = "",
    submit_url: str,
    screenshot: Optional[str] = None,
    style_guide: Optional[StyleGuide] = None,
    include_images: bool = False,
    image_generator: Optional[ImageGenerator] = None,
    active_images: Optional[Sequence[GeneratedImage]] = None,
    observer: Optional[GenerationObserver] = None,
    settings: Optional[Settings] = None,
    client=None,
) -> GenerationResult:
    """Run one chat turn: compile the prompt, converse, resolve image requests.

    ``previous_html`` is the authoritative current page. ``history`` only adds
    conversational context; if its latest model turn disagrees with
    ``previous_html`` the explicit value is used. ``history`` is never mutated,
    the caller appends the new turn once this returns.
    """
    if structure is None or not (prompt or "").strip():
        raise ValidationError("structure and prompt are required")

    settings = settings or load_settings()
    if not settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY not configured")

    observer = observer or NullObserver()
    history = list(history or [])
    previous_html = previous_html or ""
    images_allowed = bool(include_images and image_generator is not None)

    last_model = next((t for t in reversed(history) if t.role == "model"), None)
    if previous_html and last_model is not None and last_model.text != previous_html:
        observer.emit("history_mismatch", history_chars=len(last_model.text), previous_html_chars=len(previous_html))

    preamble = (settings.prompts or {}).get("system", {}).get("preamble")
    system_prompt = build_system_prompt(structure, submit_url, include_images=images_allowed, preamble=preamble)
    parts = build_message_parts(
        prompt.strip(),
        previous_html=previous_html,
        screenshot=screenshot,
        style_guide=style_guide,
        active_images=active_images,
    )
    observer.emit(
        "prompt_built",
        form_id=structure.form_id,
        questions=len(structure.questions),
        history_turns=len(recent_history(history)),
        parts=len(parts),
        include_images=images_allowed,
        active_images=len(active_images or ()),
    )

    if client is None:
        client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.openai_timeout_s)

    session = ConversationSession(
        client,
        model=settings.openai_model,
        system_prompt=system_prompt,
        history=history,
        tools=[IMAGE_TOOL] if images_allowed else None,
        max_tokens=settings.openai_max_tokens,
        retry_attempts=settings.openai_retry_attempts,
        observer=observer,
    )
    reply = await session.send(parts)

    loop = ImageRequestLoop(
        session,
        image_generator if images_allowed else None,
        max_rounds=settings.max_image_rounds,
        observer=observer,
    )
    outcome = await loop.run(reply)

    html = sanitize_html(outcome.text)
    if not html:
        raise UpstreamGenerationError("model returned no HTML")

    observer.emit(
        "turn_finalized",
        html_chars=len(html),
        images=[img.url for img in outcome.images],
        image_rounds=outcome.rounds,
        round_trips=session.round_trips,
        capped=outcome.capped,
    )
    return GenerationResult(html=html, images=outcome.images, image_rounds=outcome.rounds)
