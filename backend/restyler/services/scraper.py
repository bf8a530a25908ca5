import json
import logging
import re
import uuid
from typing import Any, List, Optional

import httpx

from ..errors import FetchError, NotAGoogleForm, ParseError
from ..schemas import FormQuestion, FormStructure


logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; FormRestyler/1.0)"
DATA_MARKER = "FB_PUBLIC_LOAD_DATA_ = "

TYPE_CODES = {
    0: "short_answer",
    1: "paragraph",
    2: "multiple_choice",
    3: "checkboxes",
    4: "dropdown",
    5: "linear_scale",
    9: "date",
    10: "time",
}

_FORM_ID_RE = re.compile(r"/forms/d/e/([^/]+)/")


def is_google_form_url(url: str) -> bool:
    return "docs.google.com/forms" in (url or "")


async def scrape_form(url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 20.0) -> FormStructure:
    if not is_google_form_url(url):
        raise NotAGoogleForm("Please provide a valid Google Form URL")

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    try:
        resp = await client.get(url, headers={"User-Agent": USER_AGENT})
    except httpx.HTTPError as exc:
        raise FetchError(f"Failed to fetch form: {exc}") from exc
    finally:
        if owns_client:
            await client.aclose()

    if resp.status_code >= 400:
        raise FetchError(f"Failed to fetch form: {resp.status_code} {resp.reason_phrase}")

    raw = extract_load_data(resp.text)
    structure = normalize_form(url, raw)
    logger.info("scraped form %s with %d question(s)", structure.form_id, len(structure.questions))
    return structure


def extract_load_data(html: str) -> Any:
    start = html.find(DATA_MARKER)
    if start == -1:
        raise NotAGoogleForm(
            "Could not find form data. Make sure the form is public and the URL is a valid Google Form."
        )
    try:
        raw, _ = json.JSONDecoder().raw_decode(html, start + len(DATA_MARKER))
    except json.JSONDecodeError as exc:
        raise ParseError("Failed to parse form data.") from exc
    if not isinstance(raw, list):
        raise ParseError("Failed to parse form data.")
    return raw


def _at(value: Any, *path: int) -> Any:
    for index in path:
        if not isinstance(value, list) or index >= len(value):
            return None
        value = value[index]
    return value


def normalize_form(url: str, raw: Any) -> FormStructure:
    match = _FORM_ID_RE.search(url)
    meta = _at(raw, 1)
    questions: List[FormQuestion] = []

    for item in _at(meta, 1) or []:
        question = _normalize_question(item)
        if question is not None:
            questions.append(question)

    return FormStructure(
        form_id=match.group(1) if match else "",
        title=_at(meta, 8) or "Untitled Form",
        description=_at(meta, 0) or "",
        questions=questions,
    )


def _normalize_question(item: Any) -> Optional[FormQuestion]:
    kind = TYPE_CODES.get(_at(item, 3))
    if kind is None:
        return None
    answer = _at(item, 4, 0)
    if not isinstance(answer, list) or _at(answer, 0) is None:
        return None

    options = [str(o[0]) for o in _at(answer, 1) or [] if isinstance(o, list) and o and o[0]]
    fields = dict(
        id=str(_at(item, 0) if _at(item, 0) is not None else uuid.uuid4().hex),
        entry_id=f"entry.{answer[0]}",
        text=_at(item, 1) or "",
        kind=kind,
        required=_at(answer, 2) == 1,
        options=options,
    )
    if kind == "linear_scale":
        fields.update(_scale_bounds(answer, options))
    return FormQuestion(**fields)


def _scale_bounds(answer: list, options: List[str]) -> dict:
    numbers = [int(o) for o in options if o.lstrip("-").isdigit()]
    labels = next(
        (v for v in (_at(answer, 3), _at(answer, 4)) if isinstance(v, list) and v and all(isinstance(x, str) for x in v)),
        [],
    )
    return dict(
        scale_min=min(numbers) if numbers else 1,
        scale_max=max(numbers) if numbers else 5,
        scale_min_label=labels[0] if len(labels) > 0 else "",
        scale_max_label=labels[1] if len(labels) > 1 else "",
    )
