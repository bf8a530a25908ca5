import logging
import re
from typing import Any, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

import httpx

from ..errors import SubmissionRejected, ValidationError


logger = logging.getLogger(__name__)

FORM_RESPONSE_URL = "https://docs.google.com/forms/d/e/{form_id}/formResponse"
_FORM_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def encode_submission(body: Mapping[str, Any]) -> List[Tuple[str, str]]:
    """Flatten a JSON answer map into form fields; checkbox lists repeat the key."""
    if not isinstance(body, Mapping):
        raise ValidationError("submission body must be a JSON object")
    fields: List[Tuple[str, str]] = []
    for key, value in body.items():
        if isinstance(value, list):
            if not all(isinstance(v, str) for v in value):
                raise ValidationError(f"{key}: list values must be strings")
            fields.extend((key, v) for v in value)
        elif isinstance(value, str):
            if value != "":
                fields.append((key, value))
        elif value is not None:
            raise ValidationError(f"{key}: value must be a string or a list of strings")
    fields.append(("submit", "Submit"))
    return fields


async def forward_submission(
    form_id: str,
    body: Mapping[str, Any],
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 15.0,
) -> int:
    if not _FORM_ID_RE.match(form_id or ""):
        raise ValidationError("invalid form id")
    fields = encode_submission(body)

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=False)
    try:
        resp = await client.post(
            FORM_RESPONSE_URL.format(form_id=form_id),
            content=urlencode(fields),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
    except httpx.HTTPError as exc:
        raise SubmissionRejected(f"could not reach the form: {exc}") from exc
    finally:
        if owns_client:
            await client.aclose()

    # 200 is the confirmation page, 3xx a redirect to it
    if resp.status_code == 200 or 300 <= resp.status_code < 400:
        return resp.status_code
    logger.error("form %s rejected submission: %s %s", form_id, resp.status_code, resp.text[:500])
    raise SubmissionRejected("Submission failed. Please try again.", status_code=resp.status_code)
