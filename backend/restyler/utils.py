import asyncio
import re
import secrets
import string
from datetime import datetime, timezone
from typing import Optional, Tuple, Type


_DATA_URL_RE = re.compile(r"^data:(image/[^;]+);base64,(.+)$", re.DOTALL)
_ID_ALPHABET = string.ascii_letters + string.digits + "_-"


async def retry_async(fn, *, attempts: int = 3, base_delay: float = 0.5, retry_on: Tuple[Type[BaseException], ...] = (Exception,)):
    last_exc: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except retry_on as exc:
            last_exc = exc
            if attempt == attempts:
                break
            await asyncio.sleep(base_delay * (2 ** (attempt - 1)))
    raise last_exc  # type: ignore[misc]


def split_data_url(value: str, default_mime: str = "image/png") -> Tuple[str, str]:
    """Return (mime_type, base64_data) for a data URL or raw base64 string."""
    match = _DATA_URL_RE.match(value.strip())
    if match:
        return match.group(1), match.group(2)
    return default_mime, value.strip()


def to_data_url(mime_type: str, data: str) -> str:
    return f"data:{mime_type};base64,{data}"


def new_id(size: int = 10) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(size))


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
