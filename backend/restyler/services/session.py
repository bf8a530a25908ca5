import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Sequence
from copy import deepcopy

from langchain_core.chat_history import InMemoryChatMessageHistory
from langchain_core.messages import AIMessage, HumanMessage

from ..schemas import FormStructure, GeneratedImage, HistoryTurn


SESSION_HISTORY: Dict[str, InMemoryChatMessageHistory] = {}
SESSION_META: Dict[str, Dict[str, Any]] = {}


def start_session(*, structure: FormStructure, form_url: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> str:
    session_id = str(uuid.uuid4())
    SESSION_META[session_id] = {
        "created_at": datetime.now(timezone.utc).isoformat(),
        "form_url": form_url,
        "structure": structure,
        "document_html": "",
        "active_images": [],
        "metadata": metadata or {},
    }
    SESSION_HISTORY[session_id] = InMemoryChatMessageHistory()
    return session_id


def get_meta(session_id: str) -> Dict[str, Any]:
    meta = SESSION_META.get(session_id)
    if meta is None:
        raise KeyError("session not found")
    return meta


def get_history(session_id: str) -> InMemoryChatMessageHistory:
    history = SESSION_HISTORY.get(session_id)
    if history is None:
        raise KeyError("session not found")
    return history


def history_turns(session_id: str) -> List[HistoryTurn]:
    turns = []
    for message in get_history(session_id).messages:
        role = "model" if isinstance(message, AIMessage) else "user"
        turns.append(HistoryTurn(role=role, text=str(message.content)))
    return turns


def select_active_images(html: str, candidates: Sequence[GeneratedImage]) -> List[GeneratedImage]:
    """Images whose URL the page still references, first occurrence wins."""
    seen = set()
    active = []
    for image in candidates:
        if image.url in seen or image.url not in html:
            continue
        seen.add(image.url)
        active.append(image)
    return active


def record_turn(session_id: str, *, prompt: str, html: str, images: Sequence[GeneratedImage] = ()) -> None:
    """Append a successful turn. Failed turns are never recorded."""
    meta = get_meta(session_id)
    history = get_history(session_id)
    history.add_messages([HumanMessage(content=prompt), AIMessage(content=html)])
    meta["document_html"] = html
    meta["active_images"] = select_active_images(html, list(meta["active_images"]) + list(images))


def clear_history(session_id: str):
    meta = get_meta(session_id)
    SESSION_HISTORY[session_id] = InMemoryChatMessageHistory()
    meta["document_html"] = ""
    meta["active_images"] = []


def describe(meta: Dict[str, Any]) -> Dict[str, Any]:
    # JSON-safe copy so callers can't mutate server state
    item = {k: deepcopy(v) for k, v in meta.items() if k not in {"structure", "active_images"}}
    item["form_id"] = meta["structure"].form_id
    item["form_title"] = meta["structure"].title
    item["active_images"] = [img.url for img in meta["active_images"]]
    return item


def list_sessions():
    items = []
    for sid, meta in SESSION_META.items():
        item = {"session_id": sid}
        item.update(describe(meta))
        items.append(item)
    return items


def set_document(session_id: str, html: str, title: Optional[str] = None):
    meta = get_meta(session_id)
    meta["document_html"] = html
    meta["active_images"] = select_active_images(html, meta["active_images"])
    if title:
        meta["document_title"] = title
