import inspect
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import openai

from ..errors import UpstreamGenerationError
from ..observer import GenerationObserver, NullObserver
from ..schemas import HistoryTurn
from ..utils import retry_async, to_data_url
from .prompts import ImagePart, Part, TextPart, recent_history


TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str


@dataclass(frozen=True)
class ToolResult:
    call_id: str
    name: str
    payload: Dict[str, Any]


@dataclass
class ModelReply:
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


def to_content(parts: Sequence[Part]) -> List[Dict[str, Any]]:
    content: List[Dict[str, Any]] = []
    for part in parts:
        if isinstance(part, ImagePart):
            content.append({"type": "image_url", "image_url": {"url": to_data_url(part.mime_type, part.data)}})
        elif isinstance(part, TextPart):
            content.append({"type": "text", "text": part.text})
        else:
            raise TypeError(f"unsupported message part: {part!r}")
    return content


class ConversationSession:
    """One multi-turn exchange with the chat completions API.

    The session replays the system prompt and the last ``HISTORY_WINDOW``
    turns, then grows its own message list as the turn proceeds. It is not
    shared between requests.
    """

    def __init__(
        self,
        client,
        *,
        model: str,
        system_prompt: str,
        history: Sequence[HistoryTurn] = (),
        tools: Optional[List[Dict[str, Any]]] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
        retry_attempts: int = 1,
        observer: Optional[GenerationObserver] = None,
    ):
        self.client = client
        self.model = model
        self.tools = [{"type": "function", "function": t} for t in tools] if tools else None
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.retry_attempts = retry_attempts
        self.observer = observer or NullObserver()
        self.round_trips = 0
        self.messages: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        for turn in recent_history(history):
            role = "assistant" if turn.role == "model" else "user"
            self.messages.append({"role": role, "content": turn.text})

    async def send(self, parts: Sequence[Part]) -> ModelReply:
        self.messages.append({"role": "user", "content": to_content(parts)})
        return await self._complete(kind="message", allow_tools=True)

    async def send_tool_results(
        self, results: Sequence[ToolResult], *, allow_tools: bool = True, require_content: bool = True
    ) -> ModelReply:
        for result in results:
            self.messages.append({
                "role": "tool",
                "tool_call_id": result.call_id,
                "content": json.dumps(result.payload),
            })
        return await self._complete(kind="tool_results", allow_tools=allow_tools, require_content=require_content)

    async def _complete(self, *, kind: str, allow_tools: bool, require_content: bool = True) -> ModelReply:
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": list(self.messages),
            "temperature": self.temperature,
        }
        if self.max_tokens:
            request["max_tokens"] = self.max_tokens
        if self.tools:
            request["tools"] = self.tools
            request["tool_choice"] = "auto" if allow_tools else "none"

        async def _create():
            result = self.client.chat.completions.create(**request)
            if inspect.isawaitable(result):
                return await result
            return result

        self.round_trips += 1
        self.observer.emit("call_dispatched", kind=kind, round_trip=self.round_trips, messages=len(self.messages))
        try:
            response = await retry_async(_create, attempts=self.retry_attempts, retry_on=TRANSIENT_ERRORS)
        except openai.OpenAIError as exc:
            raise UpstreamGenerationError(f"model request failed: {exc}") from exc

        reply = _parse_reply(response, require_content)
        self.messages.append(_assistant_message(reply))
        return reply


def _parse_reply(response, require_content: bool = True) -> ModelReply:
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise UpstreamGenerationError("model returned no choices")
    message = getattr(choices[0], "message", None)
    if message is None:
        raise UpstreamGenerationError("model returned no message")

    calls = []
    for call in getattr(message, "tool_calls", None) or []:
        fn = getattr(call, "function", None)
        if fn is None:
            continue
        calls.append(ToolCall(id=call.id, name=fn.name, arguments=fn.arguments or ""))

    text = getattr(message, "content", None) or ""
    if require_content and not calls and not text.strip():
        raise UpstreamGenerationError("model returned an empty response")
    return ModelReply(text=text, tool_calls=calls)


def _assistant_message(reply: ModelReply) -> Dict[str, Any]:
    # content may only be null alongside tool_calls
    message: Dict[str, Any] = {"role": "assistant", "content": reply.text or (None if reply.tool_calls else "")}
    if reply.tool_calls:
        message["tool_calls"] = [
            {"id": c.id, "type": "function", "function": {"name": c.name, "arguments": c.arguments}}
            for c in reply.tool_calls
        ]
    return message
