"""Drives the model's generate_image requests until it settles on HTML.

State machine::

    AWAITING_RESPONSE --(no tool calls)--> DONE
    AWAITING_RESPONSE --(tool calls)-----> DISPATCHING
    DISPATCHING --(acks [+ vision follow-up] sent)--> AWAITING_RESPONSE

Each DISPATCHING pass is one round. After ``max_rounds`` rounds any further
requests are refused with failed acknowledgments and tools disabled, which
forces a text reply.
"""

import enum
import json
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple

import pydantic

from ..errors import ImageGenerationError
from ..observer import GenerationObserver, NullObserver
from ..schemas import GeneratedImage, ImageRequest
from .conversation import ConversationSession, ModelReply, ToolCall, ToolResult
from .prompts import IMAGE_TOOL, Part, vision_follow_up


ImageGenerator = Callable[[ImageRequest], Awaitable[GeneratedImage]]

DEFAULT_MAX_ROUNDS = 3
ROUND_LIMIT_ERROR = "Image limit reached for this turn. Finish the form without additional images."


class LoopState(enum.Enum):
    AWAITING_RESPONSE = "awaiting_response"
    DISPATCHING = "dispatching"
    DONE = "done"


@dataclass
class LoopOutcome:
    text: str
    images: List[GeneratedImage] = field(default_factory=list)
    rounds: int = 0
    capped: bool = False


def parse_image_request(call: ToolCall) -> ImageRequest:
    if call.name != IMAGE_TOOL["name"]:
        raise ImageGenerationError(f"unknown function: {call.name}")
    try:
        args = json.loads(call.arguments or "{}")
    except json.JSONDecodeError as exc:
        raise ImageGenerationError(f"arguments are not valid JSON: {exc}") from exc
    if not isinstance(args, dict):
        raise ImageGenerationError("arguments must be a JSON object")
    try:
        return ImageRequest.model_validate(args)
    except pydantic.ValidationError as exc:
        raise ImageGenerationError(f"invalid generate_image arguments: {exc.error_count()} error(s)") from exc


class ImageRequestLoop:
    def __init__(
        self,
        session: ConversationSession,
        generator: Optional[ImageGenerator],
        *,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        observer: Optional[GenerationObserver] = None,
    ):
        self.session = session
        self.generator = generator
        self.max_rounds = max_rounds
        self.observer = observer or NullObserver()
        self.state = LoopState.AWAITING_RESPONSE
        self.images: List[GeneratedImage] = []
        self.rounds = 0

    async def run(self, reply: ModelReply) -> LoopOutcome:
        capped = False
        while True:
            if self.state is LoopState.AWAITING_RESPONSE:
                if not reply.wants_tools:
                    self.state = LoopState.DONE
                elif self.rounds >= self.max_rounds:
                    capped = True
                    reply = await self._refuse(reply)
                    self.state = LoopState.DONE
                else:
                    self.state = LoopState.DISPATCHING
            elif self.state is LoopState.DISPATCHING:
                reply = await self._dispatch(reply.tool_calls)
                self.state = LoopState.AWAITING_RESPONSE
            else:
                return LoopOutcome(text=reply.text, images=list(self.images), rounds=self.rounds, capped=capped)

    async def _dispatch(self, calls: List[ToolCall]) -> ModelReply:
        self.rounds += 1
        acks: List[ToolResult] = []
        follow_up: List[Part] = []
        for call in calls:
            ack, parts = await self._handle(call)
            acks.append(ack)
            follow_up.extend(parts)

        # Acknowledgments and image data never share a message.
        # An intermediate reply may be empty; only the one after the follow-up is evaluated.
        reply = await self.session.send_tool_results(acks, allow_tools=not follow_up, require_content=not follow_up)
        if follow_up:
            reply = await self.session.send(follow_up)
        return reply

    async def _handle(self, call: ToolCall) -> Tuple[ToolResult, List[Part]]:
        try:
            if self.generator is None:
                raise ImageGenerationError("image generation is not available")
            request = parse_image_request(call)
            image = await self.generator(request)
        except ImageGenerationError as exc:
            self.observer.emit("image_failed", call_id=call.id, error=str(exc))
            return ToolResult(call.id, call.name, {"success": False, "error": str(exc)}), []

        self.images.append(image)
        self.observer.emit("image_received", call_id=call.id, kind=image.kind, url=image.url, mime_type=image.mime_type)
        payload = {"success": True, "url": image.url, "imageType": image.kind}
        return ToolResult(call.id, call.name, payload), vision_follow_up(image)

    async def _refuse(self, reply: ModelReply) -> ModelReply:
        self.observer.emit(
            "anomaly",
            reason="image round limit reached",
            max_rounds=self.max_rounds,
            pending_calls=len(reply.tool_calls),
            images=len(self.images),
        )
        acks = [ToolResult(c.id, c.name, {"success": False, "error": ROUND_LIMIT_ERROR}) for c in reply.tool_calls]
        return await self.session.send_tool_results(acks, allow_tools=False)
