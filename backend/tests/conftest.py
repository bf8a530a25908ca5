import json
import pathlib
import sys
import types

import pytest

BASE_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from restyler.config import Settings  # noqa: E402
from restyler.schemas import FormStructure, GeneratedImage  # noqa: E402


def text_response(content):
    message = types.SimpleNamespace(content=content, tool_calls=None)
    return types.SimpleNamespace(choices=[types.SimpleNamespace(message=message)])


def tool_response(*calls):
    tool_calls = [
        types.SimpleNamespace(
            id=call_id,
            type="function",
            function=types.SimpleNamespace(name=name, arguments=json.dumps(args) if isinstance(args, dict) else args),
        )
        for call_id, name, args in calls
    ]
    message = types.SimpleNamespace(content=None, tool_calls=tool_calls)
    return types.SimpleNamespace(choices=[types.SimpleNamespace(message=message)])


class FakeChatClient:
    """Scripted stand-in for AsyncOpenAI; records every completion request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.chat = types.SimpleNamespace(completions=types.SimpleNamespace(create=self.create))

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if not self.responses:
            raise AssertionError("unexpected extra model request")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class RecordingObserver:
    def __init__(self):
        self.events = []

    def emit(self, event, **payload):
        self.events.append((event, payload))

    def names(self):
        return [name for name, _ in self.events]


def make_image(url="https://cdn.test/form-header-abc.png", kind="header"):
    return GeneratedImage(url=url, kind=kind, data="aW1hZ2U=", mime_type="image/png")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        openai_api_key="test",
        openai_model="gpt-test",
        openai_image_model="image-test",
        openai_max_tokens=4000,
        openai_timeout_s=5.0,
        openai_retry_attempts=1,
        max_image_rounds=3,
        cors_allow_origins=["*"],
        public_base_url=None,
        storage_dir=tmp_path,
        publish_ttl_s=60,
        log_level="INFO",
        prompts={},
    )


@pytest.fixture
def rsvp():
    return FormStructure.model_validate({
        "formId": "abc",
        "title": "RSVP",
        "description": "",
        "questions": [
            {"id": "1", "entryId": "entry.111", "text": "Name", "type": "short_answer", "required": True, "options": []},
        ],
    })


@pytest.fixture
def survey():
    return FormStructure.model_validate({
        "formId": "xyz",
        "title": "Team survey",
        "description": "Quarterly check-in",
        "questions": [
            {"id": "1", "entryId": "entry.1", "text": "Team", "type": "dropdown", "required": True, "options": ["Red", "Blue"]},
            {"id": "2", "entryId": "entry.2", "text": "Upload", "type": "unknown", "required": False, "options": []},
            {"id": "3", "entryId": "entry.3", "text": "Snacks", "type": "checkboxes", "required": False, "options": ["Chips", "Fruit"]},
            {
                "id": "4", "entryId": "entry.4", "text": "Mood", "type": "linear_scale", "required": False,
                "options": ["1", "2", "3", "4", "5"], "scaleMin": 1, "scaleMax": 5,
                "scaleMinLabel": "Low", "scaleMaxLabel": "High",
            },
        ],
    })
