import sys
import types
import pathlib
import importlib.util
BASE_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

import pytest
from fastapi.testclient import TestClient

from conftest import FakeChatClient, text_response


PAGE = '<html><body><form><input name="entry.111"></form></body></html>'
RSVP = {
    "formId": "abc",
    "title": "RSVP",
    "description": "",
    "questions": [
        {"id": "1", "entryId": "entry.111", "text": "Name", "type": "short_answer", "required": True, "options": []},
    ],
}


def load_main_module():
    base_dir = pathlib.Path(__file__).resolve().parents[1]
    if str(base_dir) not in sys.path:
        sys.path.insert(0, str(base_dir))
    main_path = base_dir / "main.py"
    spec = importlib.util.spec_from_file_location("main", str(main_path))
    assert spec and spec.loader
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)  # type: ignore[attr-defined]
    return mod


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("DOTENV_DISABLED", "1")
    monkeypatch.setenv("OPENAI_API_KEY", "test")
    monkeypatch.setenv("OPENAI_RETRY_ATTEMPTS", "1")
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path))
    monkeypatch.delenv("PUBLIC_BASE_URL", raising=False)
    return monkeypatch


@pytest.fixture
def fake_openai(env):
    import restyler.services.generation as gen

    fake = FakeChatClient()

    def _factory(**kwargs):
        return fake

    env.setattr(gen, "AsyncOpenAI", _factory)
    return fake


def test_health(env):
    app_mod = load_main_module()
    client = TestClient(app_mod.app)
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_generate_success(fake_openai):
    fake_openai.responses.append(text_response("```html\n" + PAGE + "\n```"))
    app_mod = load_main_module()
    client = TestClient(app_mod.app)

    resp = client.post("/api/generate", json={"structure": RSVP, "prompt": "make it dark mode", "history": [], "previousHtml": ""})
    assert resp.status_code == 200
    body = resp.json()
    assert body["html"] == PAGE
    assert body["generatedImages"] == []
    system = fake_openai.requests[0]["messages"][0]["content"]
    assert "http://testserver/api/submit/abc" in system


def test_generate_requires_structure_and_prompt(fake_openai):
    app_mod = load_main_module()
    client = TestClient(app_mod.app)
    resp = client.post("/api/generate", json={"structure": RSVP})
    assert resp.status_code == 400
    assert "required" in resp.json()["detail"]
    assert fake_openai.requests == []


def test_generate_without_key(env):
    env.delenv("OPENAI_API_KEY", raising=False)
    app_mod = load_main_module()
    client = TestClient(app_mod.app)
    resp = client.post("/api/generate", json={"structure": RSVP, "prompt": "x"})
    assert resp.status_code == 500
    assert "OPENAI_API_KEY" in resp.json()["detail"]


def test_generate_upstream_failure(fake_openai):
    fake_openai.responses.append(types.SimpleNamespace(choices=[]))
    app_mod = load_main_module()
    client = TestClient(app_mod.app)
    resp = client.post("/api/generate", json={"structure": RSVP, "prompt": "x"})
    assert resp.status_code == 502


def test_publish_and_serve(env):
    app_mod = load_main_module()
    client = TestClient(app_mod.app)

    assert client.post("/api/publish", json={"html": PAGE}).status_code == 400
    resp = client.post("/api/publish", json={"html": PAGE, "formId": "abc"})
    assert resp.status_code == 200
    url = resp.json()["url"]
    assert url == f"/f/{resp.json()['id']}"

    page = client.get(url)
    assert page.status_code == 200
    assert page.text == PAGE
    assert page.headers["content-type"].startswith("text/html")

    missing = client.get("/f/nope")
    assert missing.status_code == 404
    assert "Form not found" in missing.text


def test_submit_preflight_allows_any_origin(env):
    app_mod = load_main_module()
    client = TestClient(app_mod.app)
    resp = client.options("/api/submit/abc")
    assert resp.status_code == 204
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "POST" in resp.headers["access-control-allow-methods"]
    assert resp.headers["access-control-allow-headers"] == "Content-Type"


def test_submit_open_to_sandboxed_pages_under_restricted_cors(env):
    env.setenv("CORS_ALLOW_ORIGINS", "https://app.example.com")
    import restyler.routes.submit as submit_routes

    async def _forward(form_id, body):
        return 200

    env.setattr(submit_routes, "forward_submission", _forward)
    app_mod = load_main_module()
    client = TestClient(app_mod.app)
    preflight = {
        "Origin": "null",
        "Access-Control-Request-Method": "POST",
        "Access-Control-Request-Headers": "Content-Type",
    }

    resp = client.options("/api/submit/abc", headers=preflight)
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "POST" in resp.headers["access-control-allow-methods"]

    posted = client.post("/api/submit/abc", json={"entry.111": "Ada"}, headers={"Origin": "null"})
    assert posted.status_code == 200
    assert posted.headers["access-control-allow-origin"] == "*"

    # the rest of the API keeps the configured origins
    assert client.options("/api/generate", headers=preflight).status_code == 400
    allowed = client.options("/api/generate", headers={**preflight, "Origin": "https://app.example.com"})
    assert allowed.status_code == 200
    assert allowed.headers["access-control-allow-origin"] == "https://app.example.com"


def test_submit_forwards(env):
    import restyler.routes.submit as submit_routes

    forwarded = {}

    async def _forward(form_id, body):
        forwarded.update(form_id=form_id, body=body)
        return 200

    env.setattr(submit_routes, "forward_submission", _forward)
    app_mod = load_main_module()
    client = TestClient(app_mod.app)
    resp = client.post("/api/submit/abc", json={"entry.111": "Ada", "entry.2": ["A", "B"]})
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers["access-control-allow-origin"] == "*"
    assert forwarded == {"form_id": "abc", "body": {"entry.111": "Ada", "entry.2": ["A", "B"]}}


def test_scrape_route(env):
    import restyler.services.scraper as scraper
    from restyler.schemas import FormStructure

    async def _scrape(url):
        return FormStructure.model_validate(RSVP)

    env.setattr(scraper, "scrape_form", _scrape)
    app_mod = load_main_module()
    client = TestClient(app_mod.app)

    resp = client.post("/api/scrape", json={"url": "https://docs.google.com/forms/d/e/abc/viewform"})
    assert resp.status_code == 200
    assert resp.json()["structure"]["questions"][0]["entryId"] == "entry.111"
    assert client.post("/api/scrape", json={}).status_code == 400


def test_screenshot_blocks_private_hosts(env):
    app_mod = load_main_module()
    client = TestClient(app_mod.app)
    resp = client.post("/api/screenshot", json={"url": "http://169.254.169.254/"})
    assert resp.status_code == 400


def test_upload_image(env):
    app_mod = load_main_module()
    client = TestClient(app_mod.app)
    png = b"\x89PNG\r\n\x1a\n" + b"0" * 32
    resp = client.post("/api/upload", files={"image": ("logo.png", png, "image/png")})
    assert resp.status_code == 200
    url = resp.json()["url"]
    assert url.startswith("http://testserver/uploads/") and url.endswith(".png")
    served = client.get(url.replace("http://testserver", ""))
    assert served.content == png

    bad = client.post("/api/upload", files={"image": ("notes.txt", b"hi", "text/plain")})
    assert bad.status_code == 400


def test_sessions_are_independent(env):
    app_mod = load_main_module()
    client = TestClient(app_mod.app)

    # Start first session
    r1 = client.post("/api/session/start", json={"structure": RSVP})
    assert r1.status_code == 200
    s1 = r1.json()["session_id"]
    client.post(f"/api/session/{s1}/document", json={"html": "<p>A</p>", "title": "A"})

    # Start second session
    r2 = client.post("/api/session/start", json={"structure": RSVP})
    assert r2.status_code == 200
    s2 = r2.json()["session_id"]
    client.post(f"/api/session/{s2}/document", json={"html": "<p>B</p>", "title": "B"})

    rl = client.get("/api/session/list")
    assert rl.status_code == 200
    sessions = rl.json()["sessions"]
    ids = {s["session_id"] for s in sessions}
    assert s1 in ids and s2 in ids
    titles = {s["session_id"]: s.get("document_title") for s in sessions}
    assert titles.get(s1) == "A"
    assert titles.get(s2) == "B"

    assert client.post("/api/session/start", json={}).status_code == 400
    assert client.get("/api/session/missing/history").status_code == 404


def test_chat_turns_build_history(fake_openai):
    second_page = PAGE.replace("<form>", '<form class="green">')
    fake_openai.responses.extend([text_response(PAGE), text_response(second_page)])
    app_mod = load_main_module()
    client = TestClient(app_mod.app)

    sid = client.post("/api/session/start", json={"structure": RSVP}).json()["session_id"]
    first = client.post("/api/chat", json={"session_id": sid, "message": {"role": "user", "content": "make it dark mode"}})
    assert first.status_code == 200
    assert first.json()["html"] == PAGE

    second = client.post("/api/chat", json={"session_id": sid, "message": {"role": "user", "content": "green button"}})
    assert second.status_code == 200

    replay = fake_openai.requests[1]["messages"]
    assert [m["role"] for m in replay[1:3]] == ["user", "assistant"]
    assert replay[2]["content"] == PAGE
    final = replay[-1]["content"][-1]["text"]
    assert final.startswith("Current form HTML:\n" + PAGE)

    history = client.get(f"/api/session/{sid}/history").json()
    assert [m["role"] for m in history["messages"]] == ["user", "model", "user", "model"]
    assert history["messages"][-1]["text"] == second_page

    assert client.post("/api/chat", json={"session_id": "missing", "message": {"role": "user", "content": "x"}}).status_code == 404


def test_failed_chat_turn_leaves_history_untouched(fake_openai):
    fake_openai.responses.append(types.SimpleNamespace(choices=[]))
    app_mod = load_main_module()
    client = TestClient(app_mod.app)

    sid = client.post("/api/session/start", json={"structure": RSVP}).json()["session_id"]
    resp = client.post("/api/chat", json={"session_id": sid, "message": {"role": "user", "content": "x"}})
    assert resp.status_code == 502
    assert client.get(f"/api/session/{sid}/history").json()["messages"] == []


def test_chat_accepts_only_user_messages(fake_openai):
    app_mod = load_main_module()
    client = TestClient(app_mod.app)

    sid = client.post("/api/session/start", json={"structure": RSVP}).json()["session_id"]
    resp = client.post("/api/chat", json={"session_id": sid, "message": {"role": "assistant", "content": "<html></html>"}})
    assert resp.status_code == 422
    assert fake_openai.requests == []
    assert client.get(f"/api/session/{sid}/history").json()["messages"] == []
