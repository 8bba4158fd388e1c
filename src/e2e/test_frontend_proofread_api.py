import json

import pytest

import correctnow_web.web as webmod
from correctnow_web.web import app as flask_app, build_prompt


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 400
        self._body = body
        self.text = text if text is not None else json.dumps(body)

    def json(self):
        if self._body is None:
            raise ValueError("not json")
        return self._body


def _gemini(payload_text):
    return FakeResponse(body={"candidates": [{"content": {"parts": [{"text": payload_text}]}}]})


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    return flask_app.test_client()


def test_build_prompt_language_line():
    assert "Language: French." in build_prompt("Bonjour", "French")
    assert "Auto-detect language." in build_prompt("Hello", "auto")
    assert "Auto-detect language." in build_prompt("Hello", None)
    assert build_prompt("I has a apple.", None).rstrip().endswith('I has a apple.\n"""')


@pytest.mark.e2e
def test_frontend_proofread_returns_changes(client, monkeypatch):
    calls = []

    def fake_post(url, **kw):
        calls.append((url, kw))
        return _gemini(json.dumps({
            "corrected_text": "I have an apple.",
            "changes": [{"original": "has", "corrected": "have", "explanation": "agreement"}],
        }))

    monkeypatch.setattr(webmod.requests, "post", fake_post)
    rv = client.post("/api/proofread", json={"text": "I has an apple.", "language": "auto"})
    assert rv.status_code == 200
    data = rv.get_json()
    assert data["corrected_text"] == "I have an apple."
    assert data["changes"][0]["corrected"] == "have"

    url, kw = calls[0]
    assert url.endswith(":generateContent")
    assert kw["params"] == {"key": "test-key"}
    assert kw["json"]["generationConfig"] == {"temperature": 0.2, "responseMimeType": "application/json"}
    assert "I has an apple." in kw["json"]["contents"][0]["parts"][0]["text"]


@pytest.mark.e2e
def test_frontend_proofread_forces_changes_to_list(client, monkeypatch):
    monkeypatch.setattr(webmod.requests, "post",
                        lambda url, **kw: _gemini(json.dumps({"corrected_text": "ok", "changes": "none"})))
    data = client.post("/api/proofread", json={"text": "ok text"}).get_json()
    assert data == {"corrected_text": "ok", "changes": []}


@pytest.mark.parametrize("body, message", [
    ({}, "Text is required"),
    ({"text": ""}, "Text is required"),
    ({"text": 12}, "Text is required"),
    ({"text": "word " * 2001}, "Text exceeds 2000 words"),
])
def test_frontend_proofread_rejects_bad_input(client, body, message):
    rv = client.post("/api/proofread", json=body)
    assert rv.status_code == 400
    assert rv.get_json()["message"] == message


def test_frontend_proofread_needs_api_key(client, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY")
    rv = client.post("/api/proofread", json={"text": "I has an apple."})
    assert rv.status_code == 500
    assert rv.get_json()["message"] == "Missing GEMINI_API_KEY"


@pytest.mark.parametrize("upstream, message", [
    (FakeResponse(403, text="denied"), "Gemini API error"),
    (FakeResponse(body={"candidates": []}), "Invalid Gemini response"),
    (_gemini("this is not json"), "Failed to parse Gemini response"),
    (_gemini("[1, 2]"), "Failed to parse Gemini response"),
])
def test_frontend_proofread_upstream_failures(client, monkeypatch, upstream, message):
    monkeypatch.setattr(webmod.requests, "post", lambda url, **kw: upstream)
    rv = client.post("/api/proofread", json={"text": "I has an apple."})
    assert rv.status_code == 500
    assert rv.get_json()["message"] == message


def test_frontend_proofread_network_error(client, monkeypatch):
    def boom(url, **kw):
        raise webmod.requests.ConnectionError("down")

    monkeypatch.setattr(webmod.requests, "post", boom)
    rv = client.post("/api/proofread", json={"text": "I has an apple."})
    assert rv.status_code == 500
    assert rv.get_json()["message"] == "Server error"


def test_frontend_models_lists_names(client, monkeypatch):
    monkeypatch.setattr(webmod.requests, "get", lambda url, **kw: FakeResponse(
        body={"models": [{"name": "models/gemini-2.5-flash"}, {"name": "models/other"}]}))
    rv = client.get("/api/models")
    assert rv.status_code == 200
    assert rv.get_json() == {"models": ["models/gemini-2.5-flash", "models/other"]}


def test_frontend_models_upstream_error(client, monkeypatch):
    monkeypatch.setattr(webmod.requests, "get", lambda url, **kw: FakeResponse(500, text="nope"))
    rv = client.get("/api/models")
    assert rv.status_code == 500
    assert rv.get_json() == {"message": "ListModels error", "details": "nope"}


def test_frontend_models_non_json_reply(client, monkeypatch):
    monkeypatch.setattr(webmod.requests, "get", lambda url, **kw: FakeResponse(200, text="<html>oops</html>"))
    rv = client.get("/api/models")
    assert rv.status_code == 500
    assert rv.get_json() == {"message": "ListModels error"}
