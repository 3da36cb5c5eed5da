from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import gui_launcher.app as appmod
from adapters.llm.providers.base import CredentialInvalidError, EmptyResponseError, LLMProviderError
from adapters.llm.providers.gemini import GeminiClient
from config.schema import AppConfig
from fakes import FakeGenaiClient, FakeProvider, gemini_document, gemini_error


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    appmod.configure_app(appmod.app, AppConfig())
    return TestClient(appmod.app)


def _use_provider(provider):
    appmod.app.state.provider = provider
    return provider


def test_home_renders_form(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert "Gold Scalper Config" in resp.text
    assert "Configure and generate to see the script" in resp.text
    assert resp.headers.get("X-Request-ID")


def test_home_shows_key_form_without_credential(client):
    assert 'action="/api-key"' in client.get("/").text


def test_api_generate_success(client):
    provider = _use_provider(FakeProvider(content='{"code":"//test","explanation":"why","keyFeatures":["EMA","ATR"]}'))
    payload = {"timeframe": "M1", "riskRatio": 3, "useSMC": False, "useRSI": True, "volatilityFilter": True}

    resp = client.post("/api/generate", json=payload)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["ok"] is True
    assert body["output"] == {"code": "//test", "explanation": "why", "keyFeatures": ["EMA", "ATR"]}
    assert body["config"]["timeframe"] == "M1"
    assert "Smart Money" not in provider.calls[0]["messages"][-1]["content"]

    state = client.get("/api/state").json()
    assert state["status"] == "success"
    assert state["loading"] is False


def test_copy_source_and_feedback_interval(client):
    _use_provider(FakeProvider(content='{"code":"//test","explanation":"","keyFeatures":[]}'))
    assert client.get("/api/output/code").status_code == 404

    client.post("/api/generate", json={})
    resp = client.get("/api/output/code")
    assert resp.status_code == 200
    assert resp.text == "//test"

    page = client.get("/").text
    assert 'data-copy-feedback-ms="2000"' in page
    assert "//test" in page


def test_missing_key_flow_opens_selector_without_network(client):
    fake = FakeGenaiClient(response=gemini_document())
    _use_provider(GeminiClient(credentials=appmod.app.state.credentials, client_factory=fake))

    resp = client.post("/api/generate", json={})
    assert resp.status_code == 401
    body = resp.json()
    assert body["code"] == "API_KEY_MISSING"
    assert body["open_key_selector"] is True
    assert body["message"] == appmod.app.state.messages["API_KEY_MISSING"]
    assert fake.calls == []
    assert appmod.app.state.key_store.selector_requested is True

    state = client.get("/api/state").json()
    assert state["credential_configured"] is False
    assert state["loading"] is False


def test_key_form_then_invalid_key(client):
    fake = FakeGenaiClient(response=gemini_error(404, "Requested entity was not found.", status="NOT_FOUND"))
    _use_provider(GeminiClient(credentials=appmod.app.state.credentials, client_factory=fake))

    resp = client.post("/api-key", data={"api_key": "bogus-key-0123456789"})
    assert resp.status_code == 200
    assert client.get("/api/state").json()["credential_configured"] is True

    resp = client.post("/api/generate", json={})
    assert resp.status_code == 401
    assert resp.json()["code"] == "API_KEY_INVALID"
    assert fake.api_keys == ["bogus-key-0123456789"]
    assert client.get("/api/state").json()["credential_configured"] is False


def test_key_update_takes_effect_on_next_call(client):
    fake = FakeGenaiClient(response=gemini_document({"code": "c", "explanation": "e", "keyFeatures": []}))
    _use_provider(GeminiClient(credentials=appmod.app.state.credentials, client_factory=fake))

    assert client.post("/api/generate", json={}).status_code == 401
    client.post("/api-key", data={"api_key": "fresh-key-0123456789"})
    assert client.post("/api/generate", json={}).status_code == 200
    assert fake.api_keys == ["fresh-key-0123456789"]


@pytest.mark.parametrize(
    "error, status, code",
    [
        (EmptyResponseError("nothing"), 502, "EMPTY_RESPONSE"),
        (CredentialInvalidError("Requested entity was not found."), 401, "API_KEY_INVALID"),
        (LLMProviderError("Gemini error 503: overloaded"), 502, None),
    ],
)
def test_api_generate_error_mapping(client, error, status, code):
    _use_provider(FakeProvider(error=error))
    resp = client.post("/api/generate", json={})
    assert resp.status_code == status
    body = resp.json()
    assert body["ok"] is False
    assert body["code"] == code
    if code is None:
        assert body["message"] == "Gemini error 503: overloaded"
    assert client.get("/api/state").json()["loading"] is False


def test_parse_failure_message_passes_through(client):
    _use_provider(FakeProvider(content="not json"))
    resp = client.post("/api/generate", json={})
    assert resp.status_code == 502
    assert resp.json()["code"] is None
    assert "Expecting value" in resp.json()["message"]


def test_reject_while_loading(client):
    provider = _use_provider(FakeProvider())
    session = appmod.app.state.session
    before = session.snapshot()["config"]
    session.loading = True

    resp = client.post("/api/generate", json={"timeframe": "M15", "riskRatio": 5, "useSMC": False})
    assert resp.status_code == 409
    assert resp.json()["code"] == "GENERATION_IN_PROGRESS"
    assert provider.calls == []
    assert session.snapshot()["config"] == before

    resp = client.post("/generate", data={"timeframe": "M1", "risk_ratio": "7"})
    assert resp.status_code == 200
    assert provider.calls == []
    assert appmod.app.state.messages["GENERATION_IN_PROGRESS"] in resp.text
    assert session.snapshot()["config"] == before
    assert session.loading is True


def test_invalid_api_payload_is_422(client):
    _use_provider(FakeProvider())
    assert client.post("/api/generate", json={"timeframe": "H4"}).status_code == 422
    assert client.post("/api/generate", json={"riskRatio": 0}).status_code == 422
    resp = client.post("/api/generate", content='{"riskRatio": Infinity}', headers={"Content-Type": "application/json"})
    assert resp.status_code == 422
    assert client.get("/api/state").json()["config"]["riskRatio"] == 2.0


def test_form_generate_updates_config_and_renders_output(client):
    provider = _use_provider(FakeProvider(content='{"code":"//form","explanation":"expl","keyFeatures":["one"]}'))
    resp = client.post("/generate", data={"timeframe": "M15", "risk_ratio": "4.5", "use_rsi": "1"})
    assert resp.status_code == 200
    assert "//form" in resp.text
    assert "expl" in resp.text

    prompt = provider.calls[0]["messages"][-1]["content"]
    assert "M15" in prompt and "1:4.5" in prompt
    assert "Momentum RSI" in prompt
    assert "Smart Money" not in prompt

    config = client.get("/api/state").json()["config"]
    assert config == {"timeframe": "M15", "riskRatio": 4.5, "useSMC": False, "useRSI": True, "volatilityFilter": False}


def test_form_error_is_rendered(client):
    _use_provider(FakeProvider(error=EmptyResponseError("nothing")))
    resp = client.post("/generate", data={"timeframe": "M5", "risk_ratio": "2"})
    assert appmod.app.state.messages["EMPTY_RESPONSE"] in resp.text


def test_config_form_rejects_bad_ratio(client):
    resp = client.post("/config", data={"timeframe": "M5", "risk_ratio": "0"})
    assert resp.status_code == 200
    assert "Invalid configuration" in resp.text
    assert client.get("/api/state").json()["config"]["riskRatio"] == 2.0


def test_api_key_page_and_clear(client):
    assert "GEMINI_API_KEY" in client.get("/api-key").text
    client.post("/api-key", data={"api_key": "some-key-0123456789"})
    assert appmod.app.state.key_store.has_credential()
    client.post("/api-key", data={"api_key": ""})
    assert not appmod.app.state.key_store.has_credential()
    assert client.get("/api/state").json()["credential_configured"] is False


def test_form_generate_with_bad_ratio_leaves_session_idle(client):
    provider = _use_provider(FakeProvider())
    resp = client.post("/generate", data={"timeframe": "M5", "risk_ratio": "0"})
    assert "Invalid configuration" in resp.text
    assert provider.calls == []
    state = client.get("/api/state").json()
    assert state["status"] == "idle"
    assert state["config"]["riskRatio"] == 2.0


def test_unexpected_failure_is_shown_inline(client, caplog):
    _use_provider(FakeProvider(error=AttributeError("'str' object has no attribute 'get'")))
    resp = client.post("/api/generate", json={})
    assert resp.status_code == 502
    body = resp.json()
    assert body["ok"] is False
    assert body["message"] == appmod.app.state.messages["GENERIC_FAILURE"]
    assert client.get("/api/state").json()["loading"] is False
    assert any("Error generating indicator" in r.getMessage() for r in caplog.records)


def test_malformed_gemini_reply_is_shown_inline(client):
    client.post("/api-key", data={"api_key": "real-looking-key-0123456789"})
    fake = FakeGenaiClient(response=ValueError("Expecting value: line 1 column 1 (char 0)"))
    _use_provider(GeminiClient(credentials=appmod.app.state.credentials, client_factory=fake))

    resp = client.post("/generate", data={"timeframe": "M5", "risk_ratio": "2"})
    assert resp.status_code == 200
    assert "Expecting value" in resp.text
    assert client.get("/api/state").json()["status"] == "error"
