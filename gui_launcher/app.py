from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlencode

from fastapi import FastAPI, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from jsonschema import ValidationError as SchemaValidationError
from pydantic import ValidationError

from adapters.llm import make_provider
from adapters.llm.credentials import ChainedCredentialProvider, EnvCredentialProvider, SessionKeyStore
from adapters.llm.providers.base import (
    CredentialInvalidError,
    CredentialMissingError,
    EmptyResponseError,
    LLMProviderError,
)
from ai_assist.indicator import generate_indicator
from config.schema import TIMEFRAMES, AppConfig, StrategyConfig, load_app_config, load_messages
from gui_launcher.state import GenerationInProgress, GeneratorSession


logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).parent.parent
TEMPLATES = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

# HTTP status per condition code for the JSON API.
ERROR_STATUS: dict[str, int] = {
    CredentialMissingError.code: 401,
    CredentialInvalidError.code: 401,
    EmptyResponseError.code: 502,
    GenerationInProgress.code: 409,
}


def configure_app(app: FastAPI, app_config: AppConfig) -> None:
    """(Re)build provider, credentials and session state on ``app.state``."""

    key_store = SessionKeyStore()
    credentials = ChainedCredentialProvider(key_store, EnvCredentialProvider(app_config.api_key_env))

    app.state.app_config = app_config
    app.state.messages = load_messages(app_config.locale)
    app.state.key_store = key_store
    app.state.key_selector = key_store
    app.state.credentials = credentials
    app.state.provider = make_provider(
        app_config.provider,
        credentials=credentials,
        min_key_length=app_config.min_api_key_length,
    )
    app.state.session = GeneratorSession(credential_configured=bool(credentials.get_api_key()))


app = FastAPI(title="XAU Scalper Pro")
configure_app(app, load_app_config())

app.mount("/static", StaticFiles(directory=str(Path(__file__).parent / "static")), name="static")


@app.middleware("http")
async def _request_id(request: Request, call_next):
    # Attach a per-request id for correlation with server logs
    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    t0 = time.perf_counter()
    response = await call_next(request)
    logger.debug(
        "%s %s -> %s in %.0fms [%s]",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - t0) * 1000,
        request_id,
    )
    response.headers["X-Request-ID"] = request_id
    return response


def _redirect_home(message: str | None = None) -> RedirectResponse:
    url = "/"
    if message:
        url += "?" + urlencode({"message": message})
    return RedirectResponse(url=url, status_code=303)


def _form_changes(
    timeframe: Optional[str],
    risk_ratio: Optional[float],
    use_smc: Optional[str],
    use_rsi: Optional[str],
    volatility_filter: Optional[str],
) -> dict[str, Any]:
    # Unchecked checkboxes are simply absent from the form body.
    return {
        "timeframe": timeframe,
        "risk_ratio": risk_ratio,
        "use_smc": use_smc is not None,
        "use_rsi": use_rsi is not None,
        "volatility_filter": volatility_filter is not None,
    }


def run_generation(app_state: Any, **changes: Any) -> GeneratorSession:
    """Run one generate action against the session held in ``app_state``.

    ``changes`` are applied to the config only if the action is accepted.
    Raises `GenerationInProgress` when another call is in flight and
    pydantic's `ValidationError` for bad changes; either way the session is
    left as it was. Every failure after that is stored on the session as a
    user-facing message.
    """

    session: GeneratorSession = app_state.session
    cfg: AppConfig = app_state.app_config
    messages: dict[str, str] = app_state.messages

    config = session.begin(**changes)
    try:
        output = generate_indicator(
            config,
            provider=app_state.provider,
            model=cfg.model,
            temperature=cfg.temperature,
            timeout_s=cfg.timeout_s,
            artifacts_base_dir=(REPO_ROOT / cfg.artifacts_dir) if cfg.artifacts_dir else None,
        )
        session.succeed(output)
    except (CredentialMissingError, CredentialInvalidError) as e:
        session.mark_credential(False)
        session.fail(messages.get(e.code) or str(e), e.code)
        app_state.key_selector.open_selector()
    except EmptyResponseError as e:
        session.fail(messages.get(e.code) or str(e), e.code)
    except (LLMProviderError, ValueError, SchemaValidationError) as e:
        session.fail(str(e) or messages.get("GENERIC_FAILURE", type(e).__name__), None)
    except Exception as e:
        # Already logged with traceback by generate_indicator.
        session.fail(messages.get("GENERIC_FAILURE", type(e).__name__), None)
    finally:
        session.finish()
    return session


@app.get("/", response_class=HTMLResponse)
def home(request: Request, message: str | None = None):
    st = request.app.state
    snapshot = st.session.snapshot()
    show_key_form = not snapshot["credential_configured"] or st.key_store.selector_requested
    return TEMPLATES.TemplateResponse(
        request,
        "index.html",
        {
            "title": "XAUUSD Scalper Pro",
            "state": snapshot,
            "timeframes": TIMEFRAMES,
            "messages": st.messages,
            "message": message,
            "copy_feedback_ms": st.app_config.copy_feedback_ms,
            "show_key_form": show_key_form,
            "provider": st.app_config.provider,
            "model": st.app_config.model,
        },
    )


@app.post("/config")
def update_config(
    request: Request,
    timeframe: Optional[str] = Form(None),
    risk_ratio: Optional[float] = Form(None),
    use_smc: Optional[str] = Form(None),
    use_rsi: Optional[str] = Form(None),
    volatility_filter: Optional[str] = Form(None),
):
    try:
        request.app.state.session.update_config(
            **_form_changes(timeframe, risk_ratio, use_smc, use_rsi, volatility_filter)
        )
    except ValidationError as e:
        return _redirect_home(f"Invalid configuration: {e.errors()[0].get('msg', e)}")
    return _redirect_home()


@app.post("/generate")
def generate_from_form(
    request: Request,
    timeframe: Optional[str] = Form(None),
    risk_ratio: Optional[float] = Form(None),
    use_smc: Optional[str] = Form(None),
    use_rsi: Optional[str] = Form(None),
    volatility_filter: Optional[str] = Form(None),
):
    st = request.app.state
    try:
        run_generation(st, **_form_changes(timeframe, risk_ratio, use_smc, use_rsi, volatility_filter))
    except GenerationInProgress:
        logger.warning("Rejected generate request: a generation is already running")
        return _redirect_home(st.messages.get(GenerationInProgress.code))
    except ValidationError as e:
        return _redirect_home(f"Invalid configuration: {e.errors()[0].get('msg', e)}")
    return _redirect_home()


@app.post("/api/generate", response_class=JSONResponse)
def api_generate(request: Request, config: StrategyConfig) -> JSONResponse:
    st = request.app.state
    try:
        session = run_generation(st, **config.model_dump())
    except GenerationInProgress as e:
        logger.warning("Rejected generate request: a generation is already running")
        return JSONResponse(
            status_code=ERROR_STATUS[e.code],
            content={"ok": False, "code": e.code, "message": st.messages.get(e.code, str(e))},
        )

    snapshot = session.snapshot()
    if snapshot["status"] == "error":
        code = snapshot["error_code"]
        return JSONResponse(
            status_code=ERROR_STATUS.get(code or "", 502),
            content={
                "ok": False,
                "code": code,
                "message": snapshot["error"],
                "open_key_selector": code in (CredentialMissingError.code, CredentialInvalidError.code),
            },
        )
    return JSONResponse({"ok": True, "output": snapshot["output"], "config": snapshot["config"]})


@app.get("/api/state", response_class=JSONResponse)
def api_state(request: Request) -> JSONResponse:
    return JSONResponse(request.app.state.session.snapshot())


@app.get("/api/output/code", response_class=PlainTextResponse)
def api_output_code(request: Request):
    output = request.app.state.session.output
    if output is None:
        return PlainTextResponse("No indicator has been generated yet", status_code=404)
    return PlainTextResponse(output.code)


@app.get("/api-key", response_class=HTMLResponse)
def api_key_form(request: Request):
    st = request.app.state
    return TEMPLATES.TemplateResponse(
        request,
        "api_key.html",
        {
            "title": "API Key",
            "has_session_key": st.key_store.has_credential(),
            "api_key_env": st.app_config.api_key_env,
            "min_length": st.app_config.min_api_key_length,
        },
    )


@app.post("/api-key")
def api_key_submit(request: Request, api_key: str = Form("")):
    st = request.app.state
    st.key_store.set_api_key(api_key)
    # Marked configured without verifying; the next generation will tell.
    st.session.mark_credential(bool(st.credentials.get_api_key()))
    logger.info("API key %s via launcher form", "updated" if st.key_store.has_credential() else "cleared")
    return _redirect_home()

