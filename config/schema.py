"""Configuration validation schemas using Pydantic."""

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, get_args

import yaml
from pydantic import BaseModel, ConfigDict, Field


CONFIG_DIR = Path(__file__).resolve().parent
APP_CONFIG_FILE = CONFIG_DIR / "app.yml"
MESSAGES_FILE = CONFIG_DIR / "messages.yml"

Timeframe = Literal["M1", "M5", "M15"]
TIMEFRAMES: tuple[str, ...] = get_args(Timeframe)

# Environment variable -> AppConfig field.
ENV_OVERRIDES: Dict[str, str] = {
    "XAU_PROVIDER": "provider",
    "XAU_MODEL": "model",
    "XAU_LOCALE": "locale",
    "XAU_ARTIFACTS_DIR": "artifacts_dir",
}


class StrategyConfig(BaseModel):
    """Indicator parameters picked in the launcher form.

    Accepts the camelCase names used by the browser (``riskRatio``) as well as
    the snake_case attribute names.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    timeframe: Timeframe = "M5"
    risk_ratio: float = Field(default=2.0, gt=0.0, allow_inf_nan=False, alias="riskRatio")
    use_smc: bool = Field(default=True, alias="useSMC")
    use_rsi: bool = Field(default=True, alias="useRSI")
    volatility_filter: bool = Field(default=True, alias="volatilityFilter")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class AppConfig(BaseModel):
    """Launcher and provider settings."""

    provider: Literal["gemini"] = "gemini"
    model: str = "gemini-3-pro-preview"
    api_key_env: str = "GEMINI_API_KEY"
    min_api_key_length: int = Field(default=10, ge=1)
    timeout_s: float = Field(default=120.0, gt=0.0)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    locale: str = "en"
    copy_feedback_ms: int = Field(default=2000, ge=0)
    artifacts_dir: Optional[str] = None


def load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_app_config(path: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> AppConfig:
    """Load launcher settings from YAML, then apply ``XAU_*`` environment overrides."""
    raw = load_yaml(path or APP_CONFIG_FILE)
    data = dict(raw.get("app") or {})

    environ = os.environ if env is None else env
    for var, key in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            data[key] = value

    return AppConfig.model_validate(data)


def load_messages(locale: str = "en", path: Optional[Path] = None) -> Dict[str, str]:
    """User-facing strings for ``locale``; missing keys fall back to English."""
    raw = load_yaml(path or MESSAGES_FILE)
    messages = raw.get("messages") or {}
    base = dict(messages.get("en") or {})
    base.update(messages.get(locale) or {})
    return base
