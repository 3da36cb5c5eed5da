from __future__ import annotations

from pathlib import Path
from typing import Any

from config.schema import StrategyConfig


PROMPT_VERSION = "pine_indicator_v1"

SYSTEM_PROMPT = (
    "You are a Pine Script v5 code generator for XAUUSD scalping indicators. "
    "Output a single JSON object only. No commentary, no markdown fences."
)

SMC_CLAUSE = "Smart Money Concepts (FVG, BOS, OB)"
RSI_CLAUSE = "Momentum RSI"
VOLATILITY_CLAUSE = "ATR-based Volatility Filter"
NO_MODULES_CLAUSE = "none (core trend logic only)"

# Declared output document; every field is required.
RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "code": {"type": "string"},
        "explanation": {"type": "string"},
        "keyFeatures": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["code", "explanation", "keyFeatures"],
}


def _load_prompt_template(prompt_version: str) -> str:
    prompt_path = Path(__file__).parent / "prompts" / f"{prompt_version}.md"
    return prompt_path.read_text(encoding="utf-8")


def load_prompt_template() -> str:
    return _load_prompt_template(PROMPT_VERSION)


def format_risk_ratio(value: float) -> str:
    """``2.0`` -> ``"2"``, ``2.5`` -> ``"2.5"``."""
    v = float(value)
    return str(int(v)) if v.is_integer() else str(v)


def strategy_modules(config: StrategyConfig) -> list[str]:
    modules: list[str] = []
    if config.use_smc:
        modules.append(SMC_CLAUSE)
    if config.use_rsi:
        modules.append(RSI_CLAUSE)
    if config.volatility_filter:
        modules.append(VOLATILITY_CLAUSE)
    return modules


def build_indicator_prompt(config: StrategyConfig) -> str:
    """Render the indicator request for ``config``.

    Disabled modules are left out of the module list. The EMA trend filter
    and the ATR stop/target levels are always requested.
    """
    modules = strategy_modules(config)
    return load_prompt_template().format(
        timeframe=config.timeframe,
        risk_ratio=format_risk_ratio(config.risk_ratio),
        modules=", ".join(modules) if modules else NO_MODULES_CLAUSE,
    )


def build_messages(config: StrategyConfig) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_indicator_prompt(config)},
    ]
