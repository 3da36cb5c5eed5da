from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator, ValidationError

from adapters.llm.providers.base import EmptyResponseError, LLMProvider, LLMProviderError, LLMResponse
from ai_assist.artifacts import create_ai_bundle_dir, write_ai_bundle
from ai_assist.pine_prompt import PROMPT_VERSION, RESPONSE_SCHEMA, build_messages
from config.schema import StrategyConfig


logger = logging.getLogger(__name__)

_VALIDATOR = Draft7Validator(RESPONSE_SCHEMA)


@dataclass(frozen=True)
class GeneratedOutput:
    code: str
    explanation: str
    key_features: list[str] = field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return {"code": self.code, "explanation": self.explanation, "keyFeatures": list(self.key_features)}


def parse_generated_output(text: str) -> GeneratedOutput:
    """Decode the model's JSON document.

    Raises ``json.JSONDecodeError`` for malformed text and
    ``jsonschema.ValidationError`` when a required field is missing or mistyped.
    """
    data = json.loads(text)
    _VALIDATOR.validate(data)
    return GeneratedOutput(
        code=data["code"],
        explanation=data["explanation"],
        key_features=list(data["keyFeatures"]),
    )


def _write_bundle(
    *,
    base_dir: Path,
    config: StrategyConfig,
    messages: list[dict[str, str]],
    temperature: float,
    llm: LLMResponse,
    output: GeneratedOutput,
) -> Path:
    bundle_dir = create_ai_bundle_dir(base_dir=base_dir, prefix=f"indicator_{config.timeframe.lower()}")
    write_ai_bundle(
        root=bundle_dir,
        config=config.to_wire(),
        prompt={
            "prompt_version": PROMPT_VERSION,
            "messages": messages,
            "temperature": temperature,
            "response_schema": RESPONSE_SCHEMA,
        },
        response_raw=llm.raw,
        output_text=output.code,
        meta={
            "provider": llm.provider,
            "model": llm.model,
            "request_id": llm.request_id,
            "latency_s": llm.latency_s,
            "prompt_tokens": llm.prompt_tokens,
            "completion_tokens": llm.completion_tokens,
            "total_tokens": llm.total_tokens,
            "explanation": output.explanation,
            "key_features": list(output.key_features),
        },
    )
    return bundle_dir


def generate_indicator(
    config: StrategyConfig,
    *,
    provider: LLMProvider,
    model: str,
    temperature: float = 0.2,
    timeout_s: float = 120.0,
    artifacts_base_dir: Path | None = None,
) -> GeneratedOutput:
    """Ask ``provider`` for a Pine Script indicator matching ``config``.

    Failures are logged and re-raised unchanged. Credential and empty-response
    conditions arrive as the typed errors from ``adapters.llm.providers.base``;
    JSON or schema failures propagate as raised by the parser.
    """
    messages = build_messages(config)

    try:
        llm = provider.chat(
            model=model,
            messages=messages,
            temperature=temperature,
            response_format="json",
            response_schema=RESPONSE_SCHEMA,
            timeout_s=timeout_s,
        )
    except LLMProviderError as e:
        logger.error("Error generating indicator [%s]: %s", e.code or "PROVIDER_ERROR", e)
        raise
    except Exception:
        logger.exception("Error generating indicator via %s/%s", getattr(provider, "name", "?"), model)
        raise

    if not llm.content or not llm.content.strip():
        logger.error("Error generating indicator [%s]: empty response from %s", EmptyResponseError.code, llm.provider)
        raise EmptyResponseError(f"{llm.provider} returned no response text")

    try:
        output = parse_generated_output(llm.content)
    except (ValueError, ValidationError):
        logger.exception("Error parsing indicator response from %s/%s", llm.provider, llm.model)
        raise

    if artifacts_base_dir is not None:
        try:
            bundle_dir = _write_bundle(
                base_dir=artifacts_base_dir,
                config=config,
                messages=messages,
                temperature=temperature,
                llm=llm,
                output=output,
            )
        except OSError:
            logger.exception("Error writing AI artifacts under %s", artifacts_base_dir)
            raise
        logger.info("Wrote AI artifacts: %s", bundle_dir)

    logger.info(
        "Generated %s indicator via %s/%s (%d features)",
        config.timeframe,
        llm.provider,
        llm.model,
        len(output.key_features),
    )
    return output
