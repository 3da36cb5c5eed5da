from __future__ import annotations

import hashlib
import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def _sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class AIBundlePaths:
    root: Path
    config: Path
    prompt: Path
    response_raw: Path
    output: Path
    meta: Path


def create_ai_bundle_dir(*, base_dir: Path, prefix: str = "indicator") -> Path:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    suffix = uuid.uuid4().hex[:8]
    out = base_dir / f"{ts}_{prefix}_{suffix}"
    out.mkdir(parents=True, exist_ok=False)
    return out


def bundle_paths(root: Path) -> AIBundlePaths:
    return AIBundlePaths(
        root=root,
        config=root / "config.json",
        prompt=root / "prompt.json",
        response_raw=root / "response_raw.json",
        output=root / "indicator.pine",
        meta=root / "meta.json",
    )


def write_ai_bundle(
    *,
    root: Path,
    config: dict[str, Any],
    prompt: dict[str, Any],
    response_raw: dict[str, Any] | None,
    output_text: str,
    meta: dict[str, Any],
) -> AIBundlePaths:
    """Record one generation (config, prompt, raw response, code) under ``root``."""

    paths = bundle_paths(root)

    paths.output.write_text(output_text, encoding="utf-8")

    stable_meta = {
        **meta,
        "config_sha256": _sha256_text(json.dumps(config, sort_keys=True)),
        "output_sha256": _sha256_text(output_text),
        "prompt_sha256": _sha256_text(json.dumps(prompt, sort_keys=True, ensure_ascii=False)),
    }

    paths.config.write_text(json.dumps(config, indent=2, sort_keys=True), encoding="utf-8")
    paths.prompt.write_text(json.dumps(prompt, indent=2, sort_keys=True, ensure_ascii=False), encoding="utf-8")
    paths.response_raw.write_text(
        json.dumps(response_raw or {}, indent=2, sort_keys=True, ensure_ascii=False), encoding="utf-8"
    )
    paths.meta.write_text(json.dumps(stable_meta, indent=2, sort_keys=True, ensure_ascii=False), encoding="utf-8")

    return paths
