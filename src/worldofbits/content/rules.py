from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from worldofbits.sim.rules import GameRules

RULES_SCHEMA_VERSION = 1
DEFAULT_RULES_PATH = "content/rules/default_rules.json"


def load_rules_json(path: str | Path) -> GameRules:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return rules_from_payload(payload)


def rules_from_payload(payload: dict[str, Any]) -> GameRules:
    if not isinstance(payload, dict):
        raise ValueError("rules payload must be an object")

    schema_version = payload.get("schema_version")
    if isinstance(schema_version, bool) or not isinstance(schema_version, int):
        raise ValueError("rules payload must contain integer field: schema_version")
    if schema_version != RULES_SCHEMA_VERSION:
        raise ValueError(f"unsupported rules schema_version: {schema_version}")

    rules = payload.get("rules", {})
    if not isinstance(rules, dict):
        raise ValueError("rules payload field rules must be an object")
    return GameRules.from_dict(rules)


def rules_to_payload(rules: GameRules) -> dict[str, Any]:
    return {"schema_version": RULES_SCHEMA_VERSION, "rules": rules.to_dict()}


def load_rules_or_default(path: str | Path | None) -> GameRules:
    """Rules from ``path``; built-in defaults when the default rules file is absent."""
    if path is None:
        return GameRules()
    if not Path(path).exists() and str(path) == DEFAULT_RULES_PATH:
        return GameRules()
    return load_rules_json(path)
