"""JSON config validation utilities.

These validators catch misconfiguration of the project and contract files
before any model runs.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping

from jsonschema import Draft7Validator

from .errors import ConfigError


CONTRACT_DATA_TYPES = ["integer", "string", "boolean", "timestamp", "decimal", "date"]

_DATE_OR_NULL = {
    "anyOf": [
        {"type": "null"},
        {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}$"},
    ]
}


_PROJECT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": True,
    "required": ["name", "sources", "seeds"],
    "properties": {
        "name": {"type": "string"},
        "sources": {
            "type": "object",
            "additionalProperties": False,
            "required": ["listings", "hosts", "reviews"],
            "properties": {
                "listings": {"type": "string"},
                "hosts": {"type": "string"},
                "reviews": {"type": "string"},
            },
        },
        "seeds": {
            "type": "object",
            "additionalProperties": {"type": "string"},
            "required": ["seed_full_moon_dates"],
        },
        "vars": {
            "type": "object",
            "additionalProperties": True,
            "properties": {
                "start_date": _DATE_OR_NULL,
                "end_date": _DATE_OR_NULL,
            },
        },
        "snapshots": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "invalidate_hard_deletes": {"type": "boolean"},
            },
        },
    },
}


_CONTRACTS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": {
        "type": "object",
        "additionalProperties": False,
        "required": ["columns"],
        "properties": {
            "enforced": {"type": "boolean"},
            "columns": {
                "type": "array",
                "minItems": 1,
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "required": ["name", "data_type"],
                    "properties": {
                        "name": {"type": "string", "minLength": 1},
                        "data_type": {"enum": CONTRACT_DATA_TYPES},
                        "description": {"type": "string"},
                    },
                },
            },
        },
    },
}


SCHEMAS_BY_FILENAME: Mapping[str, Dict[str, Any]] = {
    "project.json": _PROJECT_SCHEMA,
    "contracts.json": _CONTRACTS_SCHEMA,
}


def _load_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def validate_data(schema: Mapping[str, Any], data: Any) -> List[str]:
    validator = Draft7Validator(schema)
    errors = []
    for err in sorted(validator.iter_errors(data), key=str):
        loc = "/".join(str(p) for p in err.path) if err.path else "(root)"
        errors.append(f"{loc}: {err.message}")
    return errors


def validate_file(path: Path) -> List[str]:
    schema = SCHEMAS_BY_FILENAME.get(path.name)
    if not schema:
        return []
    try:
        data = _load_json(path)
    except json.JSONDecodeError as e:
        return [f"(root): invalid JSON: {e}"]
    return validate_data(schema, data)


def validate_config_dir(config_dir: Path, *, only_known_files: bool = True) -> Dict[str, List[str]]:
    results: Dict[str, List[str]] = {}
    if not config_dir.exists():
        return results

    candidates = list(config_dir.glob("*.json"))
    for path in candidates:
        if only_known_files and path.name not in SCHEMAS_BY_FILENAME:
            continue
        errors = validate_file(path)
        if errors:
            results[str(path)] = errors
    return results


def load_validated(path: Path) -> Any:
    """Load a known config file, raising ConfigError if it is missing or invalid."""
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    errors = validate_file(path)
    if errors:
        raise ConfigError(f"Invalid config {path}: " + "; ".join(errors))
    return _load_json(path)
