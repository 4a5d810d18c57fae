"""Project configuration loading.

Reads ``project.json`` and ``contracts.json`` from the config directory,
validates both against their JSON schemas and exposes them as dataclasses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config_validation import load_validated
from .errors import ConfigError
from .utils import env_path

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnContract:
    """A declared output column."""

    name: str
    data_type: str
    description: str = ""


@dataclass(frozen=True)
class ModelContract:
    """Declared, ordered output schema of a model."""

    model: str
    columns: Tuple[ColumnContract, ...]
    enforced: bool = True

    @classmethod
    def from_payload(cls, model: str, payload: Dict[str, Any]) -> "ModelContract":
        return cls(
            model=model,
            columns=tuple(
                ColumnContract(
                    name=col["name"],
                    data_type=col["data_type"],
                    description=col.get("description", ""),
                )
                for col in payload["columns"]
            ),
            enforced=payload.get("enforced", True),
        )

    @property
    def column_names(self) -> List[str]:
        return [col.name for col in self.columns]


@dataclass
class ProjectConfig:
    """Resolved project configuration."""

    name: str
    sources: Dict[str, str]
    seeds: Dict[str, str]
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    invalidate_hard_deletes: bool = True
    contracts: Dict[str, ModelContract] = field(default_factory=dict)

    @classmethod
    def from_payloads(
        cls,
        project: Dict[str, Any],
        contracts: Optional[Dict[str, Any]] = None,
    ) -> "ProjectConfig":
        variables = project.get("vars") or {}
        start_date = _parse_date(variables.get("start_date"), "start_date")
        end_date = _parse_date(variables.get("end_date"), "end_date")
        if (start_date is None) != (end_date is None):
            raise ConfigError("vars.start_date and vars.end_date must be set together")
        if start_date and end_date and start_date >= end_date:
            raise ConfigError("vars.start_date must be before vars.end_date")

        return cls(
            name=project["name"],
            sources=dict(project["sources"]),
            seeds=dict(project["seeds"]),
            start_date=start_date,
            end_date=end_date,
            invalidate_hard_deletes=(project.get("snapshots") or {}).get("invalidate_hard_deletes", True),
            contracts={
                model: ModelContract.from_payload(model, payload)
                for model, payload in (contracts or {}).items()
            },
        )


def _parse_date(value: Optional[str], label: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ConfigError(f"Invalid {label} {value!r}: {e}") from e


def default_config_dir() -> Path:
    return env_path("AIRBNB_CONFIG_DIR", "config")


def load_project_config(config_dir: Optional[Path] = None) -> ProjectConfig:
    """
    Load and validate the project configuration.

    Args:
        config_dir: Directory holding project.json and contracts.json
                    (default: AIRBNB_CONFIG_DIR or ./config)

    Returns:
        ProjectConfig instance

    Raises:
        ConfigError: If project.json is missing or either file is invalid
    """
    config_dir = Path(config_dir) if config_dir else default_config_dir()
    project = load_validated(config_dir / "project.json")

    contracts_path = config_dir / "contracts.json"
    contracts = load_validated(contracts_path) if contracts_path.exists() else {}
    if not contracts:
        LOGGER.warning(f"No model contracts declared in {config_dir}")

    config = ProjectConfig.from_payloads(project, contracts)
    LOGGER.debug(f"Loaded project '{config.name}' from {config_dir} ({len(config.contracts)} contracts)")
    return config
