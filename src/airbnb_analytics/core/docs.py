"""
Project documentation.

Writes a machine-readable ``catalog.json`` and a browsable ``index.md``
describing every seed, model and snapshot: its description, materialization,
dependencies, columns, row count, attached checks, contract and DDL.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .data_quality import DataCheck, checks_for_model
from .models import MODELS_BY_NAME, ModelSpec
from .project_config import ProjectConfig
from .schema import ALL_DDLS
from .warehouse import Warehouse


class DocsGenerator:
    """Builds the documentation catalog from the registry and the warehouse."""

    def __init__(
        self,
        warehouse: Warehouse,
        config: ProjectConfig,
        docs_directory: Path,
        checks: Optional[List[DataCheck]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.warehouse = warehouse
        self.config = config
        self.docs_directory = Path(docs_directory)
        self.checks = checks
        self.logger = logger or logging.getLogger(__name__)

    def _node(self, spec: ModelSpec) -> Dict[str, Any]:
        table = None if spec.materialization == "ephemeral" else self.warehouse.read(spec.name)
        contract = self.config.contracts.get(spec.name)

        if table is not None:
            columns = [{"name": col, "dtype": str(dtype)} for col, dtype in table.dtypes.items()]
        elif contract is not None:
            columns = [{"name": c.name, "dtype": c.data_type} for c in contract.columns]
        else:
            columns = []

        if contract is not None:
            descriptions = {c.name: c.description for c in contract.columns}
            for col in columns:
                col["description"] = descriptions.get(col["name"], "")

        return {
            "name": spec.name,
            "description": spec.description,
            "materialization": spec.materialization,
            "depends_on": list(spec.depends_on),
            "columns": columns,
            "row_count": None if table is None else len(table),
            "checks": [check.describe() for check in checks_for_model(spec.name, self.checks)],
            "contract": None if contract is None else {
                "enforced": contract.enforced,
                "columns": [{"name": c.name, "data_type": c.data_type} for c in contract.columns],
            },
            "ddl": ALL_DDLS.get(spec.name, "").strip() or None,
        }

    def catalog(self) -> Dict[str, Any]:
        return {
            "project": self.config.name,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "nodes": {name: self._node(spec) for name, spec in MODELS_BY_NAME.items()},
        }

    def render_markdown(self, catalog: Dict[str, Any]) -> str:
        lines = [f"# {catalog['project']}", "", f"Generated {catalog['generated_at']}", ""]
        for node in catalog["nodes"].values():
            lines.append(f"## {node['name']}")
            lines.append("")
            lines.append(node["description"])
            lines.append("")
            lines.append(f"- Materialization: {node['materialization']}")
            if node["depends_on"]:
                lines.append(f"- Depends on: {', '.join(node['depends_on'])}")
            if node["row_count"] is not None:
                lines.append(f"- Rows: {node['row_count']}")
            if node["contract"]:
                lines.append(f"- Contract enforced: {node['contract']['enforced']}")
            lines.append("")

            if node["columns"]:
                lines.append("| column | type | description |")
                lines.append("|---|---|---|")
                for col in node["columns"]:
                    lines.append(f"| {col['name']} | {col['dtype']} | {col.get('description', '')} |")
                lines.append("")

            if node["checks"]:
                lines.append("Checks:")
                for check in node["checks"]:
                    lines.append(f"- `{check['name']}` ({check['severity']})")
                lines.append("")

            if node["ddl"]:
                lines.extend(["```sql", node["ddl"], "```", ""])
        return "\n".join(lines)

    def generate(self) -> Dict[str, Path]:
        """
        Write catalog.json and index.md.

        Returns:
            Mapping of artifact name to the written path
        """
        self.docs_directory.mkdir(parents=True, exist_ok=True)
        catalog = self.catalog()

        catalog_path = self.docs_directory / "catalog.json"
        with open(catalog_path, "w") as f:
            json.dump(catalog, f, indent=2, default=str)

        index_path = self.docs_directory / "index.md"
        index_path.write_text(self.render_markdown(catalog), encoding="utf-8")

        self.logger.info(f"Documentation for {len(catalog['nodes'])} nodes written to {self.docs_directory}")
        return {"catalog": catalog_path, "index": index_path}
