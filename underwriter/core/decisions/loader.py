"""Loads decision models from YAML files."""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .conditions import parse_condition
from .errors import ModelDefinitionError
from .graph import (
    ContextDecision,
    ContextEntry,
    DecisionGraph,
    DecisionModel,
    DecisionNode,
    TableDecision,
)
from .tables import DecisionTable, HitPolicy, InputColumn, OutputColumn, Rule
from .values import FieldType, literal

logger = logging.getLogger(__name__)


class ModelLoader:
    """Loads and validates YAML decision models.

    File layout::

        name: InsuranceRiskAssessment
        inputs:
          Driver:
            Age: integer
        decisions:
          - name: Driver Risk Score
            table:
              inputs: [{name: Age, key: Driver.Age}]
              outputs: [{name: Driver Risk Score, type: integer}]
              rules:
                - when: [{interval: {low: 16, high: 25}}]
                  then: [80]
    """

    def __init__(self, models_dir: Union[str, Path, None] = None):
        self.models_dir = Path(models_dir) if models_dir else None
        self._models: Dict[str, DecisionModel] = {}

    def load_file(self, path: Union[str, Path]) -> DecisionModel:
        """Load one decision model from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Decision model file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                content = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ModelDefinitionError(f"Invalid YAML in {path}: {e}") from e

        model = self.parse(content)
        self._models[model.name] = model
        logger.info(
            f"Loaded decision model '{model.name}' with {len(model.graph.nodes)} decision(s) from {path}"
        )
        return model

    def load_directory(self, path: Union[str, Path, None] = None) -> List[DecisionModel]:
        """Load every ``*.yaml`` model in a directory."""
        path = Path(path) if path else self.models_dir
        if not path:
            raise ValueError("No models directory specified")
        if not path.exists():
            raise FileNotFoundError(f"Models directory not found: {path}")
        return [self.load_file(yaml_file) for yaml_file in sorted(path.glob("*.yaml"))]

    def get_model(self, name: str) -> Optional[DecisionModel]:
        """Get a loaded model by name."""
        return self._models.get(name)

    def parse(self, data: Any) -> DecisionModel:
        """Build a decision model from already-parsed YAML data."""
        if not isinstance(data, Mapping):
            raise ModelDefinitionError("Decision model must be a mapping")
        name = data.get("name")
        if not name:
            raise ModelDefinitionError("Decision model needs a 'name'")

        schema = self._parse_inputs(data.get("inputs") or {})
        decisions = data.get("decisions") or []
        if not decisions:
            raise ModelDefinitionError(f"Model '{name}' declares no decisions")

        nodes = tuple(self._parse_decision(item, schema) for item in decisions)
        graph = DecisionGraph(nodes)
        self._check_table_keys(graph, schema)

        return DecisionModel(
            name=str(name),
            graph=graph,
            namespace=str(data.get("namespace", "")),
            description=str(data.get("description", "")),
            inputs=MappingProxyType(schema),
        )

    def _parse_inputs(self, data: Mapping[str, Any]) -> Dict[str, FieldType]:
        """Flatten ``Group: {Field: type}`` into ``{"Group.Field": FieldType}``."""
        schema: Dict[str, FieldType] = {}
        for group, fields in data.items():
            if not isinstance(fields, Mapping):
                schema[str(group)] = self._parse_type(fields, str(group))
                continue
            for field_name, spec in fields.items():
                key = f"{group}.{field_name}"
                schema[key] = self._parse_type(spec, key)
        return schema

    def _parse_type(self, spec: Any, where: str) -> FieldType:
        try:
            return FieldType.parse(spec)
        except ValueError as e:
            raise ModelDefinitionError(f"{where}: {e}") from e

    def _parse_decision(self, data: Mapping[str, Any], schema: Mapping[str, FieldType]) -> DecisionNode:
        name = data.get("name")
        if not name:
            raise ModelDefinitionError(f"Decision without a name: {data!r}")
        requires = tuple(data.get("requires") or ())

        if "table" in data and "context" in data:
            raise ModelDefinitionError(f"Decision '{name}' declares both 'table' and 'context'")
        if "table" in data:
            table = self._parse_table(data["table"], default_name=name, schema=schema)
            return TableDecision(name=name, requires=requires, table=table)
        if "context" in data:
            entries = tuple(
                self._parse_entry(entry, decision=name, schema=schema)
                for entry in data["context"] or ()
            )
            return ContextDecision(
                name=name,
                requires=requires,
                entries=entries,
                result=tuple(data.get("result") or ()),
            )
        raise ModelDefinitionError(f"Decision '{name}' needs a 'table' or a 'context'")

    def _parse_entry(self, data: Mapping[str, Any], decision: str, schema: Mapping[str, FieldType]) -> ContextEntry:
        name = data.get("name")
        if not name:
            raise ModelDefinitionError(f"Context entry of '{decision}' without a name")
        table = None
        if "table" in data:
            table = self._parse_table(data["table"], default_name=name, schema=schema)
        return ContextEntry(
            name=name,
            function=data.get("function"),
            args=tuple(data.get("args") or ()),
            table=table,
        )

    def _parse_table(
        self,
        data: Mapping[str, Any],
        default_name: str,
        schema: Mapping[str, FieldType],
    ) -> DecisionTable:
        name = data.get("name", default_name)
        try:
            hit_policy = HitPolicy(str(data.get("hit_policy", HitPolicy.UNIQUE.value)).upper())
        except ValueError:
            raise ModelDefinitionError(
                f"Table '{name}': unsupported hit policy '{data.get('hit_policy')}'"
            ) from None

        inputs = []
        for col in data.get("inputs") or ():
            key = col.get("key", col.get("name"))
            if not key:
                raise ModelDefinitionError(f"Table '{name}': input column without a key")
            col_type = self._parse_type(col["type"], f"{name}.{key}") if "type" in col else schema.get(key)
            inputs.append(InputColumn(name=col.get("name", key), key=key, type=col_type))

        outputs = []
        for col in data.get("outputs") or ():
            if isinstance(col, str):
                col = {"name": col}
            col_type = self._parse_type(col["type"], f"{name}.{col['name']}") if "type" in col else None
            outputs.append(OutputColumn(name=col["name"], type=col_type))

        rules = []
        for index, row in enumerate(data.get("rules") or (), start=1):
            rules.append(self._parse_rule(row, index, name, inputs, outputs))

        return DecisionTable(
            name=name,
            inputs=tuple(inputs),
            outputs=tuple(outputs),
            rules=tuple(rules),
            hit_policy=hit_policy,
        )

    def _parse_rule(
        self,
        row: Mapping[str, Any],
        rule_id: int,
        table: str,
        inputs: List[InputColumn],
        outputs: List[OutputColumn],
    ) -> Rule:
        when = row.get("when") or []
        then = row.get("then")
        if then is None:
            raise ModelDefinitionError(f"Rule {rule_id} of table '{table}' has no 'then'")
        if not isinstance(then, list):
            then = [then]
        if len(when) != len(inputs) or len(then) != len(outputs):
            raise ModelDefinitionError(
                f"Rule {rule_id} of table '{table}' has {len(when)} condition(s) and "
                f"{len(then)} output(s), expected {len(inputs)} and {len(outputs)}"
            )
        try:
            conditions = tuple(
                parse_condition(cell, col.type) for cell, col in zip(when, inputs)
            )
            values = tuple(literal(cell, col.type) for cell, col in zip(then, outputs))
        except (ModelDefinitionError, TypeError) as e:
            raise ModelDefinitionError(f"Rule {rule_id} of table '{table}': {e}") from e
        return Rule(
            rule_id=rule_id,
            conditions=conditions,
            outputs=values,
            annotation=row.get("annotation"),
        )

    def _check_table_keys(self, graph: DecisionGraph, schema: Mapping[str, FieldType]) -> None:
        """Top-level tables may only read inputs or outputs of required decisions."""
        for node in graph.nodes:
            if not isinstance(node, TableDecision):
                continue
            for key in node.table.input_keys:
                if key in schema:
                    continue
                owner = key.split(".", 1)[0]
                if key in node.requires or owner in node.requires:
                    continue
                raise ModelDefinitionError(
                    f"Decision '{node.name}' reads '{key}', which is neither an input "
                    f"nor the output of a required decision"
                )


def load_model(path: Union[str, Path]) -> DecisionModel:
    """Load a single decision model file."""
    return ModelLoader().load_file(path)
