"""JSON Schema validation for decode candidates.

SchemaValidator compiles a schema once and is then reused across every
candidate and repair round of a decode loop. Compilation fails fast: a
structurally invalid schema or an unresolvable ``$ref`` raises SchemaError
at construction, before any generator call is made.

Per-candidate failures are never raised; they come back as Violation
records on a SchemaCheck.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

import jsonschema
from jsonschema.exceptions import SchemaError as _JsonSchemaError
from referencing import Registry, Resource
from referencing.exceptions import Unresolvable
from referencing.jsonschema import DRAFT7

from llmcc.exceptions import SchemaError
from llmcc.models.verdict import Violation

logger = logging.getLogger(__name__)

REF_SCHEME = "ref://"


@dataclass(frozen=True)
class SchemaCheck:
    """Result of checking one candidate against a compiled schema."""

    passed: bool
    errors: tuple[Violation, ...] = ()


def resolve_locator(locator: str, base_dir: str | Path | None = None) -> Path:
    """Turn a schema locator into a filesystem path.

    ``ref://contracts/x.schema.json`` and plain relative paths are resolved
    against *base_dir* (default: current working directory). Absolute
    paths are returned unchanged.
    """
    raw = locator[len(REF_SCHEME):] if locator.startswith(REF_SCHEME) else locator
    path = Path(raw)
    if path.is_absolute():
        return path
    return Path(base_dir or Path.cwd()) / path


def load_schema(locator: str, base_dir: str | Path | None = None) -> dict:
    """Load a JSON Schema document from a locator.

    Raises:
        SchemaError: If the file does not exist or is not valid JSON.
    """
    path = resolve_locator(locator, base_dir)
    if not path.exists():
        raise SchemaError("Schema file not found", locator=str(path))
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SchemaError(f"Schema is not valid JSON: {exc}", locator=str(path)) from exc


# Keywords whose values are data, not subschemas.
_DATA_KEYWORDS = frozenset({"const", "enum", "default", "examples"})
# Keywords whose values map arbitrary names to subschemas.
_SCHEMA_MAPS = frozenset(
    {"properties", "patternProperties", "definitions", "$defs", "dependencies", "dependentSchemas"}
)


def _iter_refs(node: Any, *, root: bool = True) -> Iterator[str]:
    """Yield every ``$ref`` under *node*, skipping subtrees with their own ``$id``."""
    if isinstance(node, dict):
        if not root and "$id" in node:
            return
        ref = node.get("$ref")
        if isinstance(ref, str):
            yield ref
        for key, value in node.items():
            if key in _DATA_KEYWORDS:
                continue
            if key in _SCHEMA_MAPS and isinstance(value, dict):
                for subschema in value.values():
                    yield from _iter_refs(subschema, root=False)
            else:
                yield from _iter_refs(value, root=False)
    elif isinstance(node, list):
        for item in node:
            yield from _iter_refs(item, root=False)


class SchemaValidator:
    """Compiled JSON Schema predicate.

    Stateless and read-only after construction, so one instance can be
    shared across repair rounds and across concurrent decode loops.

    Usage::

        validator = SchemaValidator({"type": "string", "maxLength": 80})
        check = validator("hello-world")
        assert check.passed
    """

    def __init__(self, schema: dict | bool | None = None) -> None:
        if schema is None:
            schema = {}
        if not isinstance(schema, (dict, bool)):
            raise SchemaError(
                f"Schema must be an object or boolean, got {type(schema).__name__}"
            )
        self._schema = schema

        cls = jsonschema.validators.validator_for(schema, default=jsonschema.Draft7Validator)
        try:
            cls.check_schema(schema)
        except _JsonSchemaError as exc:
            raise SchemaError(f"Invalid JSON Schema: {exc.message}") from exc

        self._registry: Registry = Registry()
        if isinstance(schema, dict):
            resource = Resource.from_contents(schema, default_specification=DRAFT7)
            base_uri = resource.id() or ""
            self._registry = self._registry.with_resource(uri=base_uri, resource=resource)
            resolver = self._registry.resolver(base_uri=base_uri)
            for ref in _iter_refs(schema):
                try:
                    resolver.lookup(ref)
                except Unresolvable as exc:
                    raise SchemaError(f"Unresolvable $ref {ref!r}: {exc}") from exc

        self._validator = cls(
            schema,
            registry=self._registry,
            format_checker=cls.FORMAT_CHECKER,
        )
        logger.debug("Compiled schema with %s", cls.__name__)

    @classmethod
    def from_locator(
        cls, locator: str, base_dir: str | Path | None = None
    ) -> SchemaValidator:
        """Load and compile the schema a locator points to."""
        return cls(load_schema(locator, base_dir))

    @property
    def schema(self) -> dict | bool:
        return self._schema

    def __call__(self, candidate: Any) -> SchemaCheck:
        try:
            errors = sorted(self._validator.iter_errors(candidate), key=lambda e: e.json_path)
        except Unresolvable as exc:
            # A $ref the eager walk could not see, e.g. one built from $id scoping.
            raise SchemaError(f"Unresolvable $ref during validation: {exc}") from exc
        if not errors:
            return SchemaCheck(passed=True)
        return SchemaCheck(
            passed=False,
            errors=tuple(self._to_violation(e) for e in errors),
        )

    @staticmethod
    def _to_violation(error: jsonschema.ValidationError) -> Violation:
        keyword = str(error.validator) if error.validator is not None else None
        limit = error.validator_value if keyword == "maxLength" else None
        pattern = error.validator_value if keyword == "pattern" else None
        return Violation(
            source="schema",
            message=error.message,
            path=error.json_path,
            keyword=keyword,
            limit=limit if isinstance(limit, int) else None,
            pattern=pattern if isinstance(pattern, str) else None,
        )
