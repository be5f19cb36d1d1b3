"""JSON Schema validation of stored token documents.

Schemas live in ``dicenft/schemas`` and reference each other by ``$id``; a
single registry built from every ``*.schema.json`` resolves those references.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, List

from jsonschema import Draft202012Validator
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from dicenft.core import SCHEMAS_DIR, load_json
from dicenft.errors import SchemaValidationError

TOKEN_SCHEMA = "token.schema.json"
COLLATERAL_INFO_SCHEMA = "collateral-info.schema.json"
METADATA_SCHEMA = "metadata.schema.json"


@lru_cache(maxsize=1)
def _schema_registry(schemas_dir: Path = SCHEMAS_DIR) -> Registry:
    """Registry of every schema, keyed by its ``$id``."""
    resources = []
    for schema_path in sorted(schemas_dir.glob("*.schema.json")):
        schema = load_json(schema_path)
        schema_id = schema.get("$id") or schema_path.name
        resources.append((schema_id, Resource.from_contents(schema, default_specification=DRAFT202012)))
    return Registry().with_resources(resources)


@lru_cache(maxsize=None)
def schema_validator(schema_name: str, schemas_dir: Path = SCHEMAS_DIR) -> Draft202012Validator:
    """Cached validator for one schema file name."""
    schema = load_json(schemas_dir / schema_name)
    return Draft202012Validator(schema, registry=_schema_registry(schemas_dir))


def validate_against_schema(obj: Any, schema_name: str) -> List[str]:
    """List of validation error messages (empty if valid)."""
    validator = schema_validator(schema_name)
    errors = sorted(validator.iter_errors(obj), key=lambda e: e.json_path)
    return [f"{error.json_path}: {error.message}" for error in errors]


def require_valid(obj: Any, schema_name: str) -> None:
    """Raise ``SchemaValidationError`` if ``obj`` does not match the schema."""
    errors = validate_against_schema(obj, schema_name)
    if errors:
        raise SchemaValidationError(schema_name, errors)
