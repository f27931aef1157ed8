"""
Schema Validation Utilities
===========================
JSON Schema loading and validation helpers.

Two kinds of schemas are validated here:
- packaged schemas under qaflow/schemas (task descriptors, review payloads,
  run records), loaded by file name;
- inline output schemas carried by each task descriptor.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping

from jsonschema import Draft202012Validator, FormatChecker
from jsonschema.exceptions import SchemaError, ValidationError


@lru_cache(maxsize=32)
def _load_schema(schema_filename: str) -> Dict[str, Any]:
    """Load a schema JSON file from qaflow/schemas.

    Args:
        schema_filename: File name under qaflow/schemas (for example 'run_record.schema.json').

    Raises:
        FileNotFoundError: When schema file is missing.
        ValueError: When schema file is not valid JSON or not a JSON object.
    """
    schemas_dir = Path(__file__).resolve().parent.parent / "schemas"
    schema_path = (schemas_dir / schema_filename).resolve()
    if not schema_path.is_relative_to(schemas_dir.resolve()):
        raise ValueError(f"Schema path escapes schemas directory: {schema_filename}")
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_filename}")

    try:
        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to load schema {schema_filename}: {e}")

    if not isinstance(schema, dict):
        raise ValueError(f"Schema {schema_filename} must be a JSON object")
    return schema


def _first_error_message(validator: Draft202012Validator, payload: Any) -> str | None:
    errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.path))
    if not errors:
        return None

    error: ValidationError = errors[0]
    path = "/".join(str(p) for p in error.path)
    prefix = f"Validation failed at '{path}': " if path else "Validation failed: "
    return prefix + error.message


def validate_against_schema(payload: Any, schema_filename: str) -> None:
    """Validate payload against a packaged JSON Schema.

    Raises:
        ValueError: When payload fails validation.
    """
    schema = _load_schema(schema_filename)
    validator = Draft202012Validator(schema, format_checker=FormatChecker())

    message = _first_error_message(validator, payload)
    if message:
        raise ValueError(message)


def validate_against_inline_schema(payload: Any, schema: Mapping[str, Any]) -> None:
    """Validate payload against a schema object carried in memory.

    Raises:
        ValueError: When the schema itself is malformed or payload fails validation.
    """
    try:
        Draft202012Validator.check_schema(dict(schema))
    except SchemaError as e:
        raise ValueError(f"Invalid output schema: {e.message}")

    validator = Draft202012Validator(dict(schema), format_checker=FormatChecker())
    message = _first_error_message(validator, payload)
    if message:
        raise ValueError(message)


def is_valid(payload: Any, schema_filename: str) -> bool:
    """Return True when payload validates against the packaged schema."""
    try:
        validate_against_schema(payload, schema_filename)
        return True
    except ValueError:
        return False
