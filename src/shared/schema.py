"""JSON Schema validation utilities."""

from typing import Any

from jsonschema import Draft7Validator


def validate_schema(data: Any, schema: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate data against a JSON Schema.

    Args:
        data: The data to validate
        schema: JSON Schema to validate against

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    if not schema:
        return True, []

    validator = Draft7Validator(schema)
    errors = list(validator.iter_errors(data))

    if not errors:
        return True, []

    error_messages = [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]

    return False, error_messages


def create_tool_schema(
    parameters: list[dict[str, Any]],
    required: list[str] | None = None
) -> dict[str, Any]:
    """
    Create a JSON Schema from a list of parameter definitions.

    Args:
        parameters: List of parameter definitions with name, type, description
        required: List of required parameter names

    Returns:
        JSON Schema dictionary
    """
    properties = {}

    type_mapping = {
        "string": "string",
        "str": "string",
        "integer": "integer",
        "int": "integer",
        "number": "number",
        "float": "number",
        "boolean": "boolean",
        "bool": "boolean",
        "array": "array",
        "list": "array",
        "object": "object",
        "dict": "object",
    }

    for param in parameters:
        if "schema" in param:
            # Nested structures are passed through as-is
            param_schema = dict(param["schema"])
            param_schema.setdefault("description", param.get("description", ""))
        else:
            param_schema = {
                "type": type_mapping.get(param.get("type", "string"), "string"),
                "description": param.get("description", ""),
            }

        if "enum" in param:
            param_schema["enum"] = param["enum"]

        if "default" in param:
            param_schema["default"] = param["default"]

        if param_schema.get("type") == "array" and "items" in param:
            param_schema["items"] = param["items"]

        properties[param["name"]] = param_schema

    schema = {
        "type": "object",
        "properties": properties,
    }

    if required is not None:
        schema["required"] = required
    else:
        # Auto-detect required fields
        schema["required"] = [
            p["name"] for p in parameters
            if p.get("required", True) and "default" not in p
        ]

    return schema


def describe_parameters(schema: dict[str, Any]) -> str:
    """
    Render a compact one-line parameter hint from a JSON Schema.

    Example: ``{ query: string (required), timeRange?: object }``
    """
    properties = schema.get("properties") or {}
    if not properties:
        return "{}"

    required = set(schema.get("required") or [])
    parts = []
    for name, prop in properties.items():
        type_name = prop.get("type", "any")
        if "enum" in prop:
            type_name = " | ".join(f'"{v}"' for v in prop["enum"])
        if name in required:
            parts.append(f"{name}: {type_name} (required)")
        else:
            parts.append(f"{name}?: {type_name}")
    return "{ " + ", ".join(parts) + " }"
