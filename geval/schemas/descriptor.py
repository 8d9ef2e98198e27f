"""Recursive schema descriptor for structured generation.

A descriptor is used twice: converted to strict JSON Schema to request
constrained output from the provider, and to check the shape of whatever
the provider actually returned.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from geval.errors import SchemaViolation

SchemaType = Literal["object", "array", "string", "number", "boolean"]


class SchemaDescriptor(BaseModel):
    type: SchemaType
    properties: dict[str, SchemaDescriptor] | None = None
    items: SchemaDescriptor | None = None
    required: list[str] | None = None

    def to_json_schema(self) -> dict[str, Any]:
        """Convert to JSON Schema accepted by strict structured-output APIs.

        Objects get ``additionalProperties: false`` and, when no explicit
        ``required`` list is given, every property becomes required.
        """
        schema: dict[str, Any] = {"type": self.type}

        if self.properties is not None:
            schema["properties"] = {
                key: prop.to_json_schema() for key, prop in self.properties.items()
            }
            schema["additionalProperties"] = False

        if self.items is not None:
            schema["items"] = self.items.to_json_schema()

        if self.required is not None:
            schema["required"] = list(self.required)
        elif self.type == "object" and self.properties:
            schema["required"] = list(self.properties)

        return schema

    def validate_instance(self, data: Any, path: str = "") -> None:
        """Raise SchemaViolation if ``data`` does not match this descriptor."""
        where = path or "root"

        if self.type == "object":
            if not isinstance(data, dict):
                raise SchemaViolation(
                    f"Expected object at {where}, got {type(data).__name__}"
                )
            for field in self.required or []:
                if field not in data:
                    prefix = f"{path}." if path else ""
                    raise SchemaViolation(f"Missing required field: {prefix}{field}")
            for key, prop in (self.properties or {}).items():
                if key in data:
                    prop.validate_instance(data[key], f"{path}.{key}" if path else key)

        elif self.type == "array":
            if not isinstance(data, list):
                raise SchemaViolation(
                    f"Expected array at {where}, got {type(data).__name__}"
                )
            if self.items is not None:
                for index, item in enumerate(data):
                    self.items.validate_instance(item, f"{path}[{index}]")

        elif self.type == "string":
            if not isinstance(data, str):
                raise SchemaViolation(
                    f"Expected string at {where}, got {type(data).__name__}"
                )

        elif self.type == "number":
            # bool is an int subclass; JSON true/false is not a number.
            if isinstance(data, bool) or not isinstance(data, (int, float)):
                raise SchemaViolation(
                    f"Expected number at {where}, got {type(data).__name__}"
                )

        elif self.type == "boolean":
            if not isinstance(data, bool):
                raise SchemaViolation(
                    f"Expected boolean at {where}, got {type(data).__name__}"
                )
