"""OpenAPI customization utilities.

Enriches the generated schema with:
- Tags metadata
- A shared ``ErrorResponse`` component
- Documented 429/503 responses on the admission-controlled operations

Keeps documentation concerns out of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {"name": "Tokens", "description": "Token identity checks and registration."},
    {"name": "Verification", "description": "Deduplicated background verification queue."},
    {"name": "Health", "description": "Liveness and feature status."},
]

_ERROR_SCHEMA = {
    "type": "object",
    "properties": {
        "error": {
            "type": "object",
            "properties": {
                "code": {"type": "string"},
                "message": {"type": "string"},
                "request_id": {"type": "string", "nullable": True},
                "details": {"type": "object"},
            },
            "required": ["code", "message"],
        }
    },
}

_ERROR_REF = {"content": {"application/json": {"schema": {"$ref": "#/components/schemas/ErrorResponse"}}}}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation with tags and error responses."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("schemas", {}).setdefault("ErrorResponse", _ERROR_SCHEMA)

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith("/v1/"):
                continue
            for method, operation in methods.items():
                if not isinstance(operation, dict):
                    continue
                responses = operation.setdefault("responses", {})
                responses.setdefault("503", {"description": "Backing store unavailable", **_ERROR_REF})
                if method == "post":
                    responses.setdefault("429", {"description": "Rate limit exceeded", **_ERROR_REF})

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
