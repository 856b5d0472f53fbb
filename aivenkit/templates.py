"""Registry of user configuration option schemas by resource type."""

from __future__ import annotations

import json
from pathlib import Path

USER_CONFIG_SCHEMA_ENDPOINT = "endpoint"
USER_CONFIG_SCHEMA_INTEGRATION = "integration"
USER_CONFIG_SCHEMA_SERVICE = "service"

ENDPOINT_FILE_NAME = "integration_endpoints_user_config_schema.json"
INTEGRATION_FILE_NAME = "integrations_user_config_schema.json"
SERVICE_FILE_NAME = "service_user_config_schema.json"

SCHEMA_FILE_NAMES = {
    USER_CONFIG_SCHEMA_ENDPOINT: ENDPOINT_FILE_NAME,
    USER_CONFIG_SCHEMA_INTEGRATION: INTEGRATION_FILE_NAME,
    USER_CONFIG_SCHEMA_SERVICE: SERVICE_FILE_NAME,
}

_schemas: dict[str, dict] = {}


class UnknownSchemaTypeError(LookupError):
    """Raised for a resource type that has no user configuration schema."""


def _check_kind(kind):
    if kind not in SCHEMA_FILE_NAMES:
        raise UnknownSchemaTypeError(
            f"user configuration options schema type `{kind}` is not available"
        )


def register_user_config_schema(kind, schema):
    """Store the schema used for resources of the given type."""
    _check_kind(kind)
    _schemas[kind] = schema


def load_user_config_schema(kind, path):
    """Read a JSON schema file, register it and return it."""
    _check_kind(kind)
    with Path(path).open(encoding="utf-8") as handle:
        schema = json.load(handle)
    if not isinstance(schema, dict):
        raise ValueError(f"user configuration options schema in {path} is not an object")
    register_user_config_schema(kind, schema)
    return schema


def get_user_config_schema(kind):
    """Return the schema registered for the given type, or an empty one."""
    _check_kind(kind)
    return _schemas.get(kind, {})