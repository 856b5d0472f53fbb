# aivenkit

Building blocks for tools that manage Aiven services and networking. The
package has no third-party dependencies.

## Modules

- `aivenkit.schema` describes attributes with the `Schema` and `Resource`
  dataclasses and the `ValueType` and `DiffSuppress` enums.
  `resource_schema_as_datasource_schema(schemas, *names)` returns a copy in
  which every attribute is optional. The names you pass become required. A
  name that is not in the schema raises `KeyError`.
- `aivenkit.templates` keeps user configuration JSON schemas by kind:
  `"service"`, `"integration"` or `"endpoint"`.
  - `register_user_config_schema(kind, schema)` stores a schema.
  - `load_user_config_schema(kind, path)` reads a JSON file, registers the
    schema and returns it.
  - `get_user_config_schema(kind)` returns the registered schema, or `{}` when
    nothing is registered for that kind.
  - Any other kind raises `UnknownSchemaTypeError`.
- `aivenkit.user_config` converts user configuration between the API form
  and the attribute form. The attribute form wraps objects in one-element
  lists and holds scalars as strings.
  - `generate_terraform_user_config_schema` builds `Schema` objects from a
    JSON schema.
  - `convert_api_user_config_to_terraform`,
    `convert_terraform_user_config_to_api` and `convert_user_config_to_api`
    do the conversions.
  - `can_omit` decides which values mean "unset": `""`, `"<<value not set>>"`,
    and `"-1"` unless the option's minimum is negative.
  - Dots in key names are encoded with `encode_key_name` and decoded with
    `decode_key_name`.
  - Bad input raises `UserConfigError`.
- `aivenkit.service_change` handles waiting.
  - `StateChangeConf.wait()` polls a refresh function until a target state has
    been seen the required number of times in a row. It raises
    `WaitTimeoutError` or `UnexpectedStateError` when that does not happen.
  - `ServiceChangeWaiter.refresh()` reports `WAITING_FOR_SERVICES` in place of
    `RUNNING` in two cases:
    - backups are not yet present (checked by `backups_ready`);
    - a public Grafana endpoint is not yet reachable (checked by
      `grafana_ready`).
  - `ServiceChangeWaiter.conf(timeout)` builds the matching
    `StateChangeConf`. It needs three `RUNNING` results in a row.
- `aivenkit.cache` holds in-memory caches.
  - `ACLCache` caches Kafka ACLs per project and service. On a miss it asks
    the client. It raises `NotFoundError` when the service cannot be cached.
  - `TopicCache` caches `KafkaTopic` objects and keeps a queue of topic names
    still to be looked up. `get_queue` returns at most 99 names once 100 are
    queued.
  - `new_topic_cache()` creates the shared topic cache once.
    `get_topic_cache()` returns it, or `None` before it is created.
- `aivenkit.vpc_peering` handles VPC peering connections.
  - Identifier helpers: `parse_peering_vpc_id`, `build_peering_resource_id`
    and `validate_import_id`.
  - State info helpers: `state_info_to_string` and
    `convert_state_info_to_map`.
  - Other helpers: `creation_diagnostics` and `peering_attributes`.
  - `VPCPeeringConnectionResource` creates, reads and deletes connections, and
    `is_azure` detects Azure peers.
    - `create` returns `(resource_id, attributes, warnings)`. When the
      connection ends up in a failed state, `create` deletes it and raises
      `UnexpectedStateError`.

## Example

```python
from aivenkit.templates import register_user_config_schema
from aivenkit.user_config import (
    convert_api_user_config_to_terraform,
    convert_terraform_user_config_to_api,
    encode_key_name,
)

register_user_config_schema("service", {
    "pg": {
        "type": "object",
        "properties": {
            "ip_filter": {"type": "array", "title": "IP filter",
                          "items": {"type": "string", "title": "CIDR"}},
            "backup_hour": {"type": ["integer", "null"], "title": "Backup hour"},
        },
    },
})

convert_terraform_user_config_to_api(
    "service", "pg", True, [{"ip_filter": ["0.0.0.0/0"], "backup_hour": "5"}]
)
# {"ip_filter": ["0.0.0.0/0"], "backup_hour": 5}

convert_api_user_config_to_terraform("service", "pg", {"backup_hour": 5})
# [{"ip_filter": [], "backup_hour": "5"}]

encode_key_name("pg.max_connections")  # "pg__dot__max_connections"
```

## What it does not do

- It has no API client. Every class that talks to the service takes a client
  object that you supply. The docstrings describe the methods that client must
  offer.
- It ships no user configuration schemas. Register or load them before you
  convert configurations.
- It has no command-line program and does not serve anything.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```