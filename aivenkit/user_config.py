"""Conversion between API user configuration and provider attribute form."""

from __future__ import annotations

import math
import re
from decimal import Decimal

from aivenkit.schema import DiffSuppress, Resource, Schema, ValueType
from aivenkit.templates import get_user_config_schema

_SCALAR_TYPES = ("string", "integer", "boolean", "number")
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}


class UserConfigError(ValueError):
    """Raised when a user configuration or its schema cannot be handled."""


def encode_key_name(key):
    """Replace dots, which attribute names cannot hold."""
    return key.replace(".", "__dot__")


def decode_key_name(key):
    """Undo encode_key_name."""
    return key.replace("__dot__", ".")


def get_aiven_schema_type(value):
    """Return the JSON schema type name, ignoring a "null" alternative."""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        type_name = ""
        for item in value:
            if not isinstance(item, str):
                raise UserConfigError(f"Unexpected user config schema type: {value!r}")
            if item != "null":
                type_name = item
        return type_name
    raise UserConfigError(f"Unexpected user config schema type: {value!r}")


def get_aiven_schema_default_value(definition):
    """Value used for an option the API did not return."""
    if get_aiven_schema_type(definition.get("type")) in ("array", "object"):
        return []
    return ""


def generate_terraform_user_config_schema(data):
    """Build attribute schemas from a user config JSON schema, or None."""
    if "properties" not in data:
        return None
    return {
        encode_key_name(name): _generate_schema(name, definition)
        for name, definition in data["properties"].items()
    }


def _generate_schema(key, definition):
    value_type = get_aiven_schema_type(definition.get("type"))
    sensitive = "api_key" in key or "password" in key

    diff = None
    if definition.get("createOnly") is True:
        diff = DiffSuppress.CREATE_ONLY
    elif value_type == "object":
        diff = DiffSuppress.EMPTY_OBJECT

    title = definition.get("title")
    if not isinstance(title, str):
        raise UserConfigError(f"user config schema key {key} has no title")

    if value_type in _SCALAR_TYPES:
        return Schema(
            type=ValueType.STRING,
            description=title,
            diff_suppress=diff,
            optional=True,
            sensitive=sensitive,
        )
    if value_type == "object":
        return Schema(
            type=ValueType.LIST,
            description=title,
            diff_suppress=diff,
            elem=Resource(generate_terraform_user_config_schema(definition)),
            max_items=1,
            optional=True,
        )
    if value_type == "array":
        item_definition = definition["items"]
        item_type_name = get_aiven_schema_type(item_definition.get("type"))
        if item_type_name in _SCALAR_TYPES:
            item_type = ValueType.STRING
        elif item_type_name == "object":
            item_type = ValueType.LIST
        else:
            raise UserConfigError(
                f"Unexpected user config schema array item type: {item_type_name!r}"
            )
        max_items = int(definition.get("maxItems", 0))
        value_diff = None
        if key == "ip_filter":
            diff = DiffSuppress.IP_FILTER_ARRAY
            value_diff = DiffSuppress.IP_FILTER_VALUE
        if item_type is ValueType.LIST:
            elem = Resource(generate_terraform_user_config_schema(item_definition))
        else:
            elem = Schema(type=item_type, diff_suppress=value_diff)
        return Schema(
            type=ValueType.LIST,
            description=title,
            diff_suppress=diff,
            elem=elem,
            max_items=max_items,
            optional=True,
            sensitive=sensitive,
        )
    raise UserConfigError(f"Unexpected user config schema type: {value_type!r}")


def _format_float(value):
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _plain_text(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return _format_float(value)
    if value is None:
        return "<nil>"
    return str(value)


def _has_nested_items(api_value, definition):
    items = definition.get("items")
    return any(isinstance(v, dict) for v in api_value) and isinstance(items, dict) and "properties" in items


def _api_to_terraform(api_config, json_schema):
    result = {}
    for key, definition in json_schema.items():
        value_type = get_aiven_schema_type(definition.get("type"))
        api_value = api_config.get(key)
        name = encode_key_name(key)
        if api_value is None:
            api_value = get_aiven_schema_default_value(definition)
            if value_type == "object":
                continue

        if value_type == "object":
            if not isinstance(api_value, dict):
                raise UserConfigError(f"Invalid user config key type {type(api_value).__name__} for {name}")
            result[name] = [_api_to_terraform(api_value, definition["properties"])]
        elif isinstance(api_value, str):
            result[name] = api_value
        elif isinstance(api_value, bool):
            result[name] = "true" if api_value else "false"
        elif isinstance(api_value, float):
            result[name] = _format_float(api_value)
        elif isinstance(api_value, int):
            result[name] = str(api_value)
        elif isinstance(api_value, list):
            if _has_nested_items(api_value, definition):
                item_properties = definition["items"]["properties"]
                converted = []
                for item in api_value:
                    if not isinstance(item, dict):
                        raise UserConfigError(f"Invalid user config item type {type(item).__name__} for {name}")
                    converted.append(_api_to_terraform(item, item_properties))
                result[name] = converted
            else:
                result[name] = [_plain_text(item) for item in api_value]
        else:
            raise UserConfigError(f"Invalid user config key type {type(api_value).__name__} for {name}")
    return result


def convert_api_user_config_to_terraform(config_type, entry_type, user_config):
    """Turn an API user config into the list-wrapped attribute form."""
    if not user_config:
        return []
    entry_schema = get_user_config_schema(config_type)[entry_type]
    return [_api_to_terraform(user_config, entry_schema["properties"])]


def convert_terraform_user_config_to_api(config_type, entry_type, new_resource, user_configs):
    """Turn the ``<entry>_user_config`` attribute value into an API config, or None."""
    if not user_configs:
        return None
    first = user_configs[0]
    if not isinstance(first, dict):
        raise UserConfigError(f"{entry_type}_user_config must hold a mapping")
    entry_schema = get_user_config_schema(config_type)[entry_type]
    return convert_user_config_to_api(entry_type, new_resource, first, entry_schema["properties"])


def convert_user_config_to_api(service_type, new_resource, user_config, config_schema):
    """Convert one level of attribute-form user config to API form."""
    api_config = {}
    for raw_key, value in user_config.items():
        key = decode_key_name(raw_key)
        if key not in config_schema:
            raise UserConfigError(f"Unsupported {service_type} user config key {key}")
        definition = config_schema[key]
        if definition is None:
            continue
        if definition.get("createOnly") is True and not new_resource:
            continue
        converted, omit = _convert_value(service_type, new_resource, key, value, definition)
        if not omit:
            api_config[key] = converted
    return api_config


def can_omit(value, definition):
    """Tell whether a value means the option was left unset."""
    if isinstance(value, str) and value in ("", "<<value not set>>"):
        return True
    minimum = definition.get("minimum")
    if isinstance(minimum, (int, float)) and math.copysign(1, minimum) < 0 and value == "-1":
        return False
    return value == "-1"


def _convert_value(service_type, new_resource, key, value, definition):
    value_type = get_aiven_schema_type(definition.get("type"))
    if can_omit(value, definition):
        return None, True
    try:
        if value_type == "integer":
            return _to_integer(value), False
        if value_type == "number":
            return _to_number(value), False
        if value_type == "boolean":
            return _to_boolean(value), False
        if value_type == "string":
            return _to_string(value), False
        if value_type == "object":
            return _to_object(value, service_type, new_resource, definition)
        if value_type == "array":
            return _to_array(value, service_type, new_resource, key, definition)
        raise ValueError(
            f"unsupported value type {definition.get('type')} for {service_type} user config key {key}"
        )
    except UserConfigError:
        raise
    except ValueError as err:
        raise UserConfigError(
            f"unable to convert {service_type} user config key type "
            f"{type(value).__name__} for {key}: err {err}"
        ) from err


def _to_array(value, service_type, new_resource, key, definition):
    empty = None
    omit = True
    if not new_resource and "index_patterns" in key:
        empty = []
        omit = False
    if value is None:
        return empty, omit
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"invalid {service_type} user config key type {type(value).__name__} for {key}, expected list")
    if not value:
        return empty, omit
    item_definition = definition["items"]
    converted = [
        _convert_value(service_type, new_resource, key, item, item_definition)[0]
        for item in value
    ]
    return converted, False


def _to_object(value, service_type, new_resource, definition):
    if value is None:
        return None, True
    if isinstance(value, (list, tuple)):
        if not value or (len(value) == 1 and value[0] is None):
            return None, True
        first = value[0]
        if not isinstance(first, dict):
            raise ValueError(f"expected map but got {first!r}")
        if not first:
            return None, True
        return convert_user_config_to_api(service_type, new_resource, first, definition["properties"]), False
    if isinstance(value, dict):
        return convert_user_config_to_api(service_type, new_resource, value, definition["properties"]), False
    raise ValueError(f"expected map but got {value!r}")


def _to_integer(value):
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        if not _INTEGER_RE.fullmatch(value):
            raise ValueError(f"impossible to convert int to a string: invalid syntax {value!r}")
        return int(value)
    raise ValueError(f"expected int or string but got {value!r}")


def _to_number(value):
    if isinstance(value, float):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        if value != value.strip() or "_" in value:
            raise ValueError(f"impossible to convert float64 to a string: invalid syntax {value!r}")
        try:
            return float(value)
        except ValueError as err:
            raise ValueError(f"impossible to convert float64 to a string: {err}") from err
    raise ValueError(f"expected float64 or string but got {value!r}")


def _to_boolean(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value in _TRUE_WORDS:
            return True
        if value in _FALSE_WORDS:
            return False
        raise ValueError(f"invalid boolean syntax {value!r}")
    raise ValueError(f"expected boolean or string but got {value!r}")


def _to_string(value):
    if isinstance(value, str):
        return value
    raise ValueError(f"expected string but got {value!r}")