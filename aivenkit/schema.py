"""Schema descriptions for provider resources and data sources."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class ValueType(enum.Enum):
    """Kind of value an attribute holds."""

    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    LIST = "list"
    MAP = "map"
    SET = "set"


class DiffSuppress(enum.Enum):
    """Named rules that decide when a planned change can be ignored."""

    CREATE_ONLY = "create_only"
    EMPTY_OBJECT = "empty_object"
    IP_FILTER_ARRAY = "ip_filter_array"
    IP_FILTER_VALUE = "ip_filter_value"


@dataclass
class Schema:
    """Description of a single attribute."""

    type: ValueType
    description: str = ""
    required: bool = False
    optional: bool = False
    computed: bool = False
    sensitive: bool = False
    force_new: bool = False
    elem: Schema | Resource | None = None
    max_items: int = 0
    min_items: int = 0
    diff_suppress: DiffSuppress | None = None


@dataclass
class Resource:
    """A nested block made of named attributes."""

    schema: dict[str, Schema] | None = field(default=None)


def resource_schema_as_datasource_schema(schemas, *args):
    """Derive a data source schema from a resource schema.

    Every attribute becomes optional; the names given in ``args`` become
    required. A required name that is not in ``schemas`` raises KeyError.
    """
    result = {
        name: Schema(
            type=definition.type,
            required=False,
            computed=definition.computed,
            optional=True,
            description=definition.description,
            sensitive=definition.sensitive,
            elem=definition.elem,
            max_items=definition.max_items,
            min_items=definition.min_items,
        )
        for name, definition in schemas.items()
    }
    for name in args:
        entry = result[name]
        entry.required, entry.optional = True, False
    return result