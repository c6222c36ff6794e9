# src/lakemeta/services/_type_mapping.py
"""
Column type translation into Delta / Iceberg schema fields.

Both tables are keyed by lowercase name and contain their own outputs as
keys, so translating an already translated name is a no-op.
"""

from ..models import LogicalType, TableFormat

_DELTA_TYPES = {
    "string": "string",
    "int8": "byte", "byte": "byte",
    "int16": "short", "short": "short",
    "int32": "integer", "int": "integer", "integer": "integer",
    "int64": "long", "long": "long",
    "float": "float",
    "double": "double",
    "boolean": "boolean",
    "binary": "binary",
    "date": "date",
    "timestamp": "timestamp",
    "list": "array", "array": "array",
    "struct": "struct",
    "map": "map",
    "null": "void", "void": "void",
    "unknown": "string",
}

_ICEBERG_TYPES = {
    "string": "string",
    "int8": "int", "int16": "int", "int32": "int", "byte": "int", "short": "int", "integer": "int", "int": "int",
    "int64": "long", "long": "long",
    "float": "float",
    "double": "double",
    "boolean": "boolean",
    "binary": "binary",
    "date": "date",
    "timestamp": "timestamp",
    "list": "list", "array": "list",
    "struct": "struct",
    "map": "map",
    # Iceberg has no null type before v3
    "null": "string", "void": "string",
    "unknown": "string",
}

_TYPE_TABLES = {
    TableFormat.DELTA: _DELTA_TYPES,
    TableFormat.ICEBERG: _ICEBERG_TYPES,
}


def translate_type(type_name, table_format, precision=None, scale=None):
    """
    Returns the lowercase type name used by `table_format` for `type_name`.

    `type_name` may be a LogicalType, its name, or a name already in the
    target format. Unknown names are lowercased and passed through.
    """
    if isinstance(type_name, LogicalType):
        type_name = type_name.value
    name = str(type_name).strip().lower()

    if name.startswith("decimal"):
        if name == "decimal" and precision is not None:
            return f"decimal({precision},{scale or 0})"
        return name.replace(" ", "")

    return _TYPE_TABLES[TableFormat(table_format)].get(name, name)


def delta_field(column, preserve_nullability=False):
    return {
        "name": column.name,
        "type": translate_type(column.logical_type, TableFormat.DELTA, column.precision, column.scale),
        "nullable": column.nullable if preserve_nullability else True,
        "metadata": {},
    }


def iceberg_field(column, field_id, preserve_nullability=False):
    return {
        "id": field_id,
        "name": column.name,
        "required": (not column.nullable) if preserve_nullability else True,
        "type": translate_type(column.logical_type, TableFormat.ICEBERG, column.precision, column.scale),
    }


def delta_schema(columns, preserve_nullability=False):
    return {
        "type": "struct",
        "fields": [delta_field(col, preserve_nullability) for col in columns],
    }


def iceberg_schema(columns, schema_id=0, preserve_nullability=False):
    # Field ids come from position (1-based) so repeated synthesis is stable
    return {
        "schema-id": schema_id,
        "type": "struct",
        "fields": [
            iceberg_field(col, position, preserve_nullability)
            for position, col in enumerate(columns, start=1)
        ],
    }
