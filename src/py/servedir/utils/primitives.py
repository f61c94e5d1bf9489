from typing import Any
from dataclasses import is_dataclass, fields
from pathlib import Path
from enum import Enum


TLiteral = bool | int | float | str | bytes
TComposite = (
    list[TLiteral] | dict[TLiteral, TLiteral] | set[TLiteral] | tuple[TLiteral, ...]
)
TPrimitive = None | TLiteral | TComposite | list[Any] | dict[str, Any]


def asPrimitive(value: Any) -> Any:
    """Converts the given value to a primitive value, that can be converted
    to JSON. Named tuples become dictionaries, unless their type defines
    an `asPrimitive` method."""
    if value is None or type(value) in (bool, float, int, str):
        return value
    elif isinstance(value, tuple) and hasattr(value, "_fields"):
        f = getattr(type(value), "asPrimitive", None)
        return (
            f(value)
            if f
            else {k: asPrimitive(getattr(value, k)) for k in value._fields}
        )
    elif isinstance(value, (list, tuple, set)):
        return [asPrimitive(v) for v in value]
    elif is_dataclass(value) and not isinstance(value, type):
        return {_.name: asPrimitive(getattr(value, _.name)) for _ in fields(value)}
    elif isinstance(value, Enum):
        return asPrimitive(value.value)
    elif isinstance(value, dict):
        return {str(k): asPrimitive(v) for k, v in value.items()}
    elif isinstance(value, Path):
        return str(value)
    elif isinstance(value, bytes):
        return value.decode("utf8", "replace")
    else:
        return value


# EOF
