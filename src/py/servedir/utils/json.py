from typing import Any, TypeAlias, cast
import json as basejson
from .primitives import asPrimitive


TJSON: TypeAlias = None | int | float | bool | str | list[Any] | dict[str, Any]


def json(value: Any) -> bytes:
	"""Converts the value to compact JSON bytes. Key order is preserved, so
	that the same value always produces the same bytes."""
	return basejson.dumps(asPrimitive(value), separators=(",", ":")).encode("utf8")


def unjson(value: bytes | str) -> TJSON:
	"""Parses JSON-encoded data."""
	return cast(TJSON, basejson.loads(value))


# EOF
