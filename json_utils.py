"""
JSON helpers backed by orjson
=============================

Thin str-returning wrappers so callers can use ``import json_utils as json``
with the familiar dumps/loads names.
"""

import orjson
from typing import Any, Callable, Optional, Union


def dumps(obj: Any, indent: Optional[int] = None, default: Optional[Callable] = None) -> str:
    """Serialize obj to a JSON string (orjson returns bytes)."""
    option = orjson.OPT_NON_STR_KEYS
    if indent is not None:
        option |= orjson.OPT_INDENT_2
    return orjson.dumps(obj, default=default, option=option).decode("utf-8")


def loads(s: Union[str, bytes]) -> Any:
    """Deserialize a JSON document."""
    return orjson.loads(s)


JSONDecodeError = orjson.JSONDecodeError
