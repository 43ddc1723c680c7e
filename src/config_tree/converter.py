from __future__ import annotations

import datetime
import decimal
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence, Union

from config_tree.exceptions import ParseFailureError, UnsupportedTypeError

logger = logging.getLogger("config_tree.converter")
logger.addHandler(logging.NullHandler())

Converter = Callable[[str], Any]

_TRUE = frozenset(("true", "yes", "on", "1"))
_FALSE = frozenset(("false", "no", "off", "0"))


def _to_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def _to_decimal(raw: str) -> decimal.Decimal:
    try:
        return decimal.Decimal(raw.strip())
    except decimal.InvalidOperation as exc:
        raise ValueError(f"not a decimal: {raw!r}") from exc


def _builtin_converters() -> Dict[str, Converter]:
    table: Dict[str, Converter] = {}

    def alias(func: Converter, *names: str) -> None:
        for name in names:
            table[name] = func

    alias(str, "str", "string", "java.lang.string")
    alias(lambda raw: int(raw.strip()), "int", "integer", "long", "short", "byte",
          "java.lang.integer", "java.lang.long", "java.lang.short", "java.lang.byte",
          "java.math.biginteger")
    alias(lambda raw: float(raw.strip()), "float", "double", "java.lang.float", "java.lang.double")
    alias(_to_bool, "bool", "boolean", "java.lang.boolean")
    alias(_to_decimal, "decimal", "java.math.bigdecimal")
    alias(lambda raw: datetime.date.fromisoformat(raw.strip()), "date")
    alias(lambda raw: datetime.datetime.fromisoformat(raw.strip()), "datetime")
    alias(lambda raw: Path(raw.strip()), "path", "java.io.file")
    return table


class TypeConverter:
    """Coerces stored strings using the converter named by a `<key>.type` marker."""

    def __init__(self) -> None:
        self._converters: Dict[str, Converter] = _builtin_converters()

    @staticmethod
    def _canon(type_name: str) -> str:
        return type_name.strip().lower()

    def register(self, type_name: str, func: Converter, *, override: bool = False) -> None:
        if not callable(func):
            raise TypeError("Converter must be callable")
        name = self._canon(type_name)
        if not name:
            raise ValueError("type_name must not be empty")
        if name in self._converters and not override:
            raise ValueError(f"Converter {type_name!r} already registered; pass override=True")
        self._converters[name] = func
        logger.debug("Converter registered %r -> %r", name, func)

    def supports(self, type_name: str) -> bool:
        return self._canon(type_name) in self._converters

    def convert(self, raw: Union[str, Sequence[str]], type_name: str) -> Any:
        func = self._converters.get(self._canon(type_name))
        if func is None:
            raise UnsupportedTypeError(f"No converter for type {type_name!r}")
        if isinstance(raw, str):
            return self._apply(func, raw, type_name)
        converted: List[Any] = [self._apply(func, item, type_name) for item in raw]
        return converted

    @staticmethod
    def _apply(func: Converter, raw: str, type_name: str) -> Any:
        try:
            return func(raw)
        except (ValueError, TypeError, ArithmeticError) as exc:
            raise ParseFailureError(f"Cannot convert {raw!r} to {type_name}: {exc}") from exc
