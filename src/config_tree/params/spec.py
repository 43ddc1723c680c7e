from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type, Union

from config_tree.exceptions import EnvironmentValidationError


@dataclass(frozen=True)
class ParamSpec:
    """One environment parameter a Namespace understands: its type, default and limits."""

    name: str
    default: Any
    value_type: Union[Type, Tuple[Type, ...]]
    validator: Optional[Callable[[Any], bool]] = None
    bounds: Optional[Tuple[Union[int, float], Union[int, float]]] = None
    description: Optional[str] = None
    allow_none: bool = True

    def problem(self, value: Any) -> Optional[str]:
        """Why `value` cannot configure a namespace through this parameter, or None."""
        if value is None:
            return None if self.allow_none else "must be set for the namespace"

        try:
            if not isinstance(value, self.value_type):
                return f"expected {self._type_names()}, got {type(value).__name__}"
        except TypeError:
            return f"unusable value_type {self.value_type!r}"

        if not self._within_bounds(value):
            assert self.bounds is not None
            lo, hi = self.bounds
            if isinstance(value, (str, list, tuple)):
                return f"length {len(value)} outside [{lo}, {hi}]"
            return f"{value!r} outside [{lo}, {hi}]"

        if self.validator is not None:
            try:
                accepted = self.validator(value)
            except Exception as exc:
                return f"rejected by validator: {exc}"
            if not accepted:
                return "rejected by validator"
        return None

    def validate(self, value: Any) -> None:
        problem = self.problem(value)
        if problem is not None:
            raise EnvironmentValidationError({self.name: problem}, key=self.name, value=value)

    def _type_names(self) -> str:
        types = self.value_type if isinstance(self.value_type, tuple) else (self.value_type,)
        return " or ".join(t.__name__ for t in types)

    def _within_bounds(self, value: Any) -> bool:
        if self.bounds is None:
            return True
        lo, hi = self.bounds
        if isinstance(value, (str, list, tuple)):
            return lo <= len(value) <= hi
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return lo <= value <= hi
        return True
