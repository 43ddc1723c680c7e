from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Tuple, Type, Union

from .registry import ParamRegistry
from .spec import ParamSpec

logger = logging.getLogger("config_tree.params")
logger.addHandler(logging.NullHandler())

__all__ = [
    "ParamSpec",
    "REGISTRY",
    "register_param",
    "get_param_spec",
    "is_param",
    "list_params",
    "resolve_param_name",
]

REGISTRY = ParamRegistry()


def register_param(
    name: str,
    *,
    default: Optional[Any] = None,
    value_type: Optional[Union[Type, Tuple[Type, ...]]] = None,
    validator: Optional[Callable[[Any], bool]] = None,
    bounds: Optional[Tuple[Union[int, float], Union[int, float]]] = None,
    description: str | None = None,
    aliases: Tuple[str, ...] = (),
    override: bool = False,
    min_length: Optional[int] = None,
    allow_none: bool = True,
) -> None:
    if bounds is not None:
        if not (isinstance(bounds, tuple) and len(bounds) == 2):
            raise ValueError("bounds must be a tuple of (min, max)")
    if min_length is not None:
        if bounds is not None:
            raise ValueError("Cannot specify both bounds and min_length")
        bounds = (min_length, float("inf"))
    if value_type is None:
        value_type = type(default) if default is not None else (str, int, float, bool, tuple)

    REGISTRY.register(
        ParamSpec(
            name=name,
            default=default,
            value_type=value_type,
            validator=validator,
            bounds=bounds,
            description=description,
            allow_none=allow_none,
        ),
        aliases=aliases,
        override=override,
    )


def get_param_spec(key: str) -> ParamSpec:
    """Return the ParamSpec for `key`, which may be a canonical name or an alias."""
    return REGISTRY.get(key)


def is_param(key: str) -> bool:
    return REGISTRY.has(key)


def resolve_param_name(key: str) -> str:
    """Resolve a name or alias to the canonical registry key."""
    return REGISTRY.resolve_name(key)


def list_params() -> Tuple[str, ...]:
    return REGISTRY.all_names()


# Built-in parameters understood by Environment.
register_param(
    "ROOT",
    default=None,
    value_type=str,
    description="Namespace root: a path or scheme://path. None means bundled resources.",
    aliases=("config_tree.root", "root"),
)
register_param(
    "DELIMITER",
    default=".",
    value_type=str,
    min_length=1,
    allow_none=False,
    description="Separator between lookup key segments.",
    aliases=("config_tree.delimiter", "delimiter"),
)
register_param(
    "TIMEOUT",
    default=10.0,
    value_type=(int, float),
    bounds=(0.1, 600.0),
    allow_none=False,
    description="Seconds allowed for a single remote fetch.",
    aliases=("config_tree.timeout", "timeout"),
)
register_param(
    "SEARCH_PATH",
    default=None,
    value_type=(list, tuple),
    validator=lambda v: all(isinstance(x, str) for x in v),
    description="Directories or zip archives searched for bundled resources. None means sys.path.",
    aliases=("config_tree.search_path", "search_path"),
)
register_param(
    "COMPOSITE_MARKER",
    default="composite",
    value_type=str,
    min_length=1,
    allow_none=False,
    description="Value of a `<key>.type` entry that marks a composite resource.",
    aliases=("config_tree.composite_marker", "composite_marker"),
)
