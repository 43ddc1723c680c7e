"""
config_tree: a hierarchical configuration namespace.

- Resolves delimited keys (`a.b.c`) against directories and `.xml`/`.ini`/`.properties` documents.
- Backing stores: local filesystem, bundled resources on a search path, or remote HTTP.
- Direct bind/rebind/unbind entries shadow document values without touching the backing store.
- Typed values through `<key>.type` markers, composite resources through grouped keys.
"""

from __future__ import annotations

from config_tree.composite import CompositeResource
from config_tree.converter import TypeConverter
from config_tree.environment import DELIMITER_KEY, ROOT_KEY, Environment, ResourceProtocol
from config_tree.exceptions import (
    AlreadyBoundError,
    EnvironmentValidationError,
    InvalidNameError,
    NamespaceClosedError,
    NamingError,
    NotFoundError,
    NotListableError,
    ParamDuplicateError,
    ParseFailureError,
    ResolutionTimeoutError,
    ResourceAccessError,
    UnsupportedProtocolError,
    UnsupportedTypeError,
)
from config_tree.params import get_param_spec, list_params, register_param, resolve_param_name
from config_tree.parsers import FormatParser, ParserRegistry
from config_tree.resolver import Namespace

__all__ = [
    "Namespace",
    "Environment",
    "ResourceProtocol",
    "ROOT_KEY",
    "DELIMITER_KEY",
    "CompositeResource",
    "TypeConverter",
    "FormatParser",
    "ParserRegistry",
    "register_param",
    "get_param_spec",
    "list_params",
    "resolve_param_name",
    "NamingError",
    "NotFoundError",
    "AlreadyBoundError",
    "NotListableError",
    "UnsupportedProtocolError",
    "UnsupportedTypeError",
    "ParseFailureError",
    "ResolutionTimeoutError",
    "InvalidNameError",
    "ResourceAccessError",
    "NamespaceClosedError",
    "EnvironmentValidationError",
    "ParamDuplicateError",
]
