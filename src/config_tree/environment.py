from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from config_tree.exceptions import EnvironmentValidationError, UnsupportedProtocolError
from config_tree.params import get_param_spec, is_param, resolve_param_name

logger = logging.getLogger("config_tree.environment")
logger.addHandler(logging.NullHandler())

ROOT_KEY = "config_tree.root"
DELIMITER_KEY = "config_tree.delimiter"
RESERVED_KEYS = (ROOT_KEY, DELIMITER_KEY)

ENV_PREFIX = "CONFIG_TREE_"


class ResourceProtocol(Enum):
    LOCAL_PATH = "file"
    BUNDLED = "classpath"
    REMOTE = "http"


_SCHEMES: Dict[str, ResourceProtocol] = {
    "file": ResourceProtocol.LOCAL_PATH,
    "classpath": ResourceProtocol.BUNDLED,
    "bundle": ResourceProtocol.BUNDLED,
    "http": ResourceProtocol.REMOTE,
    "https": ResourceProtocol.REMOTE,
}


def parse_root(root: Optional[str]) -> Tuple[ResourceProtocol, str]:
    """
    Split a root location into its protocol and base path.

    No root means bundled resources with an empty base; a root without a scheme is a local path.
    Remote bases keep the full URL so that children can be appended directly.
    """
    if root is None:
        return ResourceProtocol.BUNDLED, ""
    if "://" not in root:
        return ResourceProtocol.LOCAL_PATH, root
    scheme, _, rest = root.partition("://")
    protocol = _SCHEMES.get(scheme.lower())
    if protocol is None:
        raise UnsupportedProtocolError(f"Unsupported protocol: {scheme!r} in root {root!r}")
    if protocol is ResourceProtocol.REMOTE:
        return protocol, root.rstrip("/")
    if protocol is ResourceProtocol.BUNDLED:
        return protocol, rest.strip("/")
    return protocol, rest


@dataclass(frozen=True)
class Environment:
    """
    Backing configuration shared by a namespace and its scoped views.

    Every field is validated against the parameter registry (see config_tree.params);
    keys the registry does not know are kept in `extras` untouched.
    """

    root: Optional[str] = None
    delimiter: str = "."
    timeout: float = 10.0
    search_path: Optional[Tuple[str, ...]] = None
    composite_marker: str = "composite"
    extras: Mapping[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.search_path, list):
            object.__setattr__(self, "search_path", tuple(self.search_path))
        errors: Dict[str, str] = {}
        for f in dataclasses.fields(self):
            if f.name == "extras":
                continue
            spec = get_param_spec(f.name)
            problem = spec.problem(getattr(self, f.name))
            if problem is not None:
                errors[spec.name] = problem
        if errors:
            logger.error("Environment rejected: %s", errors)
            raise EnvironmentValidationError(errors)
        # Surfaces an unsupported scheme at construction time.
        parse_root(self.root)

    @property
    def protocol(self) -> ResourceProtocol:
        return parse_root(self.root)[0]

    @property
    def base(self) -> str:
        return parse_root(self.root)[1]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Environment":
        known: Dict[str, Any] = {}
        extras: Dict[str, Any] = {}
        for key, value in mapping.items():
            if is_param(key):
                known[resolve_param_name(key).lower()] = value
            else:
                extras[key] = value
        if extras:
            logger.debug("Environment extras kept as-is: %s", sorted(extras))
        return cls(**known, extras=extras)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Environment":
        """Build from CONFIG_TREE_* process environment variables."""
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        if ENV_PREFIX + "ROOT" in environ:
            values["root"] = environ[ENV_PREFIX + "ROOT"]
        if ENV_PREFIX + "DELIMITER" in environ:
            values["delimiter"] = environ[ENV_PREFIX + "DELIMITER"]
        if ENV_PREFIX + "TIMEOUT" in environ:
            raw = environ[ENV_PREFIX + "TIMEOUT"]
            try:
                values["timeout"] = float(raw)
            except ValueError as exc:
                raise EnvironmentValidationError({"TIMEOUT": f"Not a number: {raw!r}"}) from exc
        if ENV_PREFIX + "SEARCH_PATH" in environ:
            values["search_path"] = tuple(
                p for p in environ[ENV_PREFIX + "SEARCH_PATH"].split(os.pathsep) if p
            )
        return cls(**values)

    def replace(self, **changes: Any) -> "Environment":
        return dataclasses.replace(self, **changes)

    def as_mapping(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.extras)
        out.update(
            {
                ROOT_KEY: self.root,
                DELIMITER_KEY: self.delimiter,
                "config_tree.timeout": self.timeout,
                "config_tree.search_path": self.search_path,
                "config_tree.composite_marker": self.composite_marker,
            }
        )
        return out
