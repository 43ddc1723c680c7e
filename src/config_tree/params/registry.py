from __future__ import annotations

import logging
from typing import Dict, Iterable, Tuple

from config_tree.exceptions import EnvironmentValidationError, ParamDuplicateError

from .spec import ParamSpec

logger = logging.getLogger("config_tree.params")
logger.addHandler(logging.NullHandler())


class ParamRegistry:
    def __init__(self) -> None:
        self._specs: Dict[str, ParamSpec] = {}
        self._aliases: Dict[str, str] = {}

    @staticmethod
    def _canon(name: str) -> str:
        return name.strip().upper()

    def register(
        self, spec: ParamSpec, aliases: Iterable[str] = (), override: bool = False
    ) -> None:
        key = self._canon(spec.name)
        aliases = tuple(aliases)
        logger.debug("Register called: name=%r canon=%r override=%s aliases=%r",
                     spec.name, key, override, aliases)
        if not override and key in self._specs:
            logger.error("Register failed: %r already registered", key)
            raise ParamDuplicateError({spec.name: "Parameter already registered."})
        self._check_aliases(aliases, key, override)
        self._specs[key] = spec
        for a in aliases:
            self._aliases[self._canon(a)] = key

    def _check_aliases(self, aliases: Iterable[str], key: str, override: bool) -> None:
        for a in aliases:
            ak = self._canon(a)
            if not override and ak in self._aliases and self._aliases[ak] != key:
                logger.error("Alias conflict: %r already points to %r", ak, self._aliases[ak])
                raise EnvironmentValidationError({a: f"Alias already used for {self._aliases[ak]}."})

    def has(self, name_or_alias: str) -> bool:
        k = self._canon(name_or_alias)
        return k in self._specs or k in self._aliases

    def get(self, name_or_alias: str) -> ParamSpec:
        return self._specs[self.resolve_name(name_or_alias)]

    def resolve_name(self, name_or_alias: str) -> str:
        if not isinstance(name_or_alias, str):
            raise EnvironmentValidationError({str(name_or_alias): "Parameter name must be a str."})
        k = self._canon(name_or_alias)
        if k in self._specs:
            return k
        if k in self._aliases:
            return self._aliases[k]
        logger.error("Unknown environment param: %r | specs=%d aliases=%d",
                     name_or_alias, len(self._specs), len(self._aliases))
        raise EnvironmentValidationError({k: "Unknown environment parameter."})

    def all_names(self) -> Tuple[str, ...]:
        return tuple(sorted(self._specs.keys()))
