from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

from config_tree.converter import TypeConverter
from config_tree.documents import ConfigDocument

logger = logging.getLogger("config_tree.composite")
logger.addHandler(logging.NullHandler())

COMPOSITE_FLAG = "is-composite"
TYPE_SUFFIX = "type"
# Marker value written by older configuration trees for connection descriptors.
LEGACY_MARKERS = ("javax.sql.DataSource",)


class CompositeResource:
    """
    A named object assembled from every document key sharing one prefix,
    e.g. `FooDS.url` and `FooDS.user` become `FooDS` with `url` and `user` attributes.

    Attributes are readable as `resource.url`, `resource["url"]` or `resource.get("url")`.
    """

    def __init__(self, name: str, prefix: str, identity: str, attributes: Mapping[str, Any]) -> None:
        self._name = name
        self._prefix = prefix
        self._identity = identity
        self._attributes = MappingProxyType(dict(attributes))

    @property
    def name(self) -> str:
        return self._name

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def attributes(self) -> Mapping[str, Any]:
        return self._attributes

    def get(self, key: str, default: Any = None) -> Any:
        return self._attributes.get(key, default)

    def __getattr__(self, item: str) -> Any:
        if item.startswith("_"):
            raise AttributeError(item)
        try:
            return self._attributes[item]
        except KeyError:
            raise AttributeError(f"{self._identity} has no attribute {item!r}") from None

    def __getitem__(self, key: str) -> Any:
        return self._attributes[key]

    def __contains__(self, key: object) -> bool:
        return key in self._attributes

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CompositeResource):
            return NotImplemented
        return self._identity == other._identity and dict(self._attributes) == dict(other._attributes)

    def __hash__(self) -> int:
        return hash(self._identity)

    def __str__(self) -> str:
        return self._identity

    def __repr__(self) -> str:
        return f"<CompositeResource name={self._name!r} identity={self._identity!r}>"


class CompositeBuilder:
    def __init__(self, converter: TypeConverter, marker: str = "composite") -> None:
        self._converter = converter
        self._markers = (marker,) + LEGACY_MARKERS

    def is_composite(self, document: ConfigDocument, remainder: str, delimiter: str) -> bool:
        if remainder and document.get(remainder + delimiter + TYPE_SUFFIX) in self._markers:
            return True
        if document.get(COMPOSITE_FLAG) != "true":
            return False
        if not remainder:
            return True
        # A flagged document only yields nested composites for prefixes that hold keys.
        return remainder not in document and bool(document.keys_under(remainder, delimiter))

    def build(self, document: ConfigDocument, remainder: str, delimiter: str) -> CompositeResource:
        name = remainder.rsplit(delimiter, 1)[-1] if remainder else ""
        raw = document.keys_under(remainder, delimiter)
        if not remainder:
            raw.pop(COMPOSITE_FLAG, None)
        attributes: Dict[str, Any] = {}
        for key, value in raw.items():
            type_name: Optional[Any] = raw.get(key + delimiter + TYPE_SUFFIX)
            if isinstance(type_name, str) and type_name not in self._markers:
                attributes[key] = self._converter.convert(value, type_name)
            else:
                attributes[key] = list(value) if isinstance(value, tuple) else value
        location = document.handle.location
        identity = f"{location}#{remainder}" if remainder else location
        logger.debug("Composite %r built from %s with %d attributes", name, location, len(attributes))
        return CompositeResource(name, remainder, identity, attributes)
