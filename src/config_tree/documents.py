from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterator, Mapping, Tuple, Union

from config_tree.exceptions import ParseFailureError
from config_tree.locks import ReadWriteLock
from config_tree.parsers import ParserRegistry, RawMapping

if TYPE_CHECKING:
    from config_tree.locator import ResourceHandle, ResourceLocator

logger = logging.getLogger("config_tree.documents")
logger.addHandler(logging.NullHandler())

DocValue = Union[str, Tuple[str, ...]]


class ConfigDocument(Mapping[str, DocValue]):
    """
    Immutable, ordered key -> value content of one backing resource.
    Repeated keys are stored as tuples in declaration order.
    """

    __slots__ = ("_handle", "_entries")

    def __init__(self, handle: "ResourceHandle", raw: RawMapping) -> None:
        entries: Dict[str, DocValue] = {}
        for key, value in raw.items():
            if isinstance(value, (list, tuple)):
                entries[key] = tuple(str(v) for v in value)
            elif isinstance(value, str):
                entries[key] = value
            else:
                raise ParseFailureError(
                    f"{handle.location}: value for {key!r} is {type(value).__name__}, expected str"
                )
        self._handle = handle
        self._entries = MappingProxyType(entries)

    @property
    def handle(self) -> "ResourceHandle":
        return self._handle

    def __getitem__(self, key: str) -> DocValue:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def keys_under(self, prefix: str, delimiter: str) -> Dict[str, DocValue]:
        """Entries below `prefix`, with the prefix and delimiter stripped."""
        if not prefix:
            return dict(self._entries)
        head = prefix + delimiter
        return {k[len(head):]: v for k, v in self._entries.items() if k.startswith(head)}

    def __repr__(self) -> str:
        return f"<ConfigDocument {self._handle.location} keys={len(self._entries)}>"


class DocumentCache:
    """
    Parsed documents keyed by (handle, delimiter), shared by a namespace and its scoped views.

    Hits are served under the shared lock. A miss takes the exclusive lock, checks again,
    then opens and parses the resource. Failed parses are not cached.
    """

    def __init__(self, parsers: ParserRegistry) -> None:
        self._parsers = parsers
        self._lock = ReadWriteLock()
        self._documents: Dict[Tuple["ResourceHandle", str], ConfigDocument] = {}
        self._parse_count = 0

    @property
    def parsers(self) -> ParserRegistry:
        return self._parsers

    @property
    def parse_count(self) -> int:
        return self._parse_count

    def load(
        self, handle: "ResourceHandle", locator: "ResourceLocator", delimiter: str
    ) -> ConfigDocument:
        cache_key = (handle, delimiter)
        with self._lock.read():
            doc = self._documents.get(cache_key)
        if doc is not None:
            return doc
        with self._lock.write():
            doc = self._documents.get(cache_key)
            if doc is not None:
                return doc
            with locator.open(handle) as stream:
                raw = self._parsers.parse(handle.name, stream, delimiter)
            doc = ConfigDocument(handle, raw)
            self._parse_count += 1
            self._documents[cache_key] = doc
        logger.debug("Parsed %s keys=%d", handle.location, len(doc))
        return doc

    def invalidate(self, handle: "ResourceHandle") -> None:
        with self._lock.write():
            for key in [k for k in self._documents if k[0] == handle]:
                del self._documents[key]

    def clear(self) -> None:
        with self._lock.write():
            self._documents.clear()

    def __contains__(self, handle: object) -> bool:
        with self._lock.read():
            return any(k[0] == handle for k in self._documents)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._documents)
