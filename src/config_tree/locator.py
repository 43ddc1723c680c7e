from __future__ import annotations

import io
import logging
import os
import sys
import threading
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePath
from typing import Any, BinaryIO, ClassVar, Dict, Iterator, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from config_tree.documents import DocumentCache
from config_tree.environment import Environment, ResourceProtocol
from config_tree.exceptions import (
    NamingError,
    ResolutionTimeoutError,
    ResourceAccessError,
    UnsupportedProtocolError,
)

logger = logging.getLogger("config_tree.locator")
logger.addHandler(logging.NullHandler())


class Location(Enum):
    CONTAINER = "container"
    LEAF = "leaf"
    ABSENT = "absent"


@dataclass(frozen=True)
class ResourceHandle:
    protocol: ResourceProtocol
    location: str

    @property
    def name(self) -> str:
        return self.location.rstrip("/").replace("\\", "/").rsplit("/", 1)[-1]

    @property
    def extension(self) -> str:
        name = self.name
        dot = name.rfind(".")
        return name[dot:].lower() if dot > 0 else ""

    def __str__(self) -> str:
        return f"{self.protocol.value}:{self.location}"


def is_plain_segment(segment: str) -> bool:
    """True when `segment` names one entry directly beneath its parent and cannot climb out of it."""
    if segment in ("", ".", ".."):
        return False
    separators = {"/", "\\", os.sep, os.altsep} - {None}
    if any(sep in segment for sep in separators):
        return False
    pure = PurePath(segment)
    return not (pure.is_absolute() or pure.drive)


class ResourceLocator:
    """
    Protocol-specific existence checks and stream opening.

    `probe()` classifies one segment beneath a base path: a bare container first,
    then `segment + ext` for every registered extension in priority order.
    """

    protocol: ClassVar[ResourceProtocol]

    def __init__(self, documents: DocumentCache) -> None:
        self._documents = documents

    def child(self, base: str, name: str) -> ResourceHandle:
        raise NotImplementedError

    def exists(self, handle: ResourceHandle) -> bool:
        raise NotImplementedError

    def open(self, handle: ResourceHandle) -> BinaryIO:
        raise NotImplementedError

    def is_container(self, handle: ResourceHandle, delimiter: str = ".") -> bool:
        raise NotImplementedError

    def close(self) -> None:
        """Release anything held open between lookups."""

    def locate_document(self, base: str, name: str) -> Optional[ResourceHandle]:
        for ext in self._documents.parsers.extensions:
            handle = self.child(base, name + ext)
            if self.exists(handle):
                return handle
        return None

    def probe(
        self, base: str, segment: str, delimiter: str = "."
    ) -> Tuple[Location, Optional[ResourceHandle]]:
        if not is_plain_segment(segment):
            logger.warning("Segment %r cannot name a resource beneath %r; treated as absent", segment, base)
            return Location.ABSENT, None
        bare = self.child(base, segment)
        if self.exists(bare) and self.is_container(bare, delimiter):
            return Location.CONTAINER, bare
        handle = self.locate_document(base, segment)
        if handle is not None:
            return Location.LEAF, handle
        return Location.ABSENT, None

    def locate(self, base: str, segment: str, delimiter: str = ".") -> Optional[ResourceHandle]:
        return self.probe(base, segment, delimiter)[1]

    def _speculative_is_container(self, handle: ResourceHandle, delimiter: str) -> bool:
        # Containment cannot be asked directly here, so try to read the resource as a
        # document. Known imprecision: a real document whose keys all start with '<'
        # is classified as a container.
        try:
            doc = self._documents.load(handle, self, delimiter)
        except ResolutionTimeoutError:
            raise
        except (NamingError, OSError) as exc:
            logger.debug("%s not readable as a document (%s); assuming container", handle, exc)
            return True
        if not doc:
            logger.debug("%s parsed empty; assuming container", handle)
            return True
        if all(key.startswith("<") for key in doc):
            logger.warning("%s parsed as markup listing only; assuming container", handle)
            return True
        return False


class LocalPathLocator(ResourceLocator):
    protocol = ResourceProtocol.LOCAL_PATH

    def child(self, base: str, name: str) -> ResourceHandle:
        return ResourceHandle(self.protocol, str(Path(base) / name) if base else name)

    def exists(self, handle: ResourceHandle) -> bool:
        return Path(handle.location).exists()

    def is_container(self, handle: ResourceHandle, delimiter: str = ".") -> bool:
        return Path(handle.location).is_dir()

    def open(self, handle: ResourceHandle) -> BinaryIO:
        try:
            return Path(handle.location).open("rb")
        except OSError as exc:
            raise ResourceAccessError(f"Failure to open: {handle.location}") from exc


class BundledLocator(ResourceLocator):
    """
    Resources addressed relative to a search path of directories and zip archives,
    first match wins. Defaults to sys.path, read at lookup time.
    """

    protocol = ResourceProtocol.BUNDLED

    def __init__(self, documents: DocumentCache, search_path: Optional[Sequence[str]] = None) -> None:
        super().__init__(documents)
        self._search_path = tuple(search_path) if search_path is not None else None
        self._archives: Dict[str, zipfile.Path] = {}
        self._archives_lock = threading.Lock()

    @property
    def search_path(self) -> Tuple[str, ...]:
        if self._search_path is not None:
            return self._search_path
        return tuple(sys.path)

    def _roots(self) -> Iterator[Any]:
        for entry in self.search_path:
            path = Path(entry or ".")
            if path.is_dir():
                yield path
            elif path.is_file() and zipfile.is_zipfile(path):
                yield self._archive(str(path))

    def _archive(self, location: str) -> zipfile.Path:
        with self._archives_lock:
            archive = self._archives.get(location)
            if archive is None:
                archive = self._archives[location] = zipfile.Path(location)
            return archive

    def close(self) -> None:
        """Close every zip archive opened so far. Later lookups reopen them."""
        with self._archives_lock:
            archives = list(self._archives.values())
            self._archives.clear()
        for archive in archives:
            archive.root.close()
        if archives:
            logger.debug("Closed %d bundled archives", len(archives))

    def _find(self, handle: ResourceHandle) -> Optional[Any]:
        parts: List[str] = [p for p in handle.location.split("/") if p]
        if not parts:
            return None
        for root in self._roots():
            target = root
            for part in parts:
                target = target / part
            if target.exists():
                return target
        return None

    def child(self, base: str, name: str) -> ResourceHandle:
        return ResourceHandle(self.protocol, f"{base}/{name}" if base else name)

    def exists(self, handle: ResourceHandle) -> bool:
        return self._find(handle) is not None

    def is_container(self, handle: ResourceHandle, delimiter: str = ".") -> bool:
        return self._speculative_is_container(handle, delimiter)

    def open(self, handle: ResourceHandle) -> BinaryIO:
        target = self._find(handle)
        if target is None:
            raise ResourceAccessError(f"Failure to open: {handle.location} is not on the search path")
        try:
            return target.open("rb")
        except (OSError, KeyError) as exc:
            raise ResourceAccessError(f"Failure to open: {handle.location}") from exc


class RemoteLocator(ResourceLocator):
    """HTTP(S) resources. Every request is bounded by `timeout` seconds."""

    protocol = ResourceProtocol.REMOTE

    def __init__(
        self,
        documents: DocumentCache,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(documents)
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()

    def child(self, base: str, name: str) -> ResourceHandle:
        return ResourceHandle(self.protocol, f"{base.rstrip('/')}/{quote(name, safe='')}")

    def _request(self, method: str, url: str) -> requests.Response:
        try:
            return self._session.request(method, url, timeout=self.timeout, allow_redirects=True)
        except requests.Timeout as exc:
            logger.error("%s %s timed out after %ss", method, url, self.timeout)
            raise ResolutionTimeoutError(f"{method} {url} exceeded {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise ResourceAccessError(f"Unable to reach {url}: {exc}") from exc

    def exists(self, handle: ResourceHandle) -> bool:
        response = self._request("HEAD", handle.location)
        if response.status_code == 405:
            response = self._request("GET", handle.location)
        logger.debug("HEAD %s -> %s", handle.location, response.status_code)
        return response.status_code < 400

    def is_container(self, handle: ResourceHandle, delimiter: str = ".") -> bool:
        return self._speculative_is_container(handle, delimiter)

    def open(self, handle: ResourceHandle) -> BinaryIO:
        response = self._request("GET", handle.location)
        if response.status_code >= 400:
            raise ResourceAccessError(f"Failure to open: {handle.location} -> HTTP {response.status_code}")
        return io.BytesIO(response.content)


def locator_for(
    protocol: ResourceProtocol,
    environment: Environment,
    documents: DocumentCache,
    session: Optional[requests.Session] = None,
) -> ResourceLocator:
    if protocol is ResourceProtocol.LOCAL_PATH:
        return LocalPathLocator(documents)
    if protocol is ResourceProtocol.BUNDLED:
        return BundledLocator(documents, environment.search_path)
    if protocol is ResourceProtocol.REMOTE:
        return RemoteLocator(documents, environment.timeout, session)
    raise UnsupportedProtocolError(f"Unsupported protocol: {protocol!r}")
