from __future__ import annotations

import logging
import threading
from functools import wraps
from types import MappingProxyType, TracebackType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar, Union, cast

import requests

from config_tree.composite import TYPE_SUFFIX, CompositeBuilder
from config_tree.converter import TypeConverter
from config_tree.documents import DocumentCache
from config_tree.environment import (
    DELIMITER_KEY,
    RESERVED_KEYS,
    ROOT_KEY,
    Environment,
    ResourceProtocol,
    parse_root,
)
from config_tree.exceptions import (
    AlreadyBoundError,
    InvalidNameError,
    NamespaceClosedError,
    NotFoundError,
    NotListableError,
    ParseFailureError,
)
from config_tree.hooks import Hook, HookBus
from config_tree.locator import Location, ResourceHandle, ResourceLocator, locator_for
from config_tree.locks import ReadWriteLock
from config_tree.params import get_param_spec
from config_tree.parsers import ParserRegistry
from config_tree.utils import join_key, normalize_scheme_prefix, redact_for_log, split_key

logger = logging.getLogger("config_tree.resolver")
logger.addHandler(logging.NullHandler())

DEFAULT_DOCUMENT = "default"
_MISSING = object()

F = TypeVar("F", bound=Callable[..., Any])


def is_closed(func: F) -> F:
    """
    Decorator to check if the namespace has been closed before method execution.
    Raises NamespaceClosedError if closed.
    """

    @wraps(func)
    def wrapper(self: "Namespace", *args: Any, **kwargs: Any) -> Any:
        if self.closed:
            logger.error(f"Attempted {func.__name__} after close.")
            raise NamespaceClosedError("Namespace has been closed")
        return func(self, *args, **kwargs)

    return cast(F, wrapper)


class _Backing:
    """Configuration shared by reference between a namespace and all of its scoped views."""

    def __init__(
        self,
        environment: Environment,
        parsers: ParserRegistry,
        converter: TypeConverter,
        session: Optional[requests.Session],
    ) -> None:
        self.environment = environment
        self.documents = DocumentCache(parsers)
        self.converter = converter
        self.composites = CompositeBuilder(converter, environment.composite_marker)
        self._session = session
        self._locators: Dict[ResourceProtocol, ResourceLocator] = {}
        self._lock = threading.Lock()

    def locator(self, protocol: ResourceProtocol) -> ResourceLocator:
        with self._lock:
            found = self._locators.get(protocol)
            if found is None:
                found = locator_for(protocol, self.environment, self.documents, self._session)
                self._locators[protocol] = found
            return found

    def close(self) -> None:
        with self._lock:
            locators = list(self._locators.values())
            self._locators.clear()
        for found in locators:
            found.close()


class Namespace:
    """
    Hierarchical configuration namespace.

    `lookup("a.b.c")` walks containers and documents beneath the configured root and
    returns a raw string, a list, a typed value, a CompositeResource, or a scoped
    Namespace. Values written with bind()/rebind() live only in this instance and
    shadow anything a document provides until unbind().
    """

    def __init__(
        self,
        environment: Union[Environment, Mapping[str, Any], None] = None,
        *,
        parsers: Optional[ParserRegistry] = None,
        converter: Optional[TypeConverter] = None,
        session: Optional[requests.Session] = None,
        hook_failure_mode: str = "ignore",
    ) -> None:
        if environment is None:
            env = Environment.from_env()
        elif isinstance(environment, Environment):
            env = environment
        else:
            env = Environment.from_mapping(environment)
        backing = _Backing(
            env,
            parsers if parsers is not None else ParserRegistry(),
            converter if converter is not None else TypeConverter(),
            session,
        )
        self._setup(backing, (), {}, hook_failure_mode)
        self._owns_backing = True
        logger.debug("Namespace created protocol=%s base=%r delimiter=%r",
                     env.protocol.name, env.base, env.delimiter)

    def _setup(
        self,
        backing: _Backing,
        prefix: Sequence[str],
        overrides: Mapping[str, Any],
        hook_failure_mode: str,
    ) -> None:
        self._backing = backing
        self._prefix: Tuple[str, ...] = tuple(prefix)
        self._lock = ReadWriteLock()
        self._entries: Dict[str, Any] = {}
        self._overrides: Dict[str, Any] = dict(overrides)
        self._hook_failure_mode = hook_failure_mode
        self._hooks = HookBus(hook_failure_mode)  # type: ignore[arg-type]
        self._closed = False
        self._owns_backing = False

    @classmethod
    def _view(
        cls,
        backing: _Backing,
        prefix: Sequence[str],
        overrides: Mapping[str, Any],
        hook_failure_mode: str,
    ) -> "Namespace":
        view = cls.__new__(cls)
        view._setup(backing, prefix, overrides, hook_failure_mode)
        return view

    # properties

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def prefix(self) -> Tuple[str, ...]:
        """Segments, relative to the root, that every lookup in this view starts from."""
        return self._prefix

    @property
    def document_cache(self) -> DocumentCache:
        return self._backing.documents

    @property
    def converter(self) -> TypeConverter:
        return self._backing.converter

    @property
    @is_closed
    def environment(self) -> Mapping[str, Any]:
        with self._lock.read():
            root, delimiter = self._settings()
        values = self._backing.environment.as_mapping()
        values[ROOT_KEY] = root
        values[DELIMITER_KEY] = delimiter
        return MappingProxyType(values)

    def _settings(self) -> Tuple[Optional[str], str]:
        # Caller holds self._lock.
        env = self._backing.environment
        root = self._overrides[ROOT_KEY] if ROOT_KEY in self._overrides else env.root
        delimiter = self._overrides.get(DELIMITER_KEY, env.delimiter)
        return root, delimiter

    # lookup

    @is_closed
    def scoped(self, prefix: str = "") -> "Namespace":
        """
        A view sharing this namespace's backing configuration, locators and document
        cache, with its own empty set of direct entries.
        """
        with self._lock.read():
            _, delimiter = self._settings()
            overrides = dict(self._overrides)
        segments = split_key(normalize_scheme_prefix(prefix, delimiter), delimiter)
        return self._view(self._backing, self._prefix + tuple(segments), overrides,
                          self._hook_failure_mode)

    @is_closed
    def lookup(self, key: str) -> Any:
        if not isinstance(key, str):
            raise InvalidNameError(f"Lookup key must be a str, got {type(key).__name__}")
        if key == "":
            return self.scoped()
        with self._lock.read():
            if key in self._entries:
                logger.debug("Lookup %r served from direct entries", key)
                return self._entries[key]
            root, delimiter = self._settings()
            if key in RESERVED_KEYS:
                return root if key == ROOT_KEY else delimiter
            overrides = dict(self._overrides)
        return self._resolve(key, root, delimiter, overrides)

    def _resolve(
        self, key: str, root: Optional[str], delimiter: str, overrides: Mapping[str, Any]
    ) -> Any:
        normalized = normalize_scheme_prefix(key, delimiter)
        segments = list(self._prefix) + split_key(normalized, delimiter)
        if not segments:
            raise NotFoundError(f"{key!r} names no segment")

        protocol, base = parse_root(root)
        locator = self._backing.locator(protocol)
        handle, remainder = self._walk(locator, base, segments, delimiter)
        if handle is None:
            raise NotFoundError(f"Configuration for {key!r} not found")

        document = self._backing.documents.load(handle, locator, delimiter)
        remainder_key = join_key(remainder, delimiter)

        composites = self._backing.composites
        if composites.is_composite(document, remainder_key, delimiter):
            return composites.build(document, remainder_key, delimiter)

        if not remainder:
            return self._view(self._backing, segments, overrides, self._hook_failure_mode)

        if remainder_key not in document:
            raise NotFoundError(f"{key!r} not found in {handle.location}")
        value = document[remainder_key]
        type_name = document.get(remainder_key + delimiter + TYPE_SUFFIX)
        if type_name is not None:
            if not isinstance(type_name, str):
                raise ParseFailureError(
                    f"{handle.location}: {remainder_key}{delimiter}{TYPE_SUFFIX} is declared more than once"
                )
            return self._backing.converter.convert(value, type_name)
        return list(value) if isinstance(value, tuple) else value

    def _walk(
        self, locator: ResourceLocator, base: str, segments: List[str], delimiter: str
    ) -> Tuple[Optional[ResourceHandle], List[str]]:
        path = base
        for index, segment in enumerate(segments):
            kind, found = locator.probe(path, segment, delimiter)
            if kind is Location.CONTAINER:
                assert found is not None
                path = found.location
                continue
            if kind is Location.LEAF:
                logger.debug("Segment %r resolved to %s", segment, found)
                return found, segments[index + 1:]
            remainder = segments[index:]
            break
        else:
            remainder = []
        handle = locator.locate_document(path, DEFAULT_DOCUMENT)
        if handle is not None:
            logger.debug("Falling back to %s for remainder %r", handle, remainder)
        return handle, remainder

    # write

    @staticmethod
    def _check_name(key: Any, action: str) -> None:
        if not isinstance(key, str) or key == "":
            raise InvalidNameError(f"Cannot {action} an empty name")

    def _validate_reserved(self, key: str, value: Any) -> None:
        get_param_spec(key).validate(value)
        if key == ROOT_KEY:
            parse_root(value)

    def _notify(self, action: str, key: str, **extra: Any) -> None:
        event: Dict[str, Any] = {"action": action, "key": key}
        event.update(extra)
        self._hooks.run(event)

    @is_closed
    def bind(self, key: str, value: Any) -> None:
        self._check_name(key, "bind")
        with self._lock.write():
            if key in RESERVED_KEYS:
                if key in self._overrides:
                    raise AlreadyBoundError(f"{key!r} is already bound. Use rebind to override")
                self._validate_reserved(key, value)
                self._overrides[key] = value
            else:
                if key in self._entries:
                    raise AlreadyBoundError(f"{key!r} is already bound. Use rebind to override")
                self._entries[key] = value
        logger.info("Bound %r=%s", key, redact_for_log(key, value))
        self._notify("bind", key, value=value)

    @is_closed
    def rebind(self, key: str, value: Any) -> None:
        self._check_name(key, "rebind")
        with self._lock.write():
            if key in RESERVED_KEYS:
                self._validate_reserved(key, value)
                self._overrides[key] = value
            else:
                self._entries[key] = value
        logger.info("Rebound %r=%s", key, redact_for_log(key, value))
        self._notify("rebind", key, value=value)

    @is_closed
    def unbind(self, key: str) -> None:
        self._check_name(key, "unbind")
        with self._lock.write():
            removed = self._entries.pop(key, _MISSING) is not _MISSING
            if key in RESERVED_KEYS and self._overrides.pop(key, _MISSING) is not _MISSING:
                removed = True
        if removed:
            logger.info("Unbound %r", key)
            self._notify("unbind", key)

    @is_closed
    def rename(self, old: str, new: str) -> None:
        self._check_name(old, "rename")
        self._check_name(new, "rename")
        if old in RESERVED_KEYS or new in RESERVED_KEYS:
            raise InvalidNameError(f"Reserved keys cannot be renamed: {old!r} -> {new!r}")
        with self._lock.write():
            if new in self._entries:
                raise AlreadyBoundError(f"{new!r} is already bound")
            if old not in self._entries:
                raise NotFoundError(f"{old!r} is not bound")
            self._entries[new] = self._entries.pop(old)
        logger.info("Renamed %r -> %r", old, new)
        self._notify("rename", old, new_key=new)

    @is_closed
    def register_binding_hook(self, func: Hook) -> None:
        """
        Register a function called after each bind, rebind, unbind or rename with an event
        dict holding `action`, `key` and, where relevant, `value` or `new_key`.
        """
        with self._lock.write():
            self._hooks.register(func)

    # listing

    @is_closed
    def list(self, prefix: str = "") -> List[Tuple[str, str]]:
        """(name, type name) for each direct entry of the namespace addressed by `prefix`."""
        if prefix == "":
            with self._lock.read():
                return [(name, type(value).__name__) for name, value in self._entries.items()]
        return self._listable(prefix).list("")

    @is_closed
    def list_bindings(self, prefix: str = "") -> List[Tuple[str, Any]]:
        """(name, value) for each direct entry of the namespace addressed by `prefix`."""
        if prefix == "":
            with self._lock.read():
                return list(self._entries.items())
        return self._listable(prefix).list_bindings("")

    def _listable(self, prefix: str) -> "Namespace":
        target = self.lookup(prefix)
        if isinstance(target, Namespace):
            return target
        raise NotListableError(f"{prefix!r} cannot be listed")

    # lifecycle

    def close(self) -> None:
        """
        Drop direct entries, overrides and hooks. Further calls raise NamespaceClosedError.
        The shared document cache is left to other views. The namespace that created the
        backing also closes its locators; views opened from it reopen them on demand.
        """
        with self._lock.write():
            self._closed = True
            self._entries.clear()
            self._overrides.clear()
            self._hooks.clear()
        if self._owns_backing:
            self._backing.close()
        logger.debug("Namespace closed prefix=%r", self._prefix)

    def __enter__(self) -> "Namespace":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()

    def __getitem__(self, key: str) -> Any:
        return self.lookup(key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str) or key == "":
            return False
        try:
            self.lookup(key)
        except NotFoundError:
            return False
        return True

    def __repr__(self) -> str:
        env = self._backing.environment
        return (
            f"<Namespace protocol={env.protocol.name} prefix={'/'.join(self._prefix)!r} "
            f"entries={len(self._entries)} closed={self._closed}>"
        )
