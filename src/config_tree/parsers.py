from __future__ import annotations

import io
import logging
import re
import xml.etree.ElementTree as ET
from typing import BinaryIO, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from typing_extensions import Protocol, runtime_checkable

from config_tree.exceptions import ParseFailureError

logger = logging.getLogger("config_tree.parsers")
logger.addHandler(logging.NullHandler())

RawValue = Union[str, List[str]]
RawMapping = Dict[str, RawValue]

__all__ = [
    "FormatParser",
    "PropertiesParser",
    "XmlParser",
    "IniParser",
    "ParserRegistry",
    "DEFAULT_ORDER",
]


@runtime_checkable
class FormatParser(Protocol):
    def parse(self, stream: BinaryIO, delimiter: str) -> RawMapping: ...


def _put(mapping: RawMapping, key: str, value: str) -> None:
    # A repeated key turns into an ordered list of every value seen.
    if key not in mapping:
        mapping[key] = value
        return
    existing = mapping[key]
    if isinstance(existing, list):
        existing.append(value)
    else:
        mapping[key] = [existing, value]


def _decode(stream: BinaryIO, encoding: str) -> str:
    try:
        return stream.read().decode(encoding)
    except UnicodeDecodeError as exc:
        raise ParseFailureError(f"Document is not valid {encoding}: {exc}") from exc


class PropertiesParser:
    """Flat `key=value` documents, in the style of Java properties files."""

    _ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
    _SEPARATOR = re.compile(r"(?<!\\)[=:]|(?<!\\)\s")

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def parse(self, stream: BinaryIO, delimiter: str) -> RawMapping:
        mapping: RawMapping = {}
        for lineno, line in self._logical_lines(_decode(stream, self.encoding)):
            key, value = self._split(line)
            if not key:
                raise ParseFailureError(f"Line {lineno}: missing key in {line!r}")
            _put(mapping, self._unescape(key, lineno), self._unescape(value, lineno))
        return mapping

    def _logical_lines(self, text: str) -> Iterator[Tuple[int, str]]:
        buffer = ""
        start = 0
        for lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.lstrip() if buffer else raw.strip()
            if not buffer:
                if not line or line[0] in "#!":
                    continue
                start = lineno
            else:
                line = line.rstrip()
            trailing = len(line) - len(line.rstrip("\\"))
            if trailing % 2 == 1:
                buffer += line[:-1]
                continue
            yield start, buffer + line
            buffer = ""
        if buffer:
            yield start, buffer

    def _split(self, line: str) -> Tuple[str, str]:
        match = self._SEPARATOR.search(line)
        if match is None:
            return line, ""
        key = line[: match.start()]
        rest = line[match.end():].lstrip()
        if match.group().isspace() and rest[:1] in ("=", ":"):
            rest = rest[1:].lstrip()
        return key, rest

    def _unescape(self, text: str, lineno: int) -> str:
        if "\\" not in text:
            return text
        out: List[str] = []
        i = 0
        while i < len(text):
            ch = text[i]
            if ch != "\\" or i + 1 == len(text):
                out.append(ch)
                i += 1
                continue
            nxt = text[i + 1]
            if nxt == "u":
                digits = text[i + 2: i + 6]
                if len(digits) != 4 or not all(c in "0123456789abcdefABCDEF" for c in digits):
                    raise ParseFailureError(f"Line {lineno}: malformed \\u escape in {text!r}")
                out.append(chr(int(digits, 16)))
                i += 6
                continue
            out.append(self._ESCAPES.get(nxt, nxt))
            i += 2
        return "".join(out)


class XmlParser:
    """
    Markup documents. Keys are element paths from the root element, joined with
    the namespace delimiter; attributes hang off their element's key.

        <config><one two="three"/><value>13</value></config>
        -> {"config.one.two": "three", "config.value": "13"}
    """

    def parse(self, stream: BinaryIO, delimiter: str) -> RawMapping:
        try:
            root = ET.parse(stream).getroot()
        except ET.ParseError as exc:
            raise ParseFailureError(f"Malformed markup: {exc}") from exc
        mapping: RawMapping = {}
        self._add(mapping, root, root.tag, delimiter)
        return mapping

    def _add(self, mapping: RawMapping, node: ET.Element, key: str, delimiter: str) -> None:
        text = (node.text or "").strip()
        if text:
            _put(mapping, key, text)
        for attr, value in node.attrib.items():
            _put(mapping, key + delimiter + attr, value)
        for child in node:
            if not isinstance(child.tag, str):
                # comments and processing instructions
                continue
            self._add(mapping, child, key + delimiter + child.tag, delimiter)


class IniParser:
    """Section-based documents: `[section]` prefixes the keys that follow it."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def parse(self, stream: BinaryIO, delimiter: str) -> RawMapping:
        mapping: RawMapping = {}
        section = ""
        for lineno, raw in enumerate(_decode(stream, self.encoding).splitlines(), start=1):
            line = raw.strip()
            if not line or line[0] in ";#":
                continue
            if line.startswith("["):
                if not line.endswith("]") or not line[1:-1].strip():
                    raise ParseFailureError(f"Line {lineno}: malformed section header {line!r}")
                section = line[1:-1].strip()
                continue
            key, sep, value = line.partition("=")
            if not sep:
                key, sep, value = line.partition(":")
            key = key.strip()
            if not sep or not key:
                raise ParseFailureError(f"Line {lineno}: expected key=value, got {line!r}")
            _put(mapping, section + delimiter + key if section else key, value.strip())
        return mapping


# Markup first, then sectioned, then flat. Trees written for flat-first lookup
# use ParserRegistry(order=(".properties", ".xml", ".ini")).
DEFAULT_ORDER: Tuple[str, ...] = (".xml", ".ini", ".properties")


class ParserRegistry:
    """
    Maps document extensions to parsers. `order` is the priority in which
    extensions are tried when a bare segment does not resolve.
    """

    def __init__(
        self,
        parsers: Optional[Mapping[str, FormatParser]] = None,
        order: Iterable[str] = DEFAULT_ORDER,
        fallback: Optional[FormatParser] = None,
    ) -> None:
        if parsers is None:
            parsers = {".xml": XmlParser(), ".ini": IniParser(), ".properties": PropertiesParser()}
        self._parsers: Dict[str, FormatParser] = {}
        for ext, parser in parsers.items():
            self.register(ext, parser)
        self._order: List[str] = [self._norm(ext) for ext in order]
        unknown = [ext for ext in self._order if ext not in self._parsers]
        if unknown:
            raise ValueError(f"No parser registered for extensions {unknown}")
        self._fallback = fallback if fallback is not None else PropertiesParser()

    @staticmethod
    def _norm(ext: str) -> str:
        ext = ext.lower()
        return ext if ext.startswith(".") else "." + ext

    def register(self, ext: str, parser: FormatParser, *, priority: Optional[int] = None) -> None:
        if not isinstance(parser, FormatParser):
            raise TypeError(f"{parser!r} does not implement parse(stream, delimiter)")
        ext = self._norm(ext)
        self._parsers[ext] = parser
        order = getattr(self, "_order", None)
        if order is not None and priority is not None:
            if ext in order:
                order.remove(ext)
            order.insert(priority, ext)
        logger.debug("Parser registered ext=%s parser=%r", ext, parser)

    @property
    def extensions(self) -> Tuple[str, ...]:
        return tuple(self._order)

    def parser_for(self, name: str) -> FormatParser:
        lowered = name.lower()
        for ext, parser in self._parsers.items():
            if lowered.endswith(ext):
                return parser
        return self._fallback

    def parse(self, name: str, data: Union[bytes, BinaryIO], delimiter: str) -> RawMapping:
        stream = io.BytesIO(data) if isinstance(data, bytes) else data
        return self.parser_for(name).parse(stream, delimiter)
