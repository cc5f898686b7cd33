"""Format adapters: raw document bytes → canonical value tree.

The canonical value is plain Python data: ``None``, ``bool``, ``int``,
``float``, ``str``, ``list`` and ``dict`` with ``str`` keys.  Objects keep
source key order.  Duplicate keys resolve last-write-wins (the key keeps
the position of its first occurrence).
"""

from __future__ import annotations

import base64
import datetime
import json
import logging
import tomllib
import xml.etree.ElementTree as ET
from enum import Enum
from pathlib import Path

import hcl2
import yaml

from vtree._xml import parse_xml

logger = logging.getLogger(__name__)


class ContentType(Enum):
    JSON = "json"
    JSONL = "jsonl"
    YAML = "yaml"
    TOML = "toml"
    XML = "xml"
    HCL = "hcl"

    @property
    def extension(self) -> str:
        return self.value


_EXTENSIONS: dict[str, ContentType] = {
    ".json": ContentType.JSON,
    ".jsonl": ContentType.JSONL,
    ".ndjson": ContentType.JSONL,
    ".yaml": ContentType.YAML,
    ".yml": ContentType.YAML,
    ".toml": ContentType.TOML,
    ".xml": ContentType.XML,
    ".hcl": ContentType.HCL,
    ".tf": ContentType.HCL,
}

# python-hcl2가 버전에 따라 붙이는 메타 키
_HCL_META_KEYS = frozenset(("__start_line__", "__end_line__", "__is_block__"))


class ParseError(Exception):
    """Malformed input for the selected format."""

    def __init__(
        self,
        content_type: ContentType,
        message: str,
        line: int | None = None,
        offset: int | None = None,
    ) -> None:
        super().__init__(message)
        self.content_type = content_type
        self.message = message
        self.line = line
        self.offset = offset

    def __str__(self) -> str:
        where = f" (line {self.line})" if self.line is not None else ""
        return f"Invalid {self.content_type.name}: {self.message}{where}"


def detect_content_type(path: str) -> ContentType | None:
    """Infer the content type from the file extension."""
    return _EXTENSIONS.get(Path(path).suffix.lower())


# -- Normalization ---------------------------------------------------------

_SCALARS = (str, bool, int, float, type(None))
_LEAVE = object()

# alias로 부풀릴 수 있는 YAML node 수 상한: 입력 크기에 비례, 최소 MIN_NODE_BUDGET
MIN_NODE_BUDGET = 100_000
NODES_PER_BYTE = 4


def _count_nodes(value: object) -> int:
    count = 0
    stack = [value]
    while stack:
        item = stack.pop()
        count += 1
        if isinstance(item, dict):
            stack.extend(item.values())
        elif isinstance(item, list):
            stack.extend(item)
    return count


def _scalar(value: object) -> object:
    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return str(value)


def _key(key: object) -> str:
    if isinstance(key, str):
        return key
    if key is None:
        return "null"
    if isinstance(key, bool):
        return "true" if key else "false"
    return str(_scalar(key))


class ExpansionLimitError(ValueError):
    """Canonical value would have more nodes than allowed."""


def canonicalize(value: object, max_nodes: int | None = None) -> object:
    """Convert parser output into canonical values without recursion.

    Shared sub-objects (YAML aliases) are copied out, so the result can be
    much larger than the input; ``max_nodes`` caps the emitted node count
    and raises ``ExpansionLimitError`` past it.  Raises ``ValueError`` when
    a container contains itself (YAML aliases can build such structures).
    """
    if not isinstance(value, (dict, list, tuple)):
        return _scalar(value)

    top: list[object] = [None]
    on_path: set[int] = set()
    stack: list[tuple[object, object, object]] = [(value, top, 0)]
    emitted = 0
    while stack:
        src, parent, key = stack.pop()
        if src is _LEAVE:
            on_path.discard(key)
            continue
        emitted += 1
        if max_nodes is not None and emitted > max_nodes:
            raise ExpansionLimitError(f"more than {max_nodes} nodes")
        if isinstance(src, dict):
            if id(src) in on_path:
                raise ValueError("recursive structure")
            on_path.add(id(src))
            stack.append((_LEAVE, None, id(src)))
            dst: object = {}
            stack.extend((v, dst, _key(k)) for k, v in reversed(list(src.items())))
        elif isinstance(src, (list, tuple)):
            if id(src) in on_path:
                raise ValueError("recursive structure")
            on_path.add(id(src))
            stack.append((_LEAVE, None, id(src)))
            dst = [None] * len(src)
            stack.extend((src[i], dst, i) for i in range(len(src) - 1, -1, -1))
        else:
            dst = _scalar(src)
        parent[key] = dst
    return top[0]


# -- Per-format parsers ----------------------------------------------------


_JSON_WHITESPACE = " \t\r\n"


def _parse_json(text: str) -> object:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(ContentType.JSON, e.msg, e.lineno, e.pos) from e


def _parse_jsonl(text: str) -> object:
    records: list[object] = []
    # 레코드 구분은 "\n"뿐: U+2028 등은 JSON 문자열 안에 올 수 있다
    for lineno, line in enumerate(text.split("\n"), start=1):
        stripped = line.strip(_JSON_WHITESPACE)
        if not stripped:
            continue
        try:
            records.append(json.loads(stripped))
        except json.JSONDecodeError as e:
            raise ParseError(ContentType.JSONL, e.msg, lineno, e.colno) from e
    return records


def _parse_yaml(text: str) -> object:
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        problem = getattr(e, "problem", None) or str(e)
        raise ParseError(ContentType.YAML, problem, line) from e
    if not documents:
        raise ParseError(ContentType.YAML, "no document found")
    budget = max(MIN_NODE_BUDGET, NODES_PER_BYTE * len(text))
    try:
        values = []
        for doc in documents:
            values.append(canonicalize(doc, budget))
            budget -= _count_nodes(values[-1])
    except ExpansionLimitError as e:
        raise ParseError(ContentType.YAML, "alias expansion too large") from e
    except ValueError as e:
        raise ParseError(ContentType.YAML, "recursive alias") from e
    if len(values) == 1:
        return values[0]
    return values


def _parse_toml(text: str) -> object:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ParseError(
            ContentType.TOML, str(e), getattr(e, "lineno", None)
        ) from e
    return canonicalize(data)


def _strip_hcl_meta(value: object) -> object:
    """Drop python-hcl2 bookkeeping keys and surrounding string quotes."""
    stack = [value]
    while stack:
        item = stack.pop()
        if isinstance(item, dict):
            entries = [(k, v) for k, v in item.items() if k not in _HCL_META_KEYS]
            item.clear()
            for key, child in entries:
                item[_unquote(key)] = _unquote(child) if isinstance(child, str) else child
                stack.append(child)
        elif isinstance(item, list):
            for i, child in enumerate(item):
                if isinstance(child, str):
                    item[i] = _unquote(child)
                else:
                    stack.append(child)
    return value


def _unquote(s: str) -> str:
    if len(s) >= 2 and s[0] == '"' and s[-1] == '"':
        return s[1:-1]
    return s


def _parse_hcl(text: str) -> object:
    try:
        data = hcl2.loads(text)
    except Exception as e:  # lark 예외 계층은 버전마다 다르다
        message = str(e).strip().splitlines()[0] if str(e).strip() else type(e).__name__
        line = getattr(e, "line", None)
        if not isinstance(line, int) or line <= 0:
            line = None
        raise ParseError(ContentType.HCL, message, line) from e
    return _strip_hcl_meta(canonicalize(data))


def _parse_xml(text: str) -> object:
    try:
        return parse_xml(text)
    except ET.ParseError as e:
        line, col = e.position if e.position else (None, None)
        raise ParseError(ContentType.XML, str(e), line, col) from e


_PARSERS = {
    ContentType.JSON: _parse_json,
    ContentType.JSONL: _parse_jsonl,
    ContentType.YAML: _parse_yaml,
    ContentType.TOML: _parse_toml,
    ContentType.XML: _parse_xml,
    ContentType.HCL: _parse_hcl,
}


def _decode(data: bytes | str, content_type: ContentType) -> str:
    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(
            content_type, f"content is not valid UTF-8 (byte {e.start})", offset=e.start
        ) from e


def parse(data: bytes | str, content_type: ContentType) -> object:
    """Parse *data* as *content_type* into a canonical value.

    Raises ``ParseError`` for any malformed input.
    """
    text = _decode(data, content_type)
    try:
        value = _PARSERS[content_type](text)
    except RecursionError as e:
        raise ParseError(content_type, "document is nested too deeply") from e
    logger.debug("parsed %d chars as %s", len(text), content_type.value)
    return value


def parse_any(data: bytes | str) -> tuple[ContentType, object]:
    """Try every format in order; accept the first object/array root."""
    for content_type in ContentType:
        try:
            value = parse(data, content_type)
        except ParseError:
            continue
        if isinstance(value, (dict, list)):
            logger.debug("content detected as %s", content_type.value)
            return content_type, value
    raise ParseError(
        ContentType.JSON, "unable to parse content with any supported format"
    )


# -- Serialization ---------------------------------------------------------


def dump(value: object, content_type: ContentType | None = None) -> str:
    """Pretty text of *value* for copy/edit sinks."""
    if isinstance(value, str):
        return value
    try:
        if content_type is ContentType.YAML and isinstance(value, (dict, list)):
            return yaml.safe_dump(value, allow_unicode=True, sort_keys=False).rstrip("\n")
        return json.dumps(value, indent=4, ensure_ascii=False)
    except RecursionError:
        logger.debug("value too deep for %s dump, using iterative JSON", content_type)
        return _dump_deep(value)


def _dump_deep(value: object) -> str:
    """Same output as ``json.dumps(value, indent=4, ensure_ascii=False)``
    for canonical values, without recursion."""
    parts: list[str] = []
    work: list[object] = [(value, 0)]
    while work:
        item = work.pop()
        if isinstance(item, str):
            parts.append(item)
            continue
        current, level = item
        if isinstance(current, dict) and current:
            entries = [
                (json.dumps(k, ensure_ascii=False) + ": ", v) for k, v in current.items()
            ]
            opener, closer = "{", "}"
        elif isinstance(current, list) and current:
            entries = [("", v) for v in current]
            opener, closer = "[", "]"
        else:
            parts.append(json.dumps(current, ensure_ascii=False))
            continue
        indent = "\n" + "    " * (level + 1)
        parts.append(opener)
        work.append("\n" + "    " * level + closer)
        for i in range(len(entries) - 1, -1, -1):
            prefix, child = entries[i]
            work.append((child, level + 1))
            work.append(("," if i else "") + indent + prefix)
    return "".join(parts)
