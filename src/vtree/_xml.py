"""XML → value conversion used by the XML format adapter."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

TEXT_KEY = "#text"
ATTR_PREFIX = "@"


@dataclass
class _Frame:
    """열린 element 하나의 변환 상태."""

    tag: str
    attrs: list[tuple[str, str]]
    children: list[tuple[str, object]] = field(default_factory=list)


def _qualified(name: str, prefixes: dict[str, str]) -> str:
    """ElementTree의 ``{uri}local`` 이름을 원문 prefix 형태로 되돌린다."""
    if not name.startswith("{"):
        return name
    uri, local = name[1:].split("}", 1)
    prefix = prefixes.get(uri, "")
    return f"{prefix}:{local}" if prefix else local


def _element_text(elem: ET.Element) -> str:
    """Direct text of *elem*: its own text plus the tails of its children."""
    runs = [elem.text] + [child.tail for child in elem]
    return " ".join(r.strip() for r in runs if r and r.strip())


def _element_value(frame: _Frame, text: str) -> object:
    if not frame.attrs and not frame.children:
        return text if text else None

    obj: dict[str, object] = {}
    for key, value in frame.attrs:
        obj[ATTR_PREFIX + key] = value
    for tag, value in frame.children:
        if tag not in obj:
            obj[tag] = value
            continue
        # element value는 list가 될 수 없으므로 list면 반복 태그
        existing = obj[tag]
        if isinstance(existing, list):
            existing.append(value)
        else:
            obj[tag] = [existing, value]
    if text:
        obj[TEXT_KEY] = text
    return obj


def parse_xml(text: str) -> dict[str, object]:
    """Convert an XML document into ``{root_tag: value}``.

    Attributes become ``@name`` keys and force object form, repeated
    child tags collapse into a list, and direct text of an object element
    is stored under ``#text``. Raises ``ET.ParseError`` on malformed input.
    """
    parser = ET.XMLPullParser(events=("start-ns", "start", "end"))
    parser.feed(text)
    parser.close()

    prefixes: dict[str, str] = {}
    frames: list[_Frame] = []
    result: dict[str, object] | None = None

    for event, item in parser.read_events():
        if event == "start-ns":
            prefix, uri = item
            prefixes.setdefault(uri, prefix)
        elif event == "start":
            attrs = [(_qualified(k, prefixes), v) for k, v in item.attrib.items()]
            frames.append(_Frame(tag=_qualified(item.tag, prefixes), attrs=attrs))
        else:
            frame = frames.pop()
            value = _element_value(frame, _element_text(item))
            # 자식 tail은 여기서 읽었으므로 자식만 버린다 (자신의 tail은 부모가 읽음)
            del item[:]
            if frames:
                frames[-1].children.append((frame.tag, value))
            else:
                result = {frame.tag: value}

    if result is None:
        raise ET.ParseError("no element found")
    return result
