"""Filter engine: match sets, highlight spans and match cycling."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from vtree.tree import Tree

logger = logging.getLogger(__name__)

Span = tuple[int, int]


class FilterMode(Enum):
    KEY = "key"
    VALUE = "value"
    ALL = "all"


class InvalidFilterPattern(ValueError):
    """The filter query is not a valid regular expression."""

    def __init__(self, query: str, reason: str) -> None:
        super().__init__(f"Invalid pattern: {reason}")
        self.query = query
        self.reason = reason


@dataclass(frozen=True)
class Highlight:
    label_spans: tuple[Span, ...] = ()
    value_spans: tuple[Span, ...] = ()


@dataclass
class FilterState:
    query: str = ""
    mode: FilterMode = FilterMode.ALL
    ignore_case: bool = False
    exclude: bool = False
    regex: bool = False
    matches: list[int] = field(default_factory=list)
    current: int = -1
    highlights: dict[int, Highlight] = field(default_factory=dict)
    # exclude 모드에서 보이는 node id 집합 (highlight 모드면 None)
    visible: frozenset[int] | None = None

    @property
    def active(self) -> bool:
        return bool(self.query)

    @property
    def current_match(self) -> int | None:
        if 0 <= self.current < len(self.matches):
            return self.matches[self.current]
        return None

    def is_match(self, node_id: int) -> bool:
        return node_id in self.highlights


# 쿼리 끝에 붙는 플래그: foo\c\x 처럼 여러 개를 이어 붙일 수 있다
_FLAG_SUFFIXES = {
    "\\c": ("ignore_case", True),
    "\\r": ("regex", True),
    "\\k": ("mode", FilterMode.KEY),
    "\\v": ("mode", FilterMode.VALUE),
    "\\x": ("exclude", True),
}


def split_flags(raw: str) -> tuple[str, dict[str, object]]:
    """Strip trailing ``\\c``/``\\r``/``\\k``/``\\v``/``\\x`` flags from *raw*."""
    options: dict[str, object] = {}
    query = raw
    while len(query) >= 2 and query[-2:] in _FLAG_SUFFIXES:
        name, value = _FLAG_SUFFIXES[query[-2:]]
        options.setdefault(name, value)
        query = query[:-2]
    return query, options


def compile_query(query: str, regex: bool = False, ignore_case: bool = False) -> re.Pattern[str]:
    flags = re.IGNORECASE if ignore_case else 0
    source = query if regex else re.escape(query)
    try:
        return re.compile(source, flags)
    except re.error as e:
        raise InvalidFilterPattern(query, str(e)) from e


def _spans(pattern: re.Pattern[str], text: str) -> tuple[Span, ...]:
    return tuple(
        (m.start(), m.end()) for m in pattern.finditer(text) if m.end() > m.start()
    )


def compute_matches(
    tree: Tree, pattern: re.Pattern[str], mode: FilterMode = FilterMode.ALL
) -> tuple[list[int], dict[int, Highlight]]:
    """Matching ids in document order under the active root, with their spans.

    The active root row itself is never tested.
    """
    matches: list[int] = []
    highlights: dict[int, Highlight] = {}
    check_label = mode in (FilterMode.KEY, FilterMode.ALL)
    check_value = mode in (FilterMode.VALUE, FilterMode.ALL)
    for node_id in tree.walk():
        if node_id == tree.root:
            continue
        node = tree.node(node_id)
        label_spans = _spans(pattern, node.label) if check_label else ()
        value_spans = ()
        if check_value and not node.is_composite:
            value_spans = _spans(pattern, node.value_text)
        if label_spans or value_spans:
            matches.append(node_id)
            highlights[node_id] = Highlight(label_spans, value_spans)
    return matches, highlights


def _exclude_visible(tree: Tree, matches: list[int]) -> frozenset[int]:
    visible = {tree.root}
    for node_id in matches:
        if node_id in visible:
            continue
        visible.add(node_id)
        for ancestor in tree.ancestors(node_id, stop=tree.root):
            if ancestor in visible:
                break
            visible.add(ancestor)
    return frozenset(visible)


def _first_at_or_after(matches: list[int], cursor: int | None) -> int:
    if not matches:
        return -1
    if cursor is not None:
        # id는 pre-order로 부여되므로 id 비교가 곧 문서 순서 비교
        for i, node_id in enumerate(matches):
            if node_id >= cursor:
                return i
    return 0


class FilterEngine:
    """Owns the current FilterState; every update replaces it whole."""

    def __init__(
        self,
        mode: FilterMode = FilterMode.ALL,
        ignore_case: bool = False,
    ) -> None:
        self.state = FilterState(mode=mode, ignore_case=ignore_case)

    @property
    def active(self) -> bool:
        return self.state.active

    def build(
        self,
        tree: Tree,
        query: str,
        *,
        mode: FilterMode | None = None,
        ignore_case: bool | None = None,
        regex: bool | None = None,
        exclude: bool | None = None,
        cursor: int | None = None,
    ) -> FilterState:
        """Compute a new FilterState without installing it.

        Unset options keep their current values.  Raises
        ``InvalidFilterPattern`` before anything is computed.
        """
        old = self.state
        mode = old.mode if mode is None else mode
        ignore_case = old.ignore_case if ignore_case is None else ignore_case
        regex = old.regex if regex is None else regex
        exclude = old.exclude if exclude is None else exclude

        if not query:
            return FilterState(mode=mode, ignore_case=ignore_case, regex=regex, exclude=exclude)

        pattern = compile_query(query, regex, ignore_case)
        matches, highlights = compute_matches(tree, pattern, mode)
        return FilterState(
            query=query,
            mode=mode,
            ignore_case=ignore_case,
            exclude=exclude,
            regex=regex,
            matches=matches,
            current=_first_at_or_after(matches, cursor),
            highlights=highlights,
            visible=_exclude_visible(tree, matches) if exclude else None,
        )

    def apply(self, tree: Tree, query: str, **options) -> FilterState:
        """Compute and install a filter; the previous state survives errors."""
        self.state = self.build(tree, query, **options)
        logger.debug(
            "filter %r (%s) -> %d matches", query, self.state.mode.value, len(self.state.matches)
        )
        return self.state

    def clear(self) -> None:
        old = self.state
        self.state = FilterState(
            mode=old.mode, ignore_case=old.ignore_case, regex=old.regex, exclude=old.exclude
        )

    def refresh(self, tree: Tree, cursor: int | None = None) -> FilterState:
        """Re-run the installed query against *tree* with the same settings."""
        return self.apply(tree, self.state.query, cursor=cursor)

    def predicate(self) -> Callable[[int], bool] | None:
        visible = self.state.visible
        if visible is None:
            return None
        return visible.__contains__

    def next_match(self) -> int | None:
        state = self.state
        if not state.matches:
            return None
        state.current = (state.current + 1) % len(state.matches)
        return state.matches[state.current]

    def prev_match(self) -> int | None:
        state = self.state
        if not state.matches:
            return None
        state.current = (state.current - 1) % len(state.matches)
        return state.matches[state.current]
