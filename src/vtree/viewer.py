"""Viewer session: tree, cursor and filter composed behind user actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from vtree.config import ViewerConfig
from vtree.filter import FilterEngine, FilterMode, InvalidFilterPattern, Span
from vtree.formats import ContentType, parse, parse_any
from vtree.navigation import Navigator
from vtree.reload import ReloadResult, reconcile
from vtree.tree import FieldType, RootOnLeafError, Tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Row:
    """Render-ready projection of one visible node."""

    node_id: int
    depth: int
    label: str
    field_type: FieldType
    description: str
    expanded: bool | None
    is_match: bool
    is_current_match: bool
    label_spans: tuple[Span, ...]
    value_spans: tuple[Span, ...]
    is_cursor: bool


class Viewer:
    """All mutable browsing state for one document.

    Action methods return ``True`` when something changed.  Action-local
    errors (leaf re-root, bad pattern) end up in ``status_msg``.
    """

    def __init__(
        self,
        value: object,
        content_type: ContentType = ContentType.JSON,
        config: ViewerConfig | None = None,
    ) -> None:
        self.config = config or ViewerConfig()
        self.content_type = content_type
        self.tree = Tree(value, content_type)
        self.nav = Navigator(self.tree, self.config.page_size)
        self.filter = FilterEngine(self.config.filter_mode, self.config.ignore_case)
        self.status_msg = ""

    @classmethod
    def from_bytes(
        cls,
        data: bytes | str,
        content_type: ContentType | None = None,
        config: ViewerConfig | None = None,
    ) -> Viewer:
        """Parse *data* and open it; raises ParseError on malformed input."""
        if content_type is None:
            content_type, value = parse_any(data)
        else:
            value = parse(data, content_type)
        return cls(value, content_type, config)

    @property
    def cursor(self) -> int:
        return self.nav.cursor

    def _settle(self) -> None:
        self.nav.visible = self.filter.predicate()
        self.nav.ensure_valid()

    def _run(self, action) -> bool:
        changed = action()
        self.nav.ensure_valid()
        return changed

    # -- Movement ----------------------------------------------------------

    def move_up(self) -> bool:
        return self._run(self.nav.move_up)

    def move_down(self) -> bool:
        return self._run(self.nav.move_down)

    def move_left(self) -> bool:
        return self._run(self.nav.move_left)

    def move_right(self) -> bool:
        return self._run(self.nav.move_right)

    def select_parent(self) -> bool:
        return self._run(self.nav.select_parent)

    def select_first(self) -> bool:
        return self._run(self.nav.select_first)

    def select_last(self) -> bool:
        return self._run(self.nav.select_last)

    def close_parent(self) -> bool:
        return self._run(self.nav.close_parent)

    def page_up(self, count: int | None = None) -> bool:
        return self._run(lambda: self.nav.page_up(count))

    def page_down(self, count: int | None = None) -> bool:
        return self._run(lambda: self.nav.page_down(count))

    def toggle(self) -> bool:
        return self._run(self.nav.toggle)

    def select(self, node_id: int) -> bool:
        return self._run(lambda: self.nav.select(node_id))

    def expand_all(self) -> bool:
        self.tree.expand_all()
        self.nav.ensure_valid()
        return True

    def collapse_all(self) -> bool:
        self.tree.collapse_all()
        self.nav.ensure_valid()
        return True

    # -- Root --------------------------------------------------------------

    def change_root(self) -> bool:
        """Re-root the view on the cursor node."""
        try:
            changed = self.tree.change_root(self.cursor)
        except RootOnLeafError as e:
            self.status_msg = str(e)
            logger.debug("change_root rejected: %s", e)
            return False
        if changed:
            self._refilter()
        return changed

    def reset_root(self) -> bool:
        if not self.tree.reset():
            return False
        self._refilter()
        return True

    def _refilter(self) -> None:
        if self.filter.active:
            self.filter.refresh(self.tree, cursor=self.cursor)
        self._settle()

    # -- Filter ------------------------------------------------------------

    def apply_filter(
        self,
        query: str,
        *,
        mode: FilterMode | None = None,
        ignore_case: bool | None = None,
        regex: bool | None = None,
        exclude: bool | None = None,
    ) -> bool:
        """Install a filter; on a bad pattern the old filter stays."""
        try:
            state = self.filter.apply(
                self.tree,
                query,
                mode=mode,
                ignore_case=ignore_case,
                regex=regex,
                exclude=exclude,
                cursor=self.cursor,
            )
        except InvalidFilterPattern as e:
            self.status_msg = str(e)
            return False
        self._settle()
        if not state.active:
            self.status_msg = ""
            return True
        target = state.current_match
        if target is None:
            self.status_msg = f"Pattern not found: {query}"
            return True
        self.nav.select(target)
        self.nav.ensure_valid()
        self.status_msg = self._match_status()
        return True

    def clear_filter(self) -> bool:
        if not self.filter.active:
            return False
        self.filter.clear()
        self._settle()
        self.status_msg = ""
        return True

    def next_match(self) -> bool:
        return self._goto_match(self.filter.next_match())

    def prev_match(self) -> bool:
        return self._goto_match(self.filter.prev_match())

    def _goto_match(self, target: int | None) -> bool:
        if target is None:
            if self.filter.active:
                self.status_msg = f"Pattern not found: {self.filter.state.query}"
            return False
        self.nav.select(target)
        self.nav.ensure_valid()
        self.status_msg = self._match_status()
        return True

    def _match_status(self) -> str:
        state = self.filter.state
        return f"[{state.current + 1}/{len(state.matches)}] {state.query}"

    # -- Reload ------------------------------------------------------------

    def reload(self, data: bytes | str) -> ReloadResult:
        return reconcile(self, data)

    # -- Projections -------------------------------------------------------

    def rows(self) -> list[Row]:
        tree = self.tree
        state = self.filter.state
        current = state.current_match
        result = []
        for node_id in self.nav.rows():
            node = tree.node(node_id)
            highlight = state.highlights.get(node_id)
            result.append(
                Row(
                    node_id=node_id,
                    depth=tree.depth_of(node_id),
                    label=node.label,
                    field_type=node.field_type,
                    description=node.description,
                    expanded=node.expanded if node.can_expand else None,
                    is_match=highlight is not None,
                    is_current_match=node_id == current,
                    label_spans=highlight.label_spans if highlight else (),
                    value_spans=highlight.value_spans if highlight else (),
                    is_cursor=node_id == self.cursor,
                )
            )
        return result

    def cursor_row(self) -> int:
        """Index of the cursor within ``rows()``."""
        try:
            return self.nav.rows().index(self.cursor)
        except ValueError:
            return 0

    def name_text(self) -> str:
        return self.tree.name_text(self.cursor)

    def value_text(self) -> str:
        return self.tree.value_text(self.cursor)

    def path_text(self) -> str:
        return self.tree.path_text(self.cursor)

    def root_path_text(self) -> str:
        return self.tree.path_text(self.tree.root)
