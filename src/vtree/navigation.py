"""Cursor state machine over the visible rows of a Tree."""

from __future__ import annotations

import logging
from collections.abc import Callable

from vtree.tree import Tree

logger = logging.getLogger(__name__)


class Navigator:
    """Cursor movement over the flattened visible ordering.

    Every movement returns ``True`` when the cursor (or expand state)
    changed and ``False`` at a boundary.  Nothing here raises.
    """

    def __init__(self, tree: Tree, page_size: int = 10) -> None:
        self.tree = tree
        self.page_size = max(1, page_size)
        self.cursor: int = tree.root
        # filter가 설치하는 가시성 predicate (None이면 전체 표시)
        self.visible: Callable[[int], bool] | None = None

    def rows(self) -> list[int]:
        return self.tree.visible_ids(self.visible)

    def _position(self, rows: list[int]) -> int:
        try:
            return rows.index(self.cursor)
        except ValueError:
            return -1

    def _goto(self, node_id: int) -> bool:
        if node_id == self.cursor:
            return False
        self.cursor = node_id
        return True

    # -- Row movement ------------------------------------------------------

    def move_up(self) -> bool:
        rows = self.rows()
        pos = self._position(rows)
        if pos <= 0:
            return False
        return self._goto(rows[pos - 1])

    def move_down(self) -> bool:
        rows = self.rows()
        pos = self._position(rows)
        if pos < 0 or pos >= len(rows) - 1:
            return False
        return self._goto(rows[pos + 1])

    def select_first(self) -> bool:
        return self._goto(self.rows()[0])

    def select_last(self) -> bool:
        return self._goto(self.rows()[-1])

    def page_up(self, count: int | None = None) -> bool:
        rows = self.rows()
        pos = self._position(rows)
        if pos <= 0:
            return False
        step = count if count is not None else self.page_size
        return self._goto(rows[max(0, pos - step)])

    def page_down(self, count: int | None = None) -> bool:
        rows = self.rows()
        pos = self._position(rows)
        if pos < 0 or pos >= len(rows) - 1:
            return False
        step = count if count is not None else self.page_size
        return self._goto(rows[min(len(rows) - 1, pos + step)])

    # -- Structural movement -----------------------------------------------

    def select_parent(self) -> bool:
        """Jump to the parent, regardless of its expand state."""
        if self.cursor == self.tree.root:
            return False
        parent = self.tree.parent_of(self.cursor)
        if parent is None:
            return False
        return self._goto(parent)

    def move_left(self) -> bool:
        return self.select_parent()

    def move_right(self) -> bool:
        """Expand the cursor node if needed and step to its first visible child."""
        node = self.tree.node(self.cursor)
        if not node.can_expand:
            return False
        expanded = self.tree.expand(self.cursor)
        rows = self.rows()
        pos = self._position(rows)
        if 0 <= pos < len(rows) - 1:
            nxt = rows[pos + 1]
            if self.tree.parent_of(nxt) == self.cursor:
                self.cursor = nxt
                return True
        return expanded

    def close_parent(self) -> bool:
        """Move to the parent and collapse it."""
        if self.cursor == self.tree.root:
            return False
        parent = self.tree.parent_of(self.cursor)
        if parent is None:
            return False
        self.tree.collapse(parent)
        self.cursor = parent
        return True

    def toggle(self) -> bool:
        changed = self.tree.toggle_expand(self.cursor)
        if changed:
            self.ensure_valid()
        return changed

    def select(self, node_id: int) -> bool:
        """Put the cursor on *node_id*, expanding collapsed ancestors."""
        if not self.tree.is_under_root(node_id):
            return False
        self.tree.expand_ancestors(node_id)
        if node_id not in self.rows():
            return False
        return self._goto(node_id)

    # -- Invariant ---------------------------------------------------------

    def ensure_valid(self) -> bool:
        """Reassign an invalid cursor to its nearest visible ancestor, else the root.

        Returns ``True`` if the cursor had to move.
        """
        visible = set(self.rows())
        if self.cursor in visible:
            return False
        previous = self.cursor
        if 0 <= self.cursor < len(self.tree):
            for ancestor in self.tree.ancestors(self.cursor):
                if ancestor in visible:
                    self.cursor = ancestor
                    break
            else:
                self.cursor = self.tree.root
        else:
            self.cursor = self.tree.root
        logger.debug("cursor %d invalid, moved to %d", previous, self.cursor)
        return True
