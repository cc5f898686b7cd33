"""Tree model: an arena of nodes built from a canonical value."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from vtree.formats import ContentType, dump

logger = logging.getLogger(__name__)

ROOT_LABEL = "root"


class FieldType(Enum):
    NULL = "null"
    NUM = "num"
    BOOL = "bool"
    STR = "str"
    OBJ = "obj"
    ARR = "arr"

    @classmethod
    def of(cls, value: object) -> FieldType:
        if value is None:
            return cls.NULL
        # bool은 int의 서브클래스이므로 먼저 검사
        if isinstance(value, bool):
            return cls.BOOL
        if isinstance(value, (int, float)):
            return cls.NUM
        if isinstance(value, dict):
            return cls.OBJ
        if isinstance(value, list):
            return cls.ARR
        return cls.STR

    @property
    def is_composite(self) -> bool:
        return self in (FieldType.OBJ, FieldType.ARR)


class RootOnLeafError(Exception):
    """change_root was asked to root the view on a primitive node."""

    def __init__(self, node_id: int, label: str) -> None:
        super().__init__(f"Cannot change root to leaf '{label}'")
        self.node_id = node_id
        self.label = label


class PathResolutionMiss(LookupError):
    """A label path does not exist in the tree."""

    def __init__(self, path: list[str], step: int) -> None:
        super().__init__(f"path /{'/'.join(path)} missing at step {step}")
        self.path = path
        self.step = step


def format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return str(value)


@dataclass
class Node:
    """One row-able element of the document.

    ``parent`` and ``children`` are arena ids, never node references.
    """

    id: int
    label: str
    value: object
    field_type: FieldType
    parent: int | None
    depth: int
    children: list[int] = field(default_factory=list)
    expanded: bool = False

    @property
    def is_composite(self) -> bool:
        return self.field_type.is_composite

    @property
    def can_expand(self) -> bool:
        return self.is_composite and bool(self.children)

    @property
    def value_text(self) -> str:
        """Primitive value as text (empty for composites)."""
        ft = self.field_type
        if ft is FieldType.STR:
            return self.value
        if ft is FieldType.NUM:
            return format_number(self.value)
        if ft is FieldType.BOOL:
            return "true" if self.value else "false"
        if ft is FieldType.NULL:
            return "null"
        return ""

    @property
    def description(self) -> str:
        ft = self.field_type
        if ft is FieldType.NULL:
            return "null"
        if ft is FieldType.STR:
            return "= " + json.dumps(self.value, ensure_ascii=False)
        if ft is FieldType.ARR:
            n = len(self.children)
            return f"[ {n} {'items' if n > 1 else 'item'} ]"
        if ft is FieldType.OBJ:
            n = len(self.children)
            return f"{{ {n} {'fields' if n > 1 else 'field'} }}"
        return "= " + self.value_text


class Tree:
    """Node arena with expand state and a re-rootable view.

    Node ids are assigned in document pre-order, so comparing ids compares
    document positions.
    """

    def __init__(self, value: object, content_type: ContentType | None = None) -> None:
        self.content_type = content_type
        self.nodes: list[Node] = []
        self.document_root: int = self._build(value)
        self.root: int = self.document_root
        self.root_history: list[int] = []
        logger.debug("built tree with %d nodes", len(self.nodes))

    def _build(self, value: object) -> int:
        nodes = self.nodes
        # (label, value, parent_id, depth)
        stack: list[tuple[str, object, int | None, int]] = [(ROOT_LABEL, value, None, 0)]
        while stack:
            label, val, parent, depth = stack.pop()
            node = Node(
                id=len(nodes),
                label=label,
                value=val,
                field_type=FieldType.of(val),
                parent=parent,
                depth=depth,
            )
            nodes.append(node)
            if parent is not None:
                nodes[parent].children.append(node.id)
            if isinstance(val, dict):
                items = [(str(k), v) for k, v in val.items()]
            elif isinstance(val, list):
                items = [(str(i), v) for i, v in enumerate(val)]
            else:
                continue
            for child_label, child_value in reversed(items):
                stack.append((child_label, child_value, node.id, depth + 1))
        nodes[0].expanded = nodes[0].can_expand
        return 0

    # -- Lookup ------------------------------------------------------------

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, node_id: int) -> Node:
        return self.nodes[node_id]

    def children_of(self, node_id: int) -> list[int]:
        return list(self.nodes[node_id].children)

    def parent_of(self, node_id: int) -> int | None:
        return self.nodes[node_id].parent

    def ancestors(self, node_id: int, stop: int | None = None) -> list[int]:
        """Ancestors of *node_id*, nearest first, ending at *stop* or the document root."""
        result: list[int] = []
        parent = self.nodes[node_id].parent
        while parent is not None:
            result.append(parent)
            if parent == stop:
                break
            parent = self.nodes[parent].parent
        return result

    def is_descendant(self, node_id: int, ancestor: int) -> bool:
        """True if *node_id* is *ancestor* or lies in its subtree."""
        if node_id == ancestor:
            return True
        return ancestor in self.ancestors(node_id, stop=ancestor)

    def is_under_root(self, node_id: int) -> bool:
        return self.is_descendant(node_id, self.root)

    def walk(self, start: int | None = None) -> Iterator[int]:
        """Pre-order ids of the subtree at *start* (default: active root)."""
        stack = [self.root if start is None else start]
        nodes = self.nodes
        while stack:
            node_id = stack.pop()
            yield node_id
            stack.extend(reversed(nodes[node_id].children))

    def visible_ids(self, predicate: Callable[[int], bool] | None = None) -> list[int]:
        """Flattened visible rows under the active root, root row first.

        Children of collapsed nodes are skipped, as are nodes (and their
        subtrees) rejected by *predicate*.
        """
        nodes = self.nodes
        rows: list[int] = []
        stack = [self.root]
        while stack:
            node_id = stack.pop()
            if predicate is not None and node_id != self.root and not predicate(node_id):
                continue
            rows.append(node_id)
            node = nodes[node_id]
            if node.expanded:
                stack.extend(reversed(node.children))
        return rows

    def depth_of(self, node_id: int) -> int:
        """Depth relative to the active root."""
        return self.nodes[node_id].depth - self.nodes[self.root].depth

    # -- Paths -------------------------------------------------------------

    def path_of(self, node_id: int) -> list[str]:
        """Labels from the document root down to *node_id* (root excluded)."""
        labels: list[str] = []
        node = self.nodes[node_id]
        while node.parent is not None:
            labels.append(node.label)
            node = self.nodes[node.parent]
        labels.reverse()
        return labels

    def resolve_path(self, path: list[str]) -> int:
        """Walk *path* from the document root; raise PathResolutionMiss on a miss."""
        current = self.document_root
        for step, label in enumerate(path):
            for child in self.nodes[current].children:
                if self.nodes[child].label == label:
                    current = child
                    break
            else:
                raise PathResolutionMiss(path, step)
        return current

    def path_text(self, node_id: int) -> str:
        return "/" + "/".join(self.path_of(node_id))

    # -- Expand state ------------------------------------------------------

    def toggle_expand(self, node_id: int) -> bool:
        node = self.nodes[node_id]
        if not node.can_expand:
            return False
        node.expanded = not node.expanded
        return True

    def expand(self, node_id: int) -> bool:
        node = self.nodes[node_id]
        if not node.can_expand or node.expanded:
            return False
        node.expanded = True
        return True

    def collapse(self, node_id: int) -> bool:
        node = self.nodes[node_id]
        if not node.expanded:
            return False
        node.expanded = False
        return True

    def expand_all(self) -> None:
        for node_id in self.walk():
            node = self.nodes[node_id]
            node.expanded = node.can_expand

    def collapse_all(self) -> None:
        """Collapse every node under the active root except the root itself."""
        for node_id in self.walk():
            self.nodes[node_id].expanded = False
        root = self.nodes[self.root]
        root.expanded = root.can_expand

    def expand_ancestors(self, node_id: int) -> None:
        """Expand collapsed ancestors up to the active root."""
        for parent in self.ancestors(node_id, stop=self.root):
            self.nodes[parent].expanded = True

    # -- Root switching ----------------------------------------------------

    def change_root(self, node_id: int) -> bool:
        """Make *node_id* the active root, remembering the previous one."""
        node = self.nodes[node_id]
        if not node.is_composite:
            raise RootOnLeafError(node_id, node.label)
        if node_id == self.root:
            return False
        self.root_history.append(self.root)
        self.root = node_id
        node.expanded = node.can_expand
        logger.debug("root changed to %s", self.path_text(node_id))
        return True

    def reset(self) -> bool:
        """Drop the whole root history and return to the document root."""
        if self.root == self.document_root and not self.root_history:
            return False
        self.root_history.clear()
        self.root = self.document_root
        return True

    # -- Text payloads -----------------------------------------------------

    def name_text(self, node_id: int) -> str:
        return self.nodes[node_id].label

    def value_text(self, node_id: int) -> str:
        node = self.nodes[node_id]
        if not node.is_composite:
            return node.value_text
        return dump(node.value, self.content_type)
