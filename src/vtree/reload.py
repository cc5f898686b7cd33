"""Live reload: file watching and reconciliation of a changed document."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from vtree.config import DEFAULT_MAX_DATA_SIZE
from vtree.formats import ParseError, parse
from vtree.navigation import Navigator
from vtree.tree import PathResolutionMiss, Tree

if TYPE_CHECKING:
    from vtree.viewer import Viewer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentChanged:
    data: bytes


@dataclass(frozen=True)
class Reconciled:
    tree: Tree
    cursor_resolved: bool


@dataclass(frozen=True)
class ReloadFailed:
    message: str


ReloadResult = Reconciled | ReloadFailed


def _match_nodes(old: Tree, new: Tree) -> dict[int, int]:
    """Map old ids to new ids whose label path is identical."""
    mapping = {old.document_root: new.document_root}
    stack = [(old.document_root, new.document_root)]
    while stack:
        old_id, new_id = stack.pop()
        by_label = {new.node(c).label: c for c in new.children_of(new_id)}
        for child in old.children_of(old_id):
            target = by_label.get(old.node(child).label)
            if target is not None:
                mapping[child] = target
                stack.append((child, target))
    return mapping


def _resolve(old: Tree, new: Tree, node_id: int) -> int | None:
    try:
        return new.resolve_path(old.path_of(node_id))
    except PathResolutionMiss as e:
        logger.debug("reload: %s", e)
        return None


def _rebase_roots(old: Tree, new: Tree) -> None:
    chain: list[int] = []
    for entry in old.root_history + [old.root]:
        target = _resolve(old, new, entry)
        if target is None or not new.node(target).is_composite:
            break
        chain.append(target)
    if chain:
        new.root = chain[-1]
        new.root_history = chain[:-1]


def reconcile(viewer: Viewer, data: bytes | str) -> ReloadResult:
    """Rebuild the viewer's tree from *data*, carrying state over by path.

    Nothing on *viewer* changes unless the whole rebuild succeeds.
    """
    try:
        value = parse(data, viewer.content_type)
    except ParseError as e:
        logger.warning("reload skipped: %s", e)
        return ReloadFailed(str(e))

    old = viewer.tree
    new = Tree(value, viewer.content_type)

    mapping = _match_nodes(old, new)
    for node in new.nodes:
        node.expanded = False
    for old_id, new_id in mapping.items():
        if old.node(old_id).expanded:
            target = new.node(new_id)
            target.expanded = target.can_expand

    _rebase_roots(old, new)

    nav = Navigator(new, viewer.nav.page_size)
    cursor = _resolve(old, new, viewer.nav.cursor)
    cursor_resolved = cursor is not None and new.is_under_root(cursor)
    nav.cursor = cursor if cursor_resolved else new.root

    state = viewer.filter.build(new, viewer.filter.state.query, cursor=nav.cursor)
    if state.visible is not None:
        nav.visible = state.visible.__contains__
    if nav.ensure_valid():
        cursor_resolved = False

    viewer.tree, viewer.nav, viewer.filter.state = new, nav, state
    logger.debug(
        "reloaded %d nodes, cursor %s", len(new), "kept" if cursor_resolved else "reset"
    )
    return Reconciled(new, cursor_resolved)


def drain_latest(events: queue.Queue) -> ContentChanged | None:
    """Return the newest pending event without blocking; older ones are dropped."""
    latest = None
    while True:
        try:
            latest = events.get_nowait()
        except queue.Empty:
            return latest


class FileWatcher(threading.Thread):
    """Poll a file's (mtime, size) signature and post ContentChanged events."""

    def __init__(
        self,
        path: str | Path,
        events: queue.Queue,
        interval: float = 0.5,
        max_data_size: int = DEFAULT_MAX_DATA_SIZE,
    ) -> None:
        super().__init__(name="vtree-watcher", daemon=True)
        self.path = Path(path)
        self.events = events
        self.interval = interval
        self.max_data_size = max_data_size
        self._halt = threading.Event()
        self._signature = self._stat()

    def _stat(self) -> tuple[int, int] | None:
        try:
            st = self.path.stat()
        except OSError:
            return None
        return st.st_mtime_ns, st.st_size

    def poll(self) -> bool:
        """Check the file once; return True if an event was posted."""
        signature = self._stat()
        if signature == self._signature:
            return False
        self._signature = signature
        if signature is None:
            logger.warning("watched file disappeared: %s", self.path)
            return False
        size = signature[1]
        if size > self.max_data_size:
            logger.warning(
                "skipping reload of %s: %d bytes exceeds %d", self.path, size, self.max_data_size
            )
            return False
        try:
            data = self.path.read_bytes()
        except OSError as e:
            logger.warning("cannot read %s: %s", self.path, e)
            return False
        self.events.put(ContentChanged(data))
        logger.debug("posted change of %s (%d bytes)", self.path, size)
        return True

    def run(self) -> None:
        while not self._halt.wait(self.interval):
            self.poll()

    def stop(self, timeout: float | None = 2.0) -> None:
        """Halt polling, wait for the thread to exit and drop pending events."""
        self._halt.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)
        drain_latest(self.events)
