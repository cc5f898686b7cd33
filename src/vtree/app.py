"""Terminal tree viewer application and command line entry point."""

from __future__ import annotations

import argparse
import logging
import queue
import sys
from pathlib import Path

from rich.syntax import Syntax
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import Header, Static

from vtree.config import ViewerConfig
from vtree.filter import FilterMode
from vtree.formats import ContentType, ParseError, detect_content_type
from vtree.reload import FileWatcher, ReloadFailed, drain_latest
from vtree.viewer import Viewer
from vtree.widget import TreeView

logger = logging.getLogger(__name__)

# rich Syntax lexer 이름
_LEXERS = {
    ContentType.JSON: "json",
    ContentType.JSONL: "json",
    ContentType.YAML: "yaml",
    ContentType.TOML: "json",
    ContentType.XML: "json",
    ContentType.HCL: "json",
}


class TreeViewerApp(App):
    """TUI app that wraps the TreeView widget."""

    CSS = """
    #tree {
        width: 1fr;
    }
    #data {
        width: 1fr;
        border-left: solid $primary;
        padding: 0 1;
    }
    #data.hidden {
        display: none;
    }
    #footer {
        height: 1;
        background: $panel;
        padding: 0 1;
    }
    """
    TITLE = "vtree"
    BINDINGS = []
    ENABLE_COMMAND_PALETTE = False

    def __init__(
        self,
        viewer: Viewer,
        file_path: str = "",
        config: ViewerConfig | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.viewer = viewer
        self.file_path = file_path
        self.config = config or viewer.config
        self._events: queue.Queue = queue.Queue()
        self._watcher: FileWatcher | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal():
            yield TreeView(self.viewer, id="tree")
            yield Static("", id="data", classes="" if self.config.show_data else "hidden")
        yield Static("", id="footer")

    def on_mount(self) -> None:
        self.sub_title = self.file_path
        self.query_one("#tree").focus()
        self._update_panels()
        if self.config.live_reload and self.file_path:
            self._watcher = FileWatcher(
                self.file_path,
                self._events,
                interval=self.config.reload_interval,
                max_data_size=self.config.max_data_size,
            )
            self._watcher.start()
            self.set_interval(self.config.reload_interval, self._drain_reload)
            logger.debug("watching %s", self.file_path)

    def on_unmount(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()

    def _update_panels(self) -> None:
        viewer = self.viewer
        footer = f"{viewer.root_path_text()} > {viewer.path_text()}"
        self.query_one("#footer", Static).update(footer)
        if self.config.show_data:
            lexer = _LEXERS[viewer.content_type]
            self.query_one("#data", Static).update(
                Syntax(viewer.value_text(), lexer, word_wrap=True, background_color="default")
            )

    def _drain_reload(self) -> None:
        event = drain_latest(self._events)
        if event is None:
            return
        tree_view = self.query_one("#tree", TreeView)
        result = tree_view.reload(event.data)
        if isinstance(result, ReloadFailed):
            self.notify(f"Reload failed: {result.message}", severity="warning", timeout=6)
            return
        self._update_panels()
        if not result.cursor_resolved:
            self.notify("Reloaded; cursor position was reset", severity="information")

    # -- Event handlers ----------------------------------------------------

    def on_tree_view_cursor_moved(self, event: TreeView.CursorMoved) -> None:
        self._update_panels()

    def on_tree_view_copy_requested(self, event: TreeView.CopyRequested) -> None:
        self.copy_to_clipboard(event.text)
        self.notify(f"Copied {event.what}", severity="information")

    def on_tree_view_quit(self, event: TreeView.Quit) -> None:
        self.exit()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vtree",
        description="Browse JSON, JSONL, YAML, TOML, XML and HCL documents as a tree",
    )
    parser.add_argument("file", help="document to open")
    parser.add_argument(
        "-t", "--type",
        choices=[ct.value for ct in ContentType],
        default=None,
        help="content type (default: inferred from the file extension)",
    )
    parser.add_argument(
        "--live-reload",
        action="store_true",
        default=False,
        help="reload the document when the file changes",
    )
    parser.add_argument(
        "--reload-interval",
        type=float,
        default=None,
        help="seconds between file checks when live reload is on",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=None,
        help="rows moved by page up/down",
    )
    parser.add_argument(
        "--filter-mode",
        choices=[m.value for m in FilterMode],
        default=None,
        help="what filters match against by default",
    )
    parser.add_argument(
        "-i", "--ignore-case",
        action="store_true",
        default=False,
        help="filter case-insensitively by default",
    )
    parser.add_argument(
        "--no-data",
        action="store_true",
        default=False,
        help="hide the value panel",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="write debug logs to this file",
    )
    return parser


def main() -> None:
    args = _build_parser().parse_args()

    if args.log_file:
        logging.basicConfig(
            filename=args.log_file,
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    try:
        config = ViewerConfig.from_args(args)
    except ValueError as exc:
        print(f"vtree: {exc}", file=sys.stderr)
        sys.exit(2)

    path = Path(args.file)
    if args.type:
        content_type = ContentType(args.type)
    else:
        content_type = detect_content_type(args.file)

    try:
        size = path.stat().st_size
        if size > config.max_data_size:
            print(
                f"vtree: {args.file} is too large ({size} bytes, limit {config.max_data_size})",
                file=sys.stderr,
            )
            sys.exit(1)
        data = path.read_bytes()
    except OSError as exc:
        print(f"vtree: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        viewer = Viewer.from_bytes(data, content_type, config)
    except ParseError as exc:
        print(f"vtree: {exc}", file=sys.stderr)
        sys.exit(1)

    logger.debug("opened %s as %s", args.file, viewer.content_type.value)
    app = TreeViewerApp(viewer, file_path=args.file, config=config)
    app.run()


if __name__ == "__main__":
    main()
