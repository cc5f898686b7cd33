"""Tree view widget: renders Viewer rows and maps keys to viewer actions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from rich.text import Text
from textual import events
from textual.message import Message
from textual.widget import Widget

from vtree.filter import split_flags
from vtree.reload import ReloadResult
from vtree.tree import FieldType
from vtree.viewer import Row, Viewer


class ViewMode(Enum):
    NORMAL = auto()
    FILTER = auto()


class TreeView(Widget, can_focus=True):
    """Keyboard driven tree browser.

    Keys:
      j k h l / arrows   move          enter space  toggle
      p  parent   g G  first/last      backspace    close parent
      r  re-root  esc  reset root      zR zM za     expand/collapse
      /  filter   n N  next/prev       y Y          copy name/value
      q  quit
    """

    DEFAULT_CSS = """
    TreeView {
        height: 1fr;
        background: $surface;
        padding: 0 1;
    }
    """

    # -- Messages ----------------------------------------------------------

    @dataclass
    class CursorMoved(Message):
        node_id: int

    @dataclass
    class CopyRequested(Message):
        text: str
        what: str  # "name" | "value"

    @dataclass
    class Quit(Message):
        pass

    # -- Init --------------------------------------------------------------

    def __init__(
        self,
        viewer: Viewer,
        *,
        name: str | None = None,
        id: str | None = None,
        classes: str | None = None,
    ) -> None:
        super().__init__(name=name, id=id, classes=classes)
        self.viewer = viewer
        self._mode: ViewMode = ViewMode.NORMAL
        self.pending: str = ""
        self._scroll_top: int = 0
        self._filter_buffer: str = ""
        self._filter_history: list[str] = []
        self._filter_history_idx: int = -1
        self._filter_history_max: int = 50

    @property
    def status_msg(self) -> str:
        return self.viewer.status_msg

    @status_msg.setter
    def status_msg(self, value: str) -> None:
        self.viewer.status_msg = value

    def reload(self, data: bytes) -> ReloadResult:
        result = self.viewer.reload(data)
        self.refresh()
        return result

    # -- Rendering ---------------------------------------------------------

    _TYPE_STYLE = {
        FieldType.STR: "green",
        FieldType.NUM: "yellow",
        FieldType.BOOL: "magenta",
        FieldType.NULL: "magenta",
        FieldType.OBJ: "dim",
        FieldType.ARR: "dim",
    }
    _MODE_STYLE = {
        ViewMode.NORMAL: "bold white on dark_green",
        ViewMode.FILTER: "bold white on dark_magenta",
    }
    _MATCH_STYLE = "black on yellow"
    _CURRENT_MATCH_STYLE = "bold black on dark_orange"
    _CURSOR_STYLE = "on grey30"

    def _visible_height(self) -> int:
        return max(1, self.content_region.height - 2)

    def _ensure_cursor_visible(self, height: int) -> None:
        pos = self.viewer.cursor_row()
        if pos < self._scroll_top:
            self._scroll_top = pos
        elif pos >= self._scroll_top + height:
            self._scroll_top = pos - height + 1

    def _value_part(self, row: Row) -> tuple[str, int]:
        """Rendered value text and the offset of the raw value inside it."""
        if row.field_type is FieldType.STR and row.value_spans:
            raw = self.viewer.tree.node(row.node_id).value_text
            # 줄바꿈/탭은 한 칸 공백으로 바꿔 span 위치를 유지
            flat = raw.replace("\n", " ").replace("\t", " ")
            return f'= "{flat}"', 3
        if row.field_type is FieldType.STR:
            return row.description, 0
        if row.field_type is FieldType.NULL:
            return row.description, 0
        return row.description, 2

    def render_row(self, row: Row) -> Text:
        line = Text(no_wrap=True, overflow="ellipsis")
        line.append("  " * row.depth)
        if row.expanded is None:
            line.append("  ")
        else:
            line.append("▾ " if row.expanded else "▸ ", style="bold")

        span_style = self._CURRENT_MATCH_STYLE if row.is_current_match else self._MATCH_STYLE
        start = len(line)
        line.append(row.label, style="bold cyan")
        for s, e in row.label_spans:
            line.stylize(span_style, start + s, start + e)

        line.append(" ")
        value, offset = self._value_part(row)
        start = len(line)
        line.append(value, style=self._TYPE_STYLE[row.field_type])
        for s, e in row.value_spans:
            line.stylize(span_style, start + offset + s, start + offset + e)

        if row.is_cursor:
            line.stylize(self._CURSOR_STYLE)
        return line

    def render(self) -> Text:
        width = self.content_region.width
        height = self._visible_height()
        self._ensure_cursor_visible(height)

        rows = self.viewer.rows()
        result = Text()
        shown = rows[self._scroll_top : self._scroll_top + height]
        for row in shown:
            line = self.render_row(row)
            line.truncate(width, overflow="ellipsis")
            result.append_text(line)
            result.append("\n")
        for _ in range(height - len(shown)):
            result.append("~\n", style="dim blue")

        # status bar
        mode = self._mode
        mode_label = f" {mode.name} "
        result.append(mode_label, style=self._MODE_STYLE[mode])
        state = self.viewer.filter.state
        flags = ""
        if state.active:
            flags = " EXCLUDE " if state.exclude else " HIGHLIGHT "
            result.append(flags, style="bold white on grey37")
        if self.pending:
            result.append(f"  {self.pending}", style="bold yellow")

        status_msg = self.status_msg
        pos = f" {self.viewer.cursor_row() + 1}/{len(rows)} "
        spacer_len = max(0, width - len(mode_label) - len(flags) - len(pos) - len(status_msg) - 4)
        result.append(f"  {status_msg}")
        if spacer_len:
            result.append(" " * spacer_len)
        result.append(pos, style="bold")

        if mode == ViewMode.FILTER:
            result.append(f"\n/{self._filter_buffer}", style="bold magenta")
            result.append(" ", style="reverse")
        else:
            result.append("\n")
        return result

    # =====================================================================
    # Key handling
    # =====================================================================

    def on_key(self, event: events.Key) -> None:
        event.prevent_default()
        event.stop()

        before = self.viewer.cursor
        if self._mode == ViewMode.NORMAL:
            self._handle_normal(event)
        elif self._mode == ViewMode.FILTER:
            self._handle_filter(event)

        if self.viewer.cursor != before:
            self.post_message(self.CursorMoved(self.viewer.cursor))
        self.refresh()

    # -- NORMAL ------------------------------------------------------------

    def _handle_normal(self, event) -> None:
        key = event.key
        char = event.character or ""
        viewer = self.viewer

        if self.pending:
            self._handle_pending(char, key)
            return

        self.status_msg = ""

        if key in ("j", "down"):
            viewer.move_down()
        elif key in ("k", "up"):
            viewer.move_up()
        elif key in ("h", "left"):
            viewer.move_left()
        elif key in ("l", "right"):
            viewer.move_right()
        elif key in ("enter", "space"):
            viewer.toggle()
        elif key in ("pageup", "ctrl+y"):
            viewer.page_up()
        elif key in ("pagedown", "ctrl+e"):
            viewer.page_down()
        elif key == "backspace":
            viewer.close_parent()
        elif key == "escape":
            # root가 이미 문서 root면 filter 해제
            if not viewer.reset_root():
                viewer.clear_filter()
        elif key == "ctrl+c":
            self.post_message(self.Quit())
        elif char == "p":
            viewer.select_parent()
        elif char == "g":
            viewer.select_first()
        elif char == "G":
            viewer.select_last()
        elif char == "r":
            viewer.change_root()
        elif char == "n":
            viewer.next_match()
        elif char == "N":
            viewer.prev_match()
        elif char == "z":
            self.pending = "z"
        elif char == "/":
            self._mode = ViewMode.FILTER
            self._filter_buffer = ""
            self._filter_history_idx = -1
        elif char == "y":
            self.post_message(self.CopyRequested(viewer.name_text(), "name"))
        elif char == "Y":
            self.post_message(self.CopyRequested(viewer.value_text(), "value"))
        elif char == "q":
            self.post_message(self.Quit())

    def _handle_pending(self, char: str, key: str) -> None:
        combo = self.pending + char
        self.pending = ""
        if key == "escape" or not char:
            return
        if combo == "zR":
            self.viewer.expand_all()
        elif combo == "zM":
            self.viewer.collapse_all()
        elif combo == "za":
            self.viewer.toggle()
        else:
            self.status_msg = f"Unknown command: {combo}"

    # -- FILTER ------------------------------------------------------------

    def _handle_filter(self, event) -> None:
        key = event.key
        char = event.character

        if key == "escape":
            self._mode = ViewMode.NORMAL
            self._filter_buffer = ""
            self._filter_history_idx = -1
            return

        if key == "enter":
            self._add_to_filter_history(self._filter_buffer)
            self._execute_filter()
            self._mode = ViewMode.NORMAL
            self._filter_history_idx = -1
            return

        if key == "backspace":
            if self._filter_buffer:
                self._filter_buffer = self._filter_buffer[:-1]
                self._filter_history_idx = -1
            else:
                self._mode = ViewMode.NORMAL
                self._filter_history_idx = -1
            return

        if key == "up":
            self._filter_history_prev()
            return
        if key == "down":
            self._filter_history_next()
            return

        if char and char.isprintable():
            self._filter_buffer += char
            self._filter_history_idx = -1

    def _execute_filter(self) -> None:
        query, options = split_flags(self._filter_buffer)
        if not query:
            self.viewer.clear_filter()
            return
        config = self.viewer.config
        self.viewer.apply_filter(
            query,
            mode=options.get("mode", config.filter_mode),
            ignore_case=options.get("ignore_case", config.ignore_case),
            regex=options.get("regex", False),
            exclude=options.get("exclude", False),
        )

    def _add_to_filter_history(self, query: str) -> None:
        """Add query to filter history, avoiding duplicates."""
        if not query:
            return
        if query in self._filter_history:
            self._filter_history.remove(query)
        self._filter_history.insert(0, query)
        if len(self._filter_history) > self._filter_history_max:
            self._filter_history.pop()

    def _filter_history_prev(self) -> None:
        if not self._filter_history:
            return
        if self._filter_history_idx < len(self._filter_history) - 1:
            self._filter_history_idx += 1
            self._filter_buffer = self._filter_history[self._filter_history_idx]

    def _filter_history_next(self) -> None:
        if self._filter_history_idx > 0:
            self._filter_history_idx -= 1
            self._filter_buffer = self._filter_history[self._filter_history_idx]
        elif self._filter_history_idx == 0:
            self._filter_history_idx = -1
            self._filter_buffer = ""
