"""Tests for the navigation engine."""

from vtree.navigation import Navigator
from vtree.tree import Tree

SAMPLE = {
    "a": {"a1": 1, "a2": {"deep": True}},
    "b": [10, 20, 30],
    "c": "text",
    "empty": {},
}


def _make(value=None, page_size=10):
    tree = Tree(SAMPLE if value is None else value)
    return tree, Navigator(tree, page_size=page_size)


def _id(tree, *path):
    return tree.resolve_path(list(path))


class TestVerticalMovement:
    def test_move_down_over_visible_rows(self):
        tree, nav = _make()
        seen = [nav.cursor]
        while nav.move_down():
            seen.append(nav.cursor)
        assert [tree.node(i).label for i in seen] == ["root", "a", "b", "c", "empty"]

    def test_move_skips_collapsed_children(self):
        tree, nav = _make()
        tree.toggle_expand(_id(tree, "a"))
        nav.cursor = _id(tree, "a")
        nav.move_down()
        assert nav.cursor == _id(tree, "a", "a1")
        nav.move_down()
        nav.move_down()
        # a2 is collapsed, so deep is skipped
        assert nav.cursor == _id(tree, "b")

    def test_boundaries_are_noops(self):
        tree, nav = _make()
        assert nav.move_up() is False
        assert nav.cursor == tree.root
        nav.select_last()
        assert nav.move_down() is False
        assert nav.cursor == _id(tree, "empty")

    def test_first_last(self):
        tree, nav = _make()
        assert nav.select_last() is True
        assert nav.select_last() is False
        assert nav.select_first() is True
        assert nav.cursor == tree.root


class TestPaging:
    def test_page_down_clamps(self):
        tree, nav = _make(page_size=3)
        tree.expand_all()
        assert nav.page_down() is True
        assert nav.cursor == nav.rows()[3]
        while nav.page_down():
            pass
        assert nav.cursor == nav.rows()[-1]

    def test_page_up_clamps(self):
        tree, nav = _make(page_size=3)
        tree.expand_all()
        nav.select_last()
        assert nav.page_up(count=100) is True
        assert nav.cursor == tree.root
        assert nav.page_up() is False


class TestStructuralMovement:
    def test_move_right_expands_and_steps_in(self):
        tree, nav = _make()
        nav.cursor = _id(tree, "b")
        assert nav.move_right() is True
        assert tree.node(_id(tree, "b")).expanded is True
        assert nav.cursor == _id(tree, "b", "0")

    def test_move_right_on_leaf_and_empty_noop(self):
        tree, nav = _make()
        for path in (["c"], ["empty"]):
            nav.cursor = tree.resolve_path(path)
            assert nav.move_right() is False
            assert nav.cursor == tree.resolve_path(path)

    def test_move_left_goes_to_parent(self):
        tree, nav = _make()
        nav.select(_id(tree, "a", "a2", "deep"))
        assert nav.move_left() is True
        assert nav.cursor == _id(tree, "a", "a2")

    def test_select_parent_at_root_noop(self):
        tree, nav = _make()
        assert nav.select_parent() is False
        assert nav.move_left() is False

    def test_select_parent_stops_at_active_root(self):
        tree, nav = _make()
        tree.change_root(_id(tree, "a"))
        nav.cursor = tree.root
        assert nav.select_parent() is False

    def test_close_parent(self):
        tree, nav = _make()
        nav.select(_id(tree, "b", "1"))
        assert nav.close_parent() is True
        assert nav.cursor == _id(tree, "b")
        assert tree.node(_id(tree, "b")).expanded is False

    def test_select_expands_ancestors(self):
        tree, nav = _make()
        deep = _id(tree, "a", "a2", "deep")
        assert nav.select(deep) is True
        assert nav.cursor == deep
        assert deep in nav.rows()

    def test_select_outside_root_rejected(self):
        tree, nav = _make()
        tree.change_root(_id(tree, "a"))
        nav.cursor = tree.root
        assert nav.select(_id(tree, "c")) is False
        assert nav.cursor == _id(tree, "a")


class TestEnsureValid:
    def test_collapse_moves_cursor_to_ancestor(self):
        tree, nav = _make()
        deep = _id(tree, "a", "a2", "deep")
        nav.select(deep)
        tree.collapse(_id(tree, "a"))
        assert nav.ensure_valid() is True
        assert nav.cursor == _id(tree, "a")

    def test_reroot_outside_cursor_falls_back_to_root(self):
        tree, nav = _make()
        nav.cursor = _id(tree, "c")
        tree.change_root(_id(tree, "b"))
        nav.ensure_valid()
        assert nav.cursor == _id(tree, "b")

    def test_predicate_hides_cursor(self):
        tree, nav = _make()
        tree.expand_all()
        a1 = _id(tree, "a", "a1")
        nav.cursor = a1
        hidden = {a1}
        nav.visible = lambda i: i not in hidden
        nav.ensure_valid()
        assert nav.cursor == _id(tree, "a")

    def test_valid_cursor_untouched(self):
        tree, nav = _make()
        assert nav.ensure_valid() is False

    def test_toggle_keeps_cursor_valid(self):
        tree, nav = _make()
        assert nav.toggle() is True
        assert nav.rows() == [tree.root]
        assert nav.cursor == tree.root
