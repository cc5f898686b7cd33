"""Tests for the tree model."""

import pytest

from vtree.formats import ContentType
from vtree.tree import FieldType, PathResolutionMiss, RootOnLeafError, Tree

SAMPLE = {
    "name": "vtree",
    "version": 1.5,
    "tags": ["a", "b", "c"],
    "owner": {"login": "kim", "admin": True, "team": None},
    "empty_obj": {},
    "empty_arr": [],
}


def _id(tree, *path):
    return tree.resolve_path(list(path))


class TestBuild:
    """Arena construction."""

    def test_root_node(self):
        tree = Tree(SAMPLE)
        root = tree.node(tree.root)
        assert root.label == "root"
        assert root.parent is None
        assert root.expanded is True
        assert root.field_type is FieldType.OBJ

    def test_children_in_source_order(self):
        tree = Tree(SAMPLE)
        labels = [tree.node(c).label for c in tree.children_of(tree.root)]
        assert labels == ["name", "version", "tags", "owner", "empty_obj", "empty_arr"]
        tags = _id(tree, "tags")
        assert [tree.node(c).label for c in tree.children_of(tags)] == ["0", "1", "2"]

    def test_ids_are_preorder(self):
        tree = Tree(SAMPLE)
        assert list(tree.walk()) == list(range(len(tree)))

    def test_single_parent(self):
        tree = Tree(SAMPLE)
        for node in tree.nodes:
            for child in node.children:
                assert tree.parent_of(child) == node.id
        assert sum(1 for n in tree.nodes if n.parent is None) == 1

    def test_composites_start_collapsed(self):
        tree = Tree(SAMPLE)
        assert tree.node(_id(tree, "owner")).expanded is False
        assert tree.node(_id(tree, "tags")).expanded is False

    def test_field_types(self):
        tree = Tree(SAMPLE)
        assert tree.node(_id(tree, "name")).field_type is FieldType.STR
        assert tree.node(_id(tree, "version")).field_type is FieldType.NUM
        assert tree.node(_id(tree, "owner", "admin")).field_type is FieldType.BOOL
        assert tree.node(_id(tree, "owner", "team")).field_type is FieldType.NULL

    def test_empty_composites_have_no_children(self):
        tree = Tree(SAMPLE)
        assert tree.children_of(_id(tree, "empty_obj")) == []
        assert tree.children_of(_id(tree, "empty_arr")) == []
        assert tree.children_of(_id(tree, "name")) == []

    def test_deep_nesting_builds_without_recursion(self):
        value = current = {}
        for _ in range(5000):
            current["x"] = {}
            current = current["x"]
        tree = Tree(value)
        assert len(tree) == 5001
        assert tree.node(5000).depth == 5000

    def test_primitive_document(self):
        tree = Tree(42)
        assert len(tree) == 1
        assert tree.visible_ids() == [0]


class TestExpand:
    def test_toggle(self):
        tree = Tree(SAMPLE)
        owner = _id(tree, "owner")
        assert tree.toggle_expand(owner) is True
        assert tree.node(owner).expanded is True
        assert tree.toggle_expand(owner) is True
        assert tree.node(owner).expanded is False

    def test_toggle_empty_and_primitive_noop(self):
        tree = Tree(SAMPLE)
        for path in (["empty_obj"], ["empty_arr"], ["name"]):
            node_id = tree.resolve_path(path)
            assert tree.toggle_expand(node_id) is False
            assert tree.node(node_id).expanded is False

    def test_expand_all_collapse_all(self):
        tree = Tree(SAMPLE)
        tree.expand_all()
        assert len(tree.visible_ids()) == len(tree)
        tree.collapse_all()
        assert tree.node(tree.root).expanded is True
        assert tree.visible_ids() == [tree.root] + tree.children_of(tree.root)

    def test_expand_ancestors(self):
        tree = Tree({"a": {"b": {"c": 1}}})
        c = _id(tree, "a", "b", "c")
        assert c not in tree.visible_ids()
        tree.expand_ancestors(c)
        assert c in tree.visible_ids()


class TestVisible:
    def test_collapsed_children_hidden(self):
        tree = Tree(SAMPLE)
        labels = [tree.node(i).label for i in tree.visible_ids()]
        assert labels == ["root", "name", "version", "tags", "owner", "empty_obj", "empty_arr"]

    def test_predicate_skips_subtree(self):
        tree = Tree(SAMPLE)
        tree.expand_all()
        owner = _id(tree, "owner")
        rows = tree.visible_ids(lambda i: i != owner)
        assert owner not in rows
        assert _id(tree, "owner", "login") not in rows


class TestRoot:
    """change_root / reset."""

    def test_change_root(self):
        tree = Tree(SAMPLE)
        owner = _id(tree, "owner")
        assert tree.change_root(owner) is True
        assert tree.root == owner
        assert tree.root_history == [tree.document_root]
        assert tree.visible_ids()[0] == owner
        assert tree.depth_of(_id(tree, "owner", "login")) == 1

    def test_change_root_on_leaf_raises(self):
        tree = Tree(SAMPLE)
        with pytest.raises(RootOnLeafError):
            tree.change_root(_id(tree, "name"))
        assert tree.root == tree.document_root
        assert tree.root_history == []

    def test_change_root_on_current_root_noop(self):
        tree = Tree(SAMPLE)
        assert tree.change_root(tree.root) is False
        assert tree.root_history == []

    def test_reset_restores_document_root(self):
        tree = Tree({"a": {"b": {"c": [1]}}})
        tree.change_root(_id(tree, "a"))
        tree.change_root(_id(tree, "a", "b"))
        tree.change_root(_id(tree, "a", "b", "c"))
        assert len(tree.root_history) == 3
        assert tree.reset() is True
        assert tree.root == tree.document_root
        assert tree.root_history == []
        assert tree.reset() is False

    def test_paths_stay_absolute_after_reroot(self):
        tree = Tree(SAMPLE)
        tree.change_root(_id(tree, "owner"))
        login = _id(tree, "owner", "login")
        assert tree.path_of(login) == ["owner", "login"]
        assert tree.is_under_root(login)
        assert not tree.is_under_root(_id(tree, "name"))


class TestPaths:
    def test_path_roundtrip(self):
        tree = Tree(SAMPLE)
        for node_id in tree.walk():
            assert tree.resolve_path(tree.path_of(node_id)) == node_id

    def test_resolve_miss(self):
        tree = Tree(SAMPLE)
        with pytest.raises(PathResolutionMiss) as exc:
            tree.resolve_path(["owner", "missing", "x"])
        assert exc.value.step == 1

    def test_path_text(self):
        tree = Tree(SAMPLE)
        assert tree.path_text(_id(tree, "tags", "2")) == "/tags/2"
        assert tree.path_text(tree.root) == "/"


class TestText:
    def test_descriptions(self):
        tree = Tree(SAMPLE)
        assert tree.node(_id(tree, "name")).description == '= "vtree"'
        assert tree.node(_id(tree, "version")).description == "= 1.5"
        assert tree.node(_id(tree, "tags")).description == "[ 3 items ]"
        assert tree.node(_id(tree, "owner")).description == "{ 3 fields }"
        assert tree.node(_id(tree, "owner", "admin")).description == "= true"
        assert tree.node(_id(tree, "owner", "team")).description == "null"
        assert tree.node(_id(tree, "empty_arr")).description == "[ 0 item ]"

    def test_value_text(self):
        tree = Tree({"n": 3.0, "s": "x", "o": {"k": 1}})
        assert tree.value_text(_id(tree, "n")) == "3"
        assert tree.value_text(_id(tree, "s")) == "x"
        assert tree.value_text(_id(tree, "o")) == '{\n    "k": 1\n}'
        assert tree.name_text(_id(tree, "o")) == "o"

    def test_value_text_yaml(self):
        tree = Tree({"o": {"k": [1, 2]}}, ContentType.YAML)
        assert tree.value_text(_id(tree, "o")) == "k:\n- 1\n- 2"
