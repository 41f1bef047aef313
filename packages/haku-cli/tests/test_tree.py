import pytest

from haku.core.content import ContentRecord, ContentType, FolderRecord, TreeFolder
from haku.core.errors import IntegrityError
from haku.core.tree import build_tree, count_nodes, find_folder, walk


def folder(folder_id: str, name: str, parent_id=None, user_id="u1", type=ContentType.NOTE) -> FolderRecord:
    return FolderRecord(id=folder_id, user_id=user_id, name=name, type=type, parent_id=parent_id)


def item(item_id: str, name: str, folder_id=None, user_id="u1", type=ContentType.NOTE) -> ContentRecord:
    return ContentRecord(id=item_id, user_id=user_id, name=name, type=type, folder_id=folder_id)


def test_build_tree_nests_folders_given_child_first() -> None:
    folders = [folder("f2", "Sub", parent_id="f1"), folder("f1", "Top")]
    items = [item("n1", "Inside", folder_id="f2"), item("n2", "Loose")]

    forest = build_tree(folders, items)

    assert [node.id for node in forest] == ["f1", "n2"]
    top = forest[0]
    assert isinstance(top, TreeFolder)
    assert top.level == 0
    assert [child.id for child in top.children] == ["f2"]
    assert top.children[0].level == 1
    assert [entry.id for entry in top.children[0].items] == ["n1"]


def test_node_count_matches_input() -> None:
    folders = [folder("a", "A"), folder("b", "B", "a"), folder("c", "C", "b"), folder("d", "D")]
    items = [item("1", "one"), item("2", "two", "c"), item("3", "three", "a")]

    forest = build_tree(folders, items)

    assert count_nodes(forest) == len(folders) + len(items)


def test_siblings_sorted_by_name_case_insensitive_then_id() -> None:
    folders = [folder("f3", "beta"), folder("f1", "Alpha"), folder("f2", "alpha")]
    items = [item("i2", "zeta"), item("i1", "Zeta"), item("i0", "apple")]

    forest = build_tree(folders, items)

    assert [node.id for node in forest] == ["f1", "f2", "f3", "i0", "i1", "i2"]


def test_build_tree_is_pure_and_idempotent() -> None:
    folders = [folder("f2", "Sub", parent_id="f1"), folder("f1", "Top")]
    items = [item("n1", "Inside", folder_id="f2")]
    snapshot = [record.model_copy() for record in folders]

    first = build_tree(folders, items)
    second = build_tree(list(reversed(folders)), items)

    assert [f.model_dump() for f in first] == [f.model_dump() for f in second]
    assert folders == snapshot


def test_empty_input_gives_empty_forest() -> None:
    assert build_tree([], []) == []


def test_missing_parent_is_reported() -> None:
    with pytest.raises(IntegrityError):
        build_tree([folder("f1", "Orphan", parent_id="nope")], [])


def test_cycle_is_reported() -> None:
    folders = [folder("a", "A", "c"), folder("b", "B", "a"), folder("c", "C", "b")]
    with pytest.raises(IntegrityError) as excinfo:
        build_tree(folders, [])
    assert "cycle" in excinfo.value.message


def test_self_parent_is_a_cycle() -> None:
    with pytest.raises(IntegrityError):
        build_tree([folder("a", "A", "a")], [])


def test_item_in_missing_folder_is_reported() -> None:
    with pytest.raises(IntegrityError):
        build_tree([], [item("n1", "Lost", folder_id="ghost")])


def test_cross_user_containment_is_reported() -> None:
    with pytest.raises(IntegrityError):
        build_tree([folder("f1", "Mine")], [item("n1", "Theirs", folder_id="f1", user_id="u2")])
    with pytest.raises(IntegrityError):
        build_tree([folder("f1", "Mine"), folder("f2", "Theirs", "f1", user_id="u2")], [])


def test_item_in_folder_of_other_type_is_reported() -> None:
    with pytest.raises(IntegrityError):
        build_tree([folder("f1", "Notes")], [item("t1", "Todo", folder_id="f1", type=ContentType.TODO)])


def test_duplicate_ids_are_reported() -> None:
    with pytest.raises(IntegrityError):
        build_tree([folder("f1", "A"), folder("f1", "B")], [])
    with pytest.raises(IntegrityError):
        build_tree([], [item("n1", "A"), item("n1", "B")])


def test_walk_is_depth_first_and_restartable() -> None:
    forest = build_tree(
        [folder("f1", "Top"), folder("f2", "Sub", "f1")],
        [item("n1", "In top", "f1"), item("n2", "Root item")],
    )

    visited = [(node.id, level) for node, level in walk(forest)]

    assert visited == [("f1", 0), ("f2", 1), ("n1", 1), ("n2", 0)]
    assert [(node.id, level) for node, level in walk(forest)] == visited


def test_find_folder() -> None:
    forest = build_tree([folder("f1", "Top"), folder("f2", "Sub", "f1")], [])

    assert find_folder(forest, "f2").name == "Sub"
    assert find_folder(forest, "missing") is None
