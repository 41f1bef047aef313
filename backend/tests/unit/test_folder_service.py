import pytest

from backend.src.models.note import FolderCreate, FolderUpdate, NoteCreate, TodoCreate
from backend.src.services.files import TreeService
from backend.src.services.folders import FolderService
from backend.src.services.notes import NoteService
from backend.src.services.todos import TodoService
from haku.core.content import ContentType
from haku.core.errors import ConflictError, CycleError, NotFoundError
from haku.core.tree import count_nodes

USER = "user-1"


@pytest.fixture
def folders(db) -> FolderService:
    return FolderService(db)


def test_add_folder_with_parent(folders):
    parent = folders.add(USER, FolderCreate(name="Work", type=ContentType.NOTE))
    child = folders.add(USER, FolderCreate(name="Meetings", type=ContentType.NOTE, parent_id=parent.id))

    assert child.parent_id == parent.id
    assert child.type == ContentType.NOTE


def test_missing_parent_is_reported(folders):
    with pytest.raises(NotFoundError, match="The parent folder specified does not exist."):
        folders.add(USER, FolderCreate(name="Orphan", type=ContentType.NOTE, parent_id="nope"))


def test_parent_of_another_type_is_refused(folders):
    todo_folder = folders.add(USER, FolderCreate(name="Chores", type=ContentType.TODO))

    with pytest.raises(ConflictError, match="The parent folder type is invalid."):
        folders.add(USER, FolderCreate(name="Notes", type=ContentType.NOTE, parent_id=todo_folder.id))


def test_parent_owned_by_another_user_is_invisible(folders):
    foreign = folders.add("user-2", FolderCreate(name="Private", type=ContentType.NOTE))

    with pytest.raises(NotFoundError):
        folders.add(USER, FolderCreate(name="Mine", type=ContentType.NOTE, parent_id=foreign.id))


def test_sibling_names_are_unique_per_type(folders):
    folders.add(USER, FolderCreate(name="Work", type=ContentType.NOTE))
    folders.add(USER, FolderCreate(name="Work", type=ContentType.TODO))

    with pytest.raises(ConflictError, match="A folder with the same name already exists."):
        folders.add(USER, FolderCreate(name="Work", type=ContentType.NOTE))


def test_update_renames_and_moves_to_top_level(folders):
    parent = folders.add(USER, FolderCreate(name="Work", type=ContentType.NOTE))
    child = folders.add(USER, FolderCreate(name="Old", type=ContentType.NOTE, parent_id=parent.id))

    renamed = folders.update(USER, child.id, FolderUpdate(name="New"))
    assert renamed.name == "New"
    assert renamed.parent_id == parent.id

    moved = folders.update(USER, child.id, FolderUpdate(parent_id=None))
    assert moved.parent_id is None


def test_folder_cannot_move_inside_its_descendant(folders):
    top = folders.add(USER, FolderCreate(name="Top", type=ContentType.NOTE))
    middle = folders.add(USER, FolderCreate(name="Middle", type=ContentType.NOTE, parent_id=top.id))
    bottom = folders.add(USER, FolderCreate(name="Bottom", type=ContentType.NOTE, parent_id=middle.id))

    with pytest.raises(CycleError):
        folders.update(USER, top.id, FolderUpdate(parent_id=bottom.id))
    with pytest.raises(CycleError):
        folders.update(USER, top.id, FolderUpdate(parent_id=top.id))


def test_update_missing_folder(folders):
    with pytest.raises(NotFoundError, match="The folder specified does not exist."):
        folders.update(USER, "nope", FolderUpdate(name="x"))


def test_remove_cascades_to_nested_folders_and_content(db, folders):
    notes = NoteService(db)
    top = folders.add(USER, FolderCreate(name="Top", type=ContentType.NOTE))
    nested = folders.add(USER, FolderCreate(name="Nested", type=ContentType.NOTE, parent_id=top.id))
    notes.add(USER, NoteCreate(name="Inside", folder_id=nested.id))
    kept = notes.add(USER, NoteCreate(name="Outside"))

    folders.remove(USER, top.id)

    forest = TreeService(db).get_note_tree(USER)
    assert [node.id for node in forest] == [kept.id]
    with pytest.raises(NotFoundError):
        folders.remove(USER, nested.id)


def test_remove_todo_folder_removes_todos(db, folders):
    todos = TodoService(db)
    folder = folders.add(USER, FolderCreate(name="Chores", type=ContentType.TODO))
    todo = todos.add(USER, TodoCreate(name="Garden", folder_id=folder.id))

    folders.remove(USER, folder.id)

    assert count_nodes(TreeService(db).get_todo_tree(USER)) == 0
    with pytest.raises(NotFoundError):
        todos.get(USER, todo.id)
