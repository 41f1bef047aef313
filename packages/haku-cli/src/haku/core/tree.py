"""Tree assembler: turns flat folder and content rows into a nested forest.

The forest returned by :func:`build_tree` is the synthetic top-level group of a
content type: top-level folders first, then the items that live outside of any
folder. Every folder carries its nested ``children`` folders and its ``items``.

Containment problems are reported with :class:`IntegrityError` instead of being
repaired so callers can refuse to render a corrupted tree.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .content import ContentRecord, FolderRecord, TreeFolder
from .errors import IntegrityError

ForestNode = Union[TreeFolder, ContentRecord]


def _sort_key(record: FolderRecord | ContentRecord) -> Tuple[str, str]:
    return record.name.casefold(), record.id


def _index_folders(folders: Iterable[FolderRecord]) -> Dict[str, FolderRecord]:
    by_id: Dict[str, FolderRecord] = {}
    for folder in folders:
        if folder.id in by_id:
            raise IntegrityError("Duplicate folder identifier", {"folder_id": folder.id})
        by_id[folder.id] = folder

    for folder in by_id.values():
        if folder.parent_id is None:
            continue
        parent = by_id.get(folder.parent_id)
        if parent is None:
            raise IntegrityError(
                "Folder references a missing parent folder",
                {"folder_id": folder.id, "parent_id": folder.parent_id},
            )
        if parent.user_id != folder.user_id:
            raise IntegrityError(
                "Folder is contained in a folder owned by another user",
                {"folder_id": folder.id, "parent_id": parent.id},
            )
        if parent.type != folder.type:
            raise IntegrityError(
                "Folder is contained in a folder of another content type",
                {"folder_id": folder.id, "parent_id": parent.id},
            )
    return by_id


def _folder_levels(by_id: Dict[str, FolderRecord]) -> Dict[str, int]:
    """Return the depth of every folder, failing on containment cycles."""
    levels: Dict[str, int] = {}
    for folder_id in by_id:
        chain: List[str] = []
        seen: set[str] = set()
        current: Optional[str] = folder_id
        while current is not None and current not in levels:
            if current in seen:
                raise IntegrityError("Folder containment cycle detected", {"folder_id": current})
            seen.add(current)
            chain.append(current)
            current = by_id[current].parent_id

        level = -1 if current is None else levels[current]
        for chained_id in reversed(chain):
            level += 1
            levels[chained_id] = level
    return levels


def _validate_item(item: ContentRecord, by_id: Dict[str, FolderRecord]) -> None:
    if item.folder_id is None:
        return
    folder = by_id.get(item.folder_id)
    if folder is None:
        raise IntegrityError(
            "Item references a missing folder",
            {"item_id": item.id, "folder_id": item.folder_id},
        )
    if folder.user_id != item.user_id:
        raise IntegrityError(
            "Item is contained in a folder owned by another user",
            {"item_id": item.id, "folder_id": folder.id},
        )
    if folder.type != item.type:
        raise IntegrityError(
            "Item is contained in a folder of another content type",
            {"item_id": item.id, "folder_id": folder.id},
        )


def build_tree(
    folders: Iterable[FolderRecord],
    items: Iterable[ContentRecord],
) -> List[ForestNode]:
    """Assemble folders and items into a forest.

    Folders may be given in any order. Siblings are ordered by name
    (case-insensitive) then identifier, so the output only depends on the input
    set. The inputs are left untouched.

    Raises:
        IntegrityError: on duplicate ids, dangling references, containment
            cycles, cross-user or cross-type containment.
    """
    by_id = _index_folders(folders)
    levels = _folder_levels(by_id)

    nodes: Dict[str, TreeFolder] = {
        folder.id: TreeFolder(
            id=folder.id,
            name=folder.name,
            type=folder.type,
            parent_id=folder.parent_id,
            level=levels[folder.id],
        )
        for folder in by_id.values()
    }

    forest: List[ForestNode] = []
    for folder in sorted(by_id.values(), key=_sort_key):
        node = nodes[folder.id]
        if folder.parent_id is None:
            forest.append(node)
        else:
            nodes[folder.parent_id].children.append(node)

    root_items: List[ContentRecord] = []
    seen_items: set[str] = set()
    for item in sorted(items, key=_sort_key):
        if item.id in seen_items:
            raise IntegrityError("Duplicate item identifier", {"item_id": item.id})
        seen_items.add(item.id)
        _validate_item(item, by_id)
        if item.folder_id is None:
            root_items.append(item)
        else:
            nodes[item.folder_id].items.append(item)

    forest.extend(root_items)
    return forest


def walk(forest: Iterable[ForestNode], level: int = 0) -> Iterator[Tuple[ForestNode, int]]:
    """Yield ``(node, level)`` pairs depth-first, folders before their items."""
    for node in forest:
        yield node, level
        if isinstance(node, TreeFolder):
            yield from walk(node.children, level + 1)
            yield from walk(node.items, level + 1)


def count_nodes(forest: Iterable[ForestNode]) -> int:
    return sum(1 for _ in walk(forest))


def find_folder(forest: Iterable[ForestNode], folder_id: str) -> Optional[TreeFolder]:
    for node, _ in walk(forest):
        if isinstance(node, TreeFolder) and node.id == folder_id:
            return node
    return None


__all__ = ["ForestNode", "build_tree", "walk", "count_nodes", "find_folder"]
