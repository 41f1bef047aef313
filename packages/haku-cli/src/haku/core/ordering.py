"""Todo node ordering model.

A todo is a tree of nodes. The top-level nodes are the children of the
synthetic ``root`` entry and every other node is listed in exactly one parent's
``children``. Sibling order is the order of that list and nothing else.

All structural operations validate first and mutate second, so a failed call
never leaves a node detached or listed twice. Every mutation is also recorded
in a per-node journal (``insert`` / ``update`` / ``delete``), together with
the child lists that changed, from which the batch update sent to the server
is built. Field edits leave every child list out of the batch.
"""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Literal, Mapping, Optional, Set

from .content import TodoNodeStatus
from .errors import CycleError, IntegrityError, NotFoundError, ValidationError

ROOT_ID = "root"

MutationKind = Literal["insert", "update", "delete"]


@dataclass
class TodoNode:
    """A single todo entry. ``parent_id`` is ``None`` for top-level nodes."""

    id: str
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    content: str = ""
    status: TodoNodeStatus = TodoNodeStatus.ACTIVE
    collapsed: bool = False
    note_html: Optional[str] = None
    note_text: Optional[str] = None

    def to_data(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("children")
        data["status"] = self.status.value
        return data


def _check_note(note_html: Optional[str], note_text: Optional[str]) -> None:
    if bool(note_html) != bool(note_text):
        raise ValidationError("A todo node note requires both its HTML and its text")


class TodoNodeTree:
    """Ordered parent/child structure of one todo."""

    def __init__(self) -> None:
        self.root: List[str] = []
        self._nodes: Dict[str, TodoNode] = {}
        self._mutations: Dict[str, MutationKind] = {}
        self._relisted: Set[str] = set()

    # ------------------------------------------------------------------
    # Loading / dumping
    # ------------------------------------------------------------------

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> "TodoNodeTree":
        """Build a tree from ``{"children": {...}, "nodes": {...}}``.

        ``children`` maps ``root`` and node ids to ordered child ids. Parents are
        derived from the child lists. The result is validated.
        """
        children: Mapping[str, List[str]] = data.get("children") or {}
        nodes: Mapping[str, Mapping[str, Any]] = data.get("nodes") or {}

        tree = cls()
        tree.root = list(children.get(ROOT_ID, []))
        for node_id, raw in nodes.items():
            tree._nodes[node_id] = TodoNode(
                id=node_id,
                children=list(children.get(node_id, [])),
                content=raw.get("content", ""),
                status=TodoNodeStatus(raw.get("status", TodoNodeStatus.ACTIVE)),
                collapsed=bool(raw.get("collapsed", False)),
                note_html=raw.get("note_html"),
                note_text=raw.get("note_text"),
            )

        for parent_key, child_ids in tree._child_lists():
            for child_id in child_ids:
                child = tree._nodes.get(child_id)
                if child is not None:
                    child.parent_id = None if parent_key == ROOT_ID else parent_key

        tree.validate()
        return tree

    def to_data(self) -> Dict[str, Any]:
        children: Dict[str, List[str]] = {ROOT_ID: list(self.root)}
        for node_id, node in self._nodes.items():
            children[node_id] = list(node.children)
        return {
            "children": children,
            "nodes": {node_id: node.to_data() for node_id, node in self._nodes.items()},
        }

    def copy(self) -> "TodoNodeTree":
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[TodoNode]:
        """Iterate nodes depth-first in display order."""
        stack = list(reversed(self.root))
        while stack:
            node = self._nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def get(self, node_id: str) -> TodoNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise NotFoundError(f"Todo node {node_id} does not exist", {"node_id": node_id})
        return node

    def children(self, parent_id: str) -> List[str]:
        return list(self._child_list(parent_id))

    def parent_of(self, node_id: str) -> str:
        return self.get(node_id).parent_id or ROOT_ID

    def index_of(self, node_id: str) -> int:
        return self._child_list(self.parent_of(node_id)).index(node_id)

    def descendants(self, node_id: str) -> List[str]:
        """Return the ids below ``node_id`` in pre-order."""
        result: List[str] = []
        stack = list(reversed(self._child_list(node_id)))
        while stack:
            current = stack.pop()
            result.append(current)
            stack.extend(reversed(self._nodes[current].children))
        return result

    def depth(self, node_id: str) -> int:
        level = 0
        parent_id = self.get(node_id).parent_id
        while parent_id is not None:
            level += 1
            parent_id = self._nodes[parent_id].parent_id
        return level

    # ------------------------------------------------------------------
    # Structural operations
    # ------------------------------------------------------------------

    def insert(self, parent_id: str, node_id: str, index: int, **fields: Any) -> TodoNode:
        """Insert a new node in ``parent_id``'s children at ``index`` (clamped)."""
        siblings = self._child_list(parent_id)
        if node_id == ROOT_ID or node_id in self._nodes:
            raise IntegrityError(f"Todo node {node_id} already exists", {"node_id": node_id})
        _check_note(fields.get("note_html"), fields.get("note_text"))

        node = TodoNode(id=node_id, parent_id=None if parent_id == ROOT_ID else parent_id, **fields)
        if not isinstance(node.status, TodoNodeStatus):
            node.status = TodoNodeStatus(node.status)
        siblings.insert(self._clamp(index, len(siblings)), node_id)
        self._nodes[node_id] = node

        self._mark(node_id, "insert")
        self._mark_parent(parent_id)
        return node

    def remove(self, node_id: str) -> List[str]:
        """Detach ``node_id`` and delete it with its descendants.

        Returns the removed ids, ``node_id`` first, so callers can cascade.
        """
        if node_id == ROOT_ID:
            raise IntegrityError("The todo root cannot be removed")
        node = self.get(node_id)
        parent_id = node.parent_id or ROOT_ID

        removed = [node_id, *self.descendants(node_id)]
        self._child_list(parent_id).remove(node_id)
        for removed_id in removed:
            del self._nodes[removed_id]
            self._mark(removed_id, "delete")

        self._mark_parent(parent_id)
        return removed

    def move(self, node_id: str, new_parent_id: str, index: int) -> None:
        """Move ``node_id`` under ``new_parent_id`` so it ends up at ``index``.

        ``index`` is the final position among the new siblings. Within the same
        parent the node is taken out before being put back, so the last valid
        position is one less than the current number of children and larger
        indexes are pulled down to it.

        Raises:
            NotFoundError: unknown node or parent.
            CycleError: the new parent is the node itself or one of its
                descendants. The tree is left unchanged.
        """
        if node_id == ROOT_ID:
            raise IntegrityError("The todo root cannot be moved")
        node = self.get(node_id)
        target = self._child_list(new_parent_id)
        if new_parent_id == node_id or new_parent_id in self.descendants(node_id):
            raise CycleError(
                f"Todo node {node_id} cannot be moved inside itself",
                {"node_id": node_id, "parent_id": new_parent_id},
            )

        old_parent_id = node.parent_id or ROOT_ID
        source = self._child_list(old_parent_id)

        source.remove(node_id)
        target.insert(self._clamp(index, len(target)), node_id)
        node.parent_id = None if new_parent_id == ROOT_ID else new_parent_id

        self._mark(node_id, "update")
        self._mark_parent(old_parent_id)
        self._mark_parent(new_parent_id)

    def add_after(self, node_id: str, new_id: str, **fields: Any) -> TodoNode:
        """Add a node right after ``node_id``.

        An expanded node with children receives the new node as its first child
        instead, which is where it shows up on screen.
        """
        node = self.get(node_id)
        if not node.collapsed and node.children:
            return self.insert(node_id, new_id, 0, **fields)
        parent_id = node.parent_id or ROOT_ID
        return self.insert(parent_id, new_id, self.index_of(node_id) + 1, **fields)

    def nest(self, node_id: str) -> bool:
        """Make ``node_id`` the last child of its previous sibling."""
        index = self.index_of(node_id)
        if index == 0:
            return False
        sibling_id = self._child_list(self.parent_of(node_id))[index - 1]
        sibling = self._nodes[sibling_id]
        self.move(node_id, sibling_id, len(sibling.children))
        if sibling.collapsed:
            sibling.collapsed = False
            self._mark(sibling_id, "update")
        return True

    def unnest(self, node_id: str) -> bool:
        """Make ``node_id`` the next sibling of its parent."""
        parent_id = self.get(node_id).parent_id
        if parent_id is None:
            return False
        grand_parent_id = self.parent_of(parent_id)
        self.move(node_id, grand_parent_id, self.index_of(parent_id) + 1)
        return True

    def shift(self, node_id: str, direction: str) -> bool:
        """Swap ``node_id`` with its previous (``up``) or next (``down``) sibling."""
        if direction not in ("up", "down"):
            raise ValidationError(f"Unknown direction: {direction}")
        parent_id = self.parent_of(node_id)
        siblings = self._child_list(parent_id)
        index = siblings.index(node_id)
        target = index - 1 if direction == "up" else index + 1
        if target < 0 or target >= len(siblings):
            return False
        self.move(node_id, parent_id, target)
        return True

    # ------------------------------------------------------------------
    # Field mutations
    # ------------------------------------------------------------------

    def toggle_collapsed(self, node_id: str) -> bool:
        collapsed = not self.get(node_id).collapsed
        self.set_collapsed(node_id, collapsed)
        return collapsed

    def set_collapsed(self, node_id: str, collapsed: bool) -> None:
        self.get(node_id).collapsed = collapsed
        self._mark(node_id, "update")

    def set_status(self, node_id: str, status: TodoNodeStatus | str) -> None:
        node = self.get(node_id)
        node.status = TodoNodeStatus(status)
        self._mark(node_id, "update")

    def update_content(self, node_id: str, content: str) -> None:
        node = self.get(node_id)
        node.content = content
        self._mark(node_id, "update")

    def update_note(self, node_id: str, note_html: Optional[str], note_text: Optional[str]) -> None:
        node = self.get(node_id)
        _check_note(note_html, note_text)
        node.note_html = note_html or None
        node.note_text = note_text or None
        self._mark(node_id, "update")

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Raise :class:`IntegrityError` unless every node is listed exactly once
        and reachable from the root."""
        listed: Dict[str, str] = {}
        for parent_key, child_ids in self._child_lists():
            for child_id in child_ids:
                child = self._nodes.get(child_id)
                if child is None:
                    raise IntegrityError(
                        "Child list references a missing node",
                        {"parent_id": parent_key, "node_id": child_id},
                    )
                if child_id in listed:
                    raise IntegrityError(
                        "Node is listed by more than one parent",
                        {"node_id": child_id, "parents": [listed[child_id], parent_key]},
                    )
                listed[child_id] = parent_key
                expected_parent = None if parent_key == ROOT_ID else parent_key
                if child.parent_id != expected_parent:
                    raise IntegrityError(
                        "Node parent does not match its child list",
                        {"node_id": child_id, "parent_id": child.parent_id},
                    )

        orphans = set(self._nodes) - set(listed)
        if orphans:
            raise IntegrityError("Nodes are not listed by any parent", {"node_ids": sorted(orphans)})

        reachable = set(self.descendants(ROOT_ID))
        if len(reachable) != len(self._nodes):
            unreachable = sorted(set(self._nodes) - reachable)
            raise IntegrityError("Node containment cycle detected", {"node_ids": unreachable})

    # ------------------------------------------------------------------
    # Mutation journal
    # ------------------------------------------------------------------

    @property
    def mutations(self) -> Dict[str, MutationKind]:
        return dict(self._mutations)

    def pending_update(self) -> Dict[str, Any]:
        """Build the batch update describing every journaled change.

        ``children`` only lists the child lists that changed (``root``
        included) and those of inserted nodes; the server keeps the stored
        lists for everything else.
        """
        insert: Dict[str, Any] = {}
        update: Dict[str, Any] = {}
        delete: List[str] = []
        children: Dict[str, List[str]] = {}
        if ROOT_ID in self._relisted:
            children[ROOT_ID] = list(self.root)

        for node_id, kind in self._mutations.items():
            if kind == "delete":
                delete.append(node_id)
                continue
            node = self._nodes[node_id]
            (insert if kind == "insert" else update)[node_id] = node.to_data()
            if kind == "insert" or node_id in self._relisted:
                children[node_id] = list(node.children)

        return {
            "children": children,
            "mutations": {"delete": delete, "insert": insert, "update": update},
        }

    def clear_mutations(self) -> None:
        self._mutations.clear()
        self._relisted.clear()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _child_list(self, parent_id: str) -> List[str]:
        if parent_id == ROOT_ID:
            return self.root
        return self.get(parent_id).children

    def _child_lists(self) -> Iterator[tuple[str, List[str]]]:
        yield ROOT_ID, self.root
        for node_id, node in self._nodes.items():
            yield node_id, node.children

    @staticmethod
    def _clamp(index: int, upper: int) -> int:
        return max(0, min(index, upper))

    def _mark(self, node_id: str, kind: MutationKind) -> None:
        previous = self._mutations.get(node_id)
        if kind == "delete":
            if previous == "insert":
                del self._mutations[node_id]
            else:
                self._mutations[node_id] = "delete"
        elif kind == "insert":
            self._mutations[node_id] = "insert"
        elif previous is None:
            self._mutations[node_id] = "update"

    def _mark_parent(self, parent_id: str) -> None:
        if parent_id == ROOT_ID:
            self._relisted.add(ROOT_ID)
        elif parent_id in self._nodes:
            self._relisted.add(parent_id)
            self._mark(parent_id, "update")


__all__ = ["ROOT_ID", "TodoNode", "TodoNodeTree", "MutationKind"]
