"""Todo node Pydantic models."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from haku.core.content import TodoNodeStatus
from haku.core.ordering import ROOT_ID


class TodoNodeData(BaseModel):
    """A todo node without its children (those travel in the children map)."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: str = Field(..., min_length=1, max_length=64)
    content: str = Field("", max_length=10_000)
    status: TodoNodeStatus = TodoNodeStatus.ACTIVE
    collapsed: bool = False
    note_html: Optional[str] = None
    note_text: Optional[str] = None
    parent_id: Optional[str] = None


class TodoNodes(BaseModel):
    """Every node of a todo with the ordered child lists, ``root`` included."""

    name: str
    children: Dict[str, List[str]]
    nodes: Dict[str, TodoNodeData]


class TodoNodeMutations(BaseModel):
    insert: Dict[str, TodoNodeData] = Field(default_factory=dict)
    update: Dict[str, TodoNodeData] = Field(default_factory=dict)
    delete: List[str] = Field(default_factory=list)


class TodoNodesUpdate(BaseModel):
    """Batch of node changes applied atomically.

    ``children`` holds only the child lists the batch changes. Without a
    ``root`` entry the stored top-level order is kept.
    """

    children: Dict[str, List[str]] = Field(default_factory=dict)
    mutations: TodoNodeMutations = Field(default_factory=TodoNodeMutations)

    @property
    def root(self) -> Optional[List[str]]:
        return self.children.get(ROOT_ID)


__all__ = ["TodoNodeData", "TodoNodes", "TodoNodeMutations", "TodoNodesUpdate"]
