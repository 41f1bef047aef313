"""Client synchronization layer.

:class:`OptimisticCache` applies a mutation to local state right away, sends it
to the server and then either folds the server answer in or rolls the change
back. :class:`TodoSync` uses it to edit a todo's node tree.

State is modelled as the last server-confirmed state plus the ordered log of
mutations still in flight; the visible state is the confirmed state with the
log replayed on top. Rolling a mutation back is therefore dropping it from the
log and replaying the rest.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from .content import TodoNodeStatus
from .errors import HakuError, NetworkError, ValidationError
from .ordering import ROOT_ID, TodoNode, TodoNodeTree

logger = logging.getLogger(__name__)

S = TypeVar("S")

Apply = Callable[[S], Optional[S]]
Dispatch = Callable[[], Awaitable[Any]]
Reconcile = Callable[[S, Any], Optional[S]]


@dataclass
class MutationResult:
    """Outcome of one optimistic mutation."""

    key: str
    ok: bool
    retryable: bool = False
    error: Optional[HakuError] = None
    response: Any = None
    superseded: bool = False


@dataclass
class _Mutation:
    seq: int
    key: str
    apply: Callable[[Any], Any]


def _run(apply: Callable[[Any], Any], state: Any) -> Any:
    result = apply(state)
    return state if result is None else result


class OptimisticCache(Generic[S]):
    """Optimistically mutated copy of server state."""

    def __init__(self, initial_state: S):
        self._confirmed: S = copy.deepcopy(initial_state)
        self._state: S = copy.deepcopy(initial_state)
        self._log: List[_Mutation] = []
        self._latest: Dict[str, int] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._listeners: List[Tuple[Callable[[S], Any], Callable[[Any], None]]] = []
        self._counter = itertools.count(1)

    @property
    def state(self) -> S:
        return self._state

    def is_pending(self, key: str) -> bool:
        return key in self._latest

    def subscribe(
        self,
        selector: Callable[[S], Any],
        callback: Callable[[Any], None],
    ) -> Callable[[], None]:
        """Call ``callback(selected)`` whenever the selected slice changes."""
        entry = (selector, callback)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    async def mutate(
        self,
        key: str,
        apply: Apply[S],
        dispatch: Dispatch,
        reconcile: Optional[Reconcile[S]] = None,
    ) -> MutationResult:
        """Apply ``apply`` locally, then send ``dispatch()`` to the server.

        Dispatches sharing a ``key`` run one at a time in issuance order. Domain
        errors raised by ``dispatch`` roll the change back and are reported in
        the result; other exceptions roll back and propagate.
        """
        mutation = _Mutation(seq=next(self._counter), key=key, apply=apply)

        draft = copy.deepcopy(self._state)
        draft = _run(apply, draft)
        self._log.append(mutation)
        self._latest[key] = mutation.seq
        self._set_state(draft)

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            try:
                response = await dispatch()
            except HakuError as exc:
                superseded = self._latest.get(key) != mutation.seq
                self._settle(mutation, succeeded=False)
                if exc.retryable:
                    logger.warning("Mutation %s failed, will need a retry: %s", key, exc.message)
                else:
                    logger.error("Mutation %s rejected: %s", key, exc.message)
                return MutationResult(
                    key=key,
                    ok=False,
                    retryable=isinstance(exc, NetworkError) or exc.retryable,
                    error=exc,
                    superseded=superseded,
                )
            except Exception:
                self._settle(mutation, succeeded=False)
                raise

        superseded = self._latest.get(key) != mutation.seq
        self._settle(mutation, succeeded=True, response=response, reconcile=reconcile)
        return MutationResult(key=key, ok=True, response=response, superseded=superseded)

    def _settle(
        self,
        mutation: _Mutation,
        succeeded: bool,
        response: Any = None,
        reconcile: Optional[Reconcile[S]] = None,
    ) -> None:
        superseded = self._latest.get(mutation.key) != mutation.seq
        self._log.remove(mutation)

        if superseded:
            # The newer mutation owns the visible state. A confirmed older
            # mutation still counts for rollbacks, a rejected one never does.
            if succeeded:
                self._fold(mutation)
            return

        del self._latest[mutation.key]
        if succeeded:
            self._fold(mutation)
            if reconcile is not None:
                self._confirmed = _run(lambda state: reconcile(state, response), self._confirmed)
        self._set_state(self._replay())

    def _fold(self, mutation: _Mutation) -> None:
        try:
            self._confirmed = _run(mutation.apply, self._confirmed)
        except HakuError as exc:
            logger.warning("Confirmed mutation %s does not apply locally: %s", mutation.key, exc.message)

    def _replay(self) -> S:
        state = copy.deepcopy(self._confirmed)
        for pending in self._log:
            try:
                state = _run(pending.apply, state)
            except HakuError as exc:
                logger.warning(
                    "Pending mutation %s no longer applies after rollback: %s",
                    pending.key,
                    exc.message,
                )
        return state

    def _set_state(self, state: S) -> None:
        previous = self._state
        self._state = state
        for selector, callback in list(self._listeners):
            selected = selector(state)
            if selected != selector(previous):
                callback(selected)


def _adopt_server_tree(tree: TodoNodeTree, response: Any) -> Optional[TodoNodeTree]:
    """Replace the confirmed tree with the canonical one the server answered."""
    if not isinstance(response, dict) or "children" not in response or "nodes" not in response:
        return None
    return TodoNodeTree.from_data(response)


class TodoSync:
    """Edits one todo's node tree through an :class:`OptimisticCache`.

    Field edits are keyed by node id and structural edits share the ``root``
    key, so a newer edit supersedes an older one of the same kind. Every batch
    of the todo is sent in issuance order whatever its key, and each answer
    carries the whole tree, which becomes the confirmed state.
    """

    def __init__(self, api: Any, todo_id: str):
        self.api = api
        self.todo_id = todo_id
        self.name: Optional[str] = None
        self.cache: Optional[OptimisticCache[TodoNodeTree]] = None
        self._last_sent: Optional[asyncio.Future] = None

    @property
    def tree(self) -> TodoNodeTree:
        if self.cache is None:
            raise RuntimeError("Todo nodes are not loaded yet, call load() first")
        return self.cache.state

    async def load(self, data: Optional[Dict[str, Any]] = None) -> TodoNodeTree:
        """Load the nodes from the server, or from ``data`` already fetched."""
        if data is None:
            data = await self.api.get_todo_nodes(self.todo_id)
        self.name = data.get("name")
        self.cache = OptimisticCache(TodoNodeTree.from_data(data))
        return self.tree

    async def _mutate(self, key: str, operation: Callable[[TodoNodeTree], Any]) -> MutationResult:
        # Dry run on a scratch copy: invalid edits fail here, before anything is
        # sent, and the scratch journal is exactly this edit's batch.
        scratch = self.tree.copy()
        scratch.clear_mutations()
        operation(scratch)
        payload = scratch.pending_update()

        previous = self._last_sent
        sent = asyncio.get_running_loop().create_future()
        self._last_sent = sent

        def apply(tree: TodoNodeTree) -> None:
            operation(tree)
            tree.clear_mutations()

        async def dispatch() -> Any:
            if previous is not None:
                await previous
            return await self.api.update_todo_nodes(self.todo_id, payload)

        try:
            return await self.cache.mutate(key, apply, dispatch, _adopt_server_tree)
        finally:
            sent.set_result(None)

    async def rename(self, node_id: str, content: str) -> MutationResult:
        return await self._mutate(node_id, lambda tree: tree.update_content(node_id, content))

    async def update_note(
        self, node_id: str, note_html: Optional[str], note_text: Optional[str]
    ) -> MutationResult:
        return await self._mutate(node_id, lambda tree: tree.update_note(node_id, note_html, note_text))

    async def toggle_status(
        self, node_id: str, status: TodoNodeStatus = TodoNodeStatus.COMPLETED
    ) -> MutationResult:
        """Flip ``node_id`` between ``status`` and active."""
        # The target is fixed now so a replay after a rollback sets the same value.
        current = self.tree.get(node_id).status
        target = TodoNodeStatus.ACTIVE if current == status else status
        return await self._mutate(node_id, lambda tree: tree.set_status(node_id, target))

    async def toggle_collapsed(self, node_id: str) -> MutationResult:
        collapsed = not self.tree.get(node_id).collapsed
        return await self._mutate(node_id, lambda tree: tree.set_collapsed(node_id, collapsed))

    async def add_after(
        self, node_id: str, new_id: Optional[str] = None, content: str = ""
    ) -> Tuple[str, MutationResult]:
        new_id = new_id or uuid.uuid4().hex
        result = await self._mutate(
            ROOT_ID,
            lambda tree: tree.add_after(node_id, new_id, content=content),
        )
        return new_id, result

    async def delete(self, node_id: str) -> MutationResult:
        if self.tree.root == [node_id]:
            raise ValidationError("A todo must keep at least one node", {"node_id": node_id})
        return await self._mutate(ROOT_ID, lambda tree: tree.remove(node_id))

    async def move(self, node_id: str, new_parent_id: str, index: int) -> MutationResult:
        return await self._mutate(ROOT_ID, lambda tree: tree.move(node_id, new_parent_id, index))

    async def nest(self, node_id: str) -> MutationResult:
        return await self._mutate(ROOT_ID, lambda tree: tree.nest(node_id))

    async def unnest(self, node_id: str) -> MutationResult:
        return await self._mutate(ROOT_ID, lambda tree: tree.unnest(node_id))

    async def shift(self, node_id: str, direction: str) -> MutationResult:
        return await self._mutate(ROOT_ID, lambda tree: tree.shift(node_id, direction))

    def node(self, node_id: str) -> TodoNode:
        return self.tree.get(node_id)


__all__ = ["MutationResult", "OptimisticCache", "TodoSync"]
