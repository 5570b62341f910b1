"""
FHIR Store

The single owner of the store state. Every change goes through
`FhirStore.dispatch`, which applies an action to a draft copy of the current
state and publishes the draft as the new immutable snapshot. Dispatch never
awaits: network work is spawned as asyncio tasks by the effects, and those
tasks report back by dispatching further actions.
"""

from typing import Any, Awaitable, Callable, Coroutine, Deque, List, Optional, Set, Tuple, Union
from collections import deque
import asyncio

import structlog

from chartsync.fhir.client import FhirServer
from chartsync.fhir.types import Resource, is_resource
from chartsync.store import actions as a
from chartsync.store.effects import EFFECTS
from chartsync.store.models import (
    FhirState,
    ProgressNote,
    QueryRequest,
    QueryStatus,
    SaveRequest,
    TimelineGroup,
)
from chartsync.store.reducer import reduce
from chartsync.store.resources import FhirResources

logger = structlog.get_logger(__name__)

Listener = Callable[[FhirState, a.Action], None]
Predicate = Callable[[FhirState], bool]


class FhirStore:
    """
    Client-side FHIR data store.

    Features:
    - Query loading with per-query dedup and loading/error state
    - Edit overlay with undo, soft deletes and auto-generated resources
    - Batched transaction saves, serialized one at a time
    - Immediate deletes
    - Snapshot reads and change subscriptions
    """

    def __init__(
        self,
        server: FhirServer,
        state: Optional[FhirState] = None,
        max_history: int = 1000,
    ):
        self.server = server
        self._state = state if state is not None else FhirState.from_settings()

        self._listeners: List[Listener] = []
        self._waiters: List[Tuple[Predicate, asyncio.Future]] = []
        self._tasks: Set[asyncio.Task] = set()
        self._history: Deque[a.Action] = deque(maxlen=max_history)

        self.save_lock = asyncio.Lock()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> FhirState:
        """Current snapshot. Never modified once published."""
        return self._state

    @property
    def working_view(self) -> FhirResources:
        """Server resources with local edits applied and deletions removed."""
        return self._state.resources_with_edits

    def get_history(self, limit: int = 100) -> List[a.Action]:
        """Most recently dispatched actions."""
        return list(self._history)[-limit:]

    # =========================================================================
    # Dispatch
    # =========================================================================

    def dispatch(self, action: a.Action) -> FhirState:
        """
        Apply an action and run its effects.

        If the reducer raises, the error propagates and the published state
        is left exactly as it was.
        """
        previous = self._state
        draft = previous.draft()
        reduce(draft, action)
        self._state = draft
        self._history.append(action)

        logger.debug("Dispatched", action=action.type)

        for listener in list(self._listeners):
            try:
                listener(draft, action)
            except Exception as e:
                logger.error("Listener failed", action=action.type, error=str(e))

        self._resolve_waiters()

        for action_type, run in EFFECTS:
            if isinstance(action, action_type):
                run(self, action, previous)

        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener(state, action)` after every dispatch. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        """Run an effect coroutine as a tracked task."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait until no effect task is outstanding."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        for _, future in self._waiters:
            future.cancel()
        self._waiters.clear()
        self._listeners.clear()
        logger.info("FhirStore closed")

    # =========================================================================
    # Waiting
    # =========================================================================

    def _resolve_waiters(self) -> None:
        pending = []
        for predicate, future in self._waiters:
            if future.done():
                continue
            if predicate(self._state):
                future.set_result(self._state)
            else:
                pending.append((predicate, future))
        self._waiters = pending

    def wait_for(self, predicate: Predicate) -> Awaitable[FhirState]:
        """Resolve with the first snapshot for which `predicate` holds."""
        future = asyncio.get_running_loop().create_future()
        if predicate(self._state):
            future.set_result(self._state)
        else:
            self._waiters.append((predicate, future))
        return future

    def wait_for_resources_to_load(self) -> Awaitable[FhirState]:
        """Resolve once a query has loaded and the loading screen has cleared."""
        return self.wait_for(
            lambda s: not s.show_loading_screen
            and any(q.state == QueryStatus.LOADED for q in s.queries.values())
        )

    # =========================================================================
    # Commands
    # =========================================================================

    def query(self, query: str, show_loading_screen: bool = False) -> None:
        self.dispatch(a.Query(QueryRequest(query=query, show_loading_screen=show_loading_screen)))

    def edit(self, resource: Resource) -> None:
        self.dispatch(a.Edit(resource))

    def undo_edits(self, resource: Resource) -> None:
        self.dispatch(a.UndoEdits(resource))

    def undo_all(self) -> None:
        self.dispatch(a.UndoAll())

    def add_auto_generated(self, resource: Resource) -> None:
        self.dispatch(a.AddAutoGenerated(resource))

    def save(
        self,
        request: Union[SaveRequest, Resource, None] = None,
        *,
        resource: Optional[Resource] = None,
        filter: Optional[Callable[[Resource], bool]] = None,
        progress_note: Union[ProgressNote, dict, None] = None,
    ) -> a.Save:
        """
        Save pending edits.

        Pass a resource dict to save exactly that resource, or describe the
        selection with `resource` / `filter`; with neither, every pending
        edit is saved. Returns the dispatched action.
        """
        if request is None:
            if isinstance(progress_note, dict):
                progress_note = ProgressNote(**progress_note)
            request = SaveRequest(resource=resource, filter=filter, progress_note=progress_note)
        elif not isinstance(request, SaveRequest) and not is_resource(request):
            raise TypeError(f"Cannot save {type(request).__name__}")

        action = a.Save(request)
        self.dispatch(action)
        return action

    def delete(self, resource: Resource) -> None:
        self.dispatch(a.Delete(resource))

    def undo_delete(self, resource: Resource) -> None:
        self.dispatch(a.UndoDelete(resource))

    def delete_immediately(self, resource: Resource) -> None:
        self.dispatch(a.DeleteImmediately(resource))

    def list_add(self, list_resource: Resource, add: Resource) -> None:
        self.dispatch(a.ListAdd(list_resource, add))

    def list_remove(self, list_resource: Resource, remove: Resource) -> None:
        self.dispatch(a.ListRemove(list_resource, remove))

    def update_unread(self, list_resource: Resource) -> None:
        self.dispatch(a.UpdateUnread(list_resource))

    def mark_read(self, resource: Resource) -> None:
        self.dispatch(a.MarkRead(resource))

    def mark_unread(self, resource: Resource) -> None:
        self.dispatch(a.MarkUnread(resource))

    def set_search_filter(self, text: Optional[str]) -> None:
        self.dispatch(a.SetSearchingFor(text or ""))

    def set_timeline_visibility(self, group: Union[TimelineGroup, str], shown: bool) -> None:
        self.dispatch(a.SetShowInTimeline(TimelineGroup(group), shown))

    def show_panel(self, panel: str) -> None:
        self.dispatch(a.ShowPanel(panel))

    def hide_panel(self, panel: str) -> None:
        self.dispatch(a.HidePanel(panel))

    def set_practitioner(self, practitioner: Resource) -> None:
        self.dispatch(a.SetPractitioner(practitioner))
