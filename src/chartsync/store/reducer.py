"""
Store Reducer

Applies one action to a draft state. Reducers never await and never talk to
the server; everything they need is in the draft and the action. Resources
coming in through an action are deep-copied so callers cannot modify the
store through references they still hold.
"""

from typing import Callable, Dict, Type
import copy

from chartsync.fhir.types import Resource, reference_key, reference_to, replace_references, type_id
from chartsync.store import actions as a
from chartsync.store.models import (
    ByCode,
    FhirState,
    QueryState,
    SaveState,
    SaveStatus,
    TimelineGroup,
)
from chartsync.store.resources import FhirResources
from chartsync.store.selectors import still_loading

Reducer = Callable[[FhirState, a.Action], None]

_REDUCERS: Dict[Type[a.Action], Reducer] = {}


def reducer(action_type: Type[a.Action]):
    """Register the reducer for an action type."""
    def register(fn: Reducer) -> Reducer:
        _REDUCERS[action_type] = fn
        return fn
    return register


def reduce(state: FhirState, action: a.Action) -> None:
    """Apply `action` to the draft `state` in place."""
    fn = _REDUCERS.get(type(action))
    if fn is None:
        raise TypeError(f"No reducer for action {action.type}")
    fn(state, action)
    state._working = None


def _own(resource: Resource) -> Resource:
    return copy.deepcopy(resource)


# =============================================================================
# Queries
# =============================================================================

@reducer(a.Query)
def _query(state: FhirState, action: a.Query) -> None:
    # handled by an effect
    pass


@reducer(a.QueryLoading)
def _query_loading(state: FhirState, action: a.QueryLoading) -> None:
    request = action.request
    state.queries[request.query] = QueryState.loading(request.show_loading_screen)
    if request.show_loading_screen:
        state.show_loading_screen = True


@reducer(a.QueryLoaded)
def _query_loaded(state: FhirState, action: a.QueryLoaded) -> None:
    for resource in action.resources:
        state.resources_from_server.put(_own(resource))
    state.queries[action.request.query] = QueryState.loaded()

    if state.show_loading_screen:
        state.show_loading_screen = still_loading(state)


@reducer(a.QueryError)
def _query_error(state: FhirState, action: a.QueryError) -> None:
    state.queries[action.request.query] = QueryState.failed(action.error)
    state.show_errors = True

    if state.show_loading_screen:
        state.show_loading_screen = still_loading(state)


@reducer(a.SetObservationsByCode)
def _set_observations_by_code(state: FhirState, action: a.SetObservationsByCode) -> None:
    state.by_code = ByCode(observations=action.observations)


# =============================================================================
# Edits
# =============================================================================

def _put_edit(state: FhirState, resource: Resource) -> None:
    state.edits.put(resource)
    # an explicit edit takes over an auto-generated resource
    state.auto_generated.remove_resource(resource)
    state.save_state = None


@reducer(a.Edit)
def _edit(state: FhirState, action: a.Edit) -> None:
    _put_edit(state, _own(action.resource))


@reducer(a.AddAutoGenerated)
def _add_auto_generated(state: FhirState, action: a.AddAutoGenerated) -> None:
    state.auto_generated.put(_own(action.resource))


@reducer(a.UndoEdits)
def _undo_edits(state: FhirState, action: a.UndoEdits) -> None:
    state.edits.remove_resource(action.resource)


@reducer(a.UndoAll)
def _undo_all(state: FhirState, action: a.UndoAll) -> None:
    state.edits.clear()


def _current_list(state: FhirState, list_resource: Resource) -> Resource:
    current = state.resources_with_edits.lists.get(list_resource["id"])
    return _own(current if current is not None else list_resource)


@reducer(a.ListAdd)
def _list_add(state: FhirState, action: a.ListAdd) -> None:
    updated = _current_list(state, action.list)
    updated["entry"] = [*(updated.get("entry") or []), {"item": reference_to(action.add)}]
    _put_edit(state, updated)


@reducer(a.ListRemove)
def _list_remove(state: FhirState, action: a.ListRemove) -> None:
    to_remove = reference_to(action.remove)["reference"]
    updated = _current_list(state, action.list)

    entries = list(updated.get("entry") or [])
    for index, entry in enumerate(entries):
        if (entry.get("item") or {}).get("reference") == to_remove:
            del entries[index]
            break
    updated["entry"] = entries
    _put_edit(state, updated)


# =============================================================================
# Deletions
# =============================================================================

@reducer(a.Delete)
def _delete(state: FhirState, action: a.Delete) -> None:
    resource = _own(action.resource)
    state.deletions[reference_key(resource)] = resource
    state.edits.remove_resource(resource)
    state.auto_generated.remove_resource(resource)
    state.save_state = None


@reducer(a.UndoDelete)
def _undo_delete(state: FhirState, action: a.UndoDelete) -> None:
    state.deletions.pop(reference_key(action.resource), None)


@reducer(a.DeleteImmediately)
def _delete_immediately(state: FhirState, action: a.DeleteImmediately) -> None:
    resource = _own(action.resource)
    state.pending_deletes[reference_key(resource)] = resource
    state.edits.remove_resource(resource)
    state.auto_generated.remove_resource(resource)
    state.save_state = None


@reducer(a.Deleted)
def _deleted(state: FhirState, action: a.Deleted) -> None:
    key = reference_key(action.resource)
    state.resources_from_server.remove_resource(action.resource)
    state.pending_deletes.pop(key, None)
    state.delete_errors.pop(key, None)
    state.save_generation += 1


@reducer(a.Discarded)
def _discarded(state: FhirState, action: a.Discarded) -> None:
    key = reference_key(action.resource)
    state.pending_deletes.pop(key, None)
    state.delete_errors.pop(key, None)


@reducer(a.DeleteFailed)
def _delete_failed(state: FhirState, action: a.DeleteFailed) -> None:
    state.delete_errors[reference_key(action.resource)] = action.error
    state.show_errors = True


# =============================================================================
# Saving
# =============================================================================

def _replace_references(resources: FhirResources, renamed: Dict[str, str]) -> None:
    for resource in list(resources.values()):
        replaced = replace_references(resource, renamed)
        if replaced is not resource:
            resources.put(replaced)


@reducer(a.Save)
def _save(state: FhirState, action: a.Save) -> None:
    # the progress note is built with the transaction, not kept as an edit
    state.save_state = SaveState(state=SaveStatus.SAVING)


@reducer(a.SetSaveState)
def _set_save_state(state: FhirState, action: a.SetSaveState) -> None:
    state.save_state = action.save_state


@reducer(a.SetSaved)
def _set_saved(state: FhirState, action: a.SetSaved) -> None:
    renamed = {
        submitted["id"]: type_id(committed)
        for submitted, committed in zip(action.submitted, action.committed)
        if submitted["id"] != committed["id"]
    }

    for submitted, committed in zip(action.submitted, action.committed):
        state.resources_from_server.put(_own(committed))

        current = state.edits.get_resource(submitted)
        if current is None:
            continue
        state.edits.remove_resource(submitted)
        if current != submitted:
            # edited again while the transaction was in flight
            state.edits.put({**current, "id": committed["id"]})

    if renamed:
        _replace_references(state.edits, renamed)
        _replace_references(state.auto_generated, renamed)

    state.save_state = SaveState(state=SaveStatus.SAVED)
    state.save_generation += 1


# =============================================================================
# Read / Unread
# =============================================================================

@reducer(a.UpdateUnread)
def _update_unread(state: FhirState, action: a.UpdateUnread) -> None:
    refs = [(e.get("item") or {}).get("reference") for e in action.list.get("entry") or []]
    state.unread = {ref: True for ref in refs if ref}


@reducer(a.MarkRead)
def _mark_read(state: FhirState, action: a.MarkRead) -> None:
    state.unread.pop(type_id(action.resource), None)


@reducer(a.MarkUnread)
def _mark_unread(state: FhirState, action: a.MarkUnread) -> None:
    state.unread[type_id(action.resource)] = True


# =============================================================================
# UI
# =============================================================================

@reducer(a.ShowPanel)
def _show_panel(state: FhirState, action: a.ShowPanel) -> None:
    state.showing_panels[action.panel] = True


@reducer(a.HidePanel)
def _hide_panel(state: FhirState, action: a.HidePanel) -> None:
    state.showing_panels[action.panel] = False


@reducer(a.SetSearchingFor)
def _set_searching_for(state: FhirState, action: a.SetSearchingFor) -> None:
    state.searching_for = action.text or None


@reducer(a.SetShowInTimeline)
def _set_show_in_timeline(state: FhirState, action: a.SetShowInTimeline) -> None:
    group = TimelineGroup(action.group).value
    state.showing_in_timeline = state.showing_in_timeline.model_copy(
        update={group: action.show}
    )


@reducer(a.SetPractitioner)
def _set_practitioner(state: FhirState, action: a.SetPractitioner) -> None:
    state.practitioner_id = action.practitioner["id"]
