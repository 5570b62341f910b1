"""
Store Effects

Side effects triggered after an action has been applied: running queries,
submitting transactions and immediate deletes against the FHIR server, and
keeping derived indexes current. Network work runs in tasks spawned by the
store; tasks only report back by dispatching actions, so each continuation
sees one consistent snapshot and every failure becomes a state transition.
"""

from typing import TYPE_CHECKING, Callable, List, Tuple, Type

import structlog

from chartsync.errors import TransactionRejectedError
from chartsync.fhir.composition import new_progress_note
from chartsync.fhir.types import (
    Resource,
    bundle_resources,
    is_bundle,
    is_new,
    new_transaction,
    parse_location,
    reference_key,
    replace_references,
    transaction_entry,
)
from chartsync.store import actions as a
from chartsync.store.models import FhirState, QueryRequest, SaveRequest, SaveState, SaveStatus
from chartsync.store.selectors import observations_by_code, resources_to_save

if TYPE_CHECKING:
    from chartsync.store.store import FhirStore

logger = structlog.get_logger(__name__)

Effect = Callable[["FhirStore", a.Action, FhirState], None]

EFFECTS: List[Tuple[Type[a.Action], Effect]] = []

# queries starting with this prefix refresh the observation code index
OBSERVATION_QUERY_PREFIX = "Observation"


def effect(action_type: Type[a.Action]):
    """Register an effect for an action type (and its subclasses)."""
    def register(fn: Effect) -> Effect:
        EFFECTS.append((action_type, fn))
        return fn
    return register


# =============================================================================
# Queries
# =============================================================================

@effect(a.Query)
def on_query(store: "FhirStore", action: a.Query, previous: FhirState) -> None:
    request = action.request
    if store.state.queries.get(request.query) is not None:
        # loading or already resolved
        return

    store.dispatch(a.QueryLoading(request))
    store.spawn(fetch_query(store, request))


async def fetch_query(store: "FhirStore", request: QueryRequest) -> None:
    try:
        data = await store.server.get(request.query)
        resources = bundle_resources(data) if is_bundle(data) else [data]
        store.dispatch(a.QueryLoaded(request, resources))
    except Exception as e:
        logger.error("FHIR query error", query=request.query, error=str(e))
        store.dispatch(a.QueryError(request, e))
        return

    logger.info("FHIR query loaded", query=request.query, count=len(resources))


@effect(a.QueryLoaded)
def update_observations_by_code(store: "FhirStore", action: a.QueryLoaded, previous: FhirState) -> None:
    if not action.request.query.startswith(OBSERVATION_QUERY_PREFIX):
        return

    by_code = observations_by_code(store.state.resources_with_edits)
    store.dispatch(a.SetObservationsByCode(by_code))


# =============================================================================
# Saving
# =============================================================================

@effect(a.Save)
def on_save(store: "FhirStore", action: a.Save, previous: FhirState) -> None:
    store.spawn(save_transaction(store, action))


def _selected_for_save(state: FhirState, action: a.Save) -> List[Resource]:
    to_save = resources_to_save(state, action.request)

    request = action.request
    if isinstance(request, SaveRequest) and request.progress_note is not None:
        note = new_progress_note(
            state.patient_id,
            request.progress_note.html,
            to_save,
            markdown=request.progress_note.markdown,
            note_id=action.note_id,
        )
        to_save = [*to_save, note]
    return to_save


def committed_resources(to_save: List[Resource], response: Resource) -> List[Resource]:
    """
    The saved resources as the server stored them. Response entries follow
    the order of the transaction entries; each `response.location` gives
    the permanent id and version. References between created resources are
    rewritten to the permanent ids.
    """
    entries = response.get("entry") or []
    committed = []
    renamed = {}

    for index, resource in enumerate(to_save):
        entry = entries[index] if index < len(entries) else {}
        location = parse_location((entry.get("response") or {}).get("location"))
        saved = dict(resource)

        if location is not None and location.resource_type == resource["resourceType"]:
            if location.id != resource["id"]:
                renamed[resource["id"]] = str(location)
                saved["id"] = location.id
            if location.version_id:
                saved["meta"] = {**(resource.get("meta") or {}), "versionId": location.version_id}
        elif is_new(resource):
            logger.warning(
                "No permanent id for created resource",
                resource_type=resource["resourceType"],
                temp_id=resource["id"],
            )
        committed.append(saved)

    if renamed:
        committed = [replace_references(r, renamed) for r in committed]
    return committed


async def save_transaction(store: "FhirStore", action: a.Save) -> None:
    """
    Submit the selected edits as one transaction bundle.

    Saves run one at a time: a save dispatched while another is in flight
    waits for it and then selects from the edits as they are at that point.
    """
    async with store.save_lock:
        store.dispatch(a.SetSaveState(SaveState(state=SaveStatus.SAVING)))

        to_save = _selected_for_save(store.state, action)
        if not to_save:
            logger.info("Nothing to save")
            store.dispatch(a.SetSaveState(SaveState(state=SaveStatus.SAVED)))
            return

        bundle = new_transaction([transaction_entry(r) for r in to_save])
        logger.debug("Submitting transaction", entries=len(to_save), bundle_id=bundle["id"])

        try:
            response = await store.server.post(bundle)
            if not is_bundle(response):
                raise TransactionRejectedError(response)
        except Exception as e:
            logger.error("FHIR save error", error=str(e), transaction=bundle)
            store.dispatch(a.SetSaveState(SaveState(state=SaveStatus.ERROR, error=e)))
            return

        store.dispatch(a.SetSaved(to_save, committed_resources(to_save, response)))
        logger.info("Transaction saved", entries=len(to_save))


# =============================================================================
# Immediate Deletes
# =============================================================================

@effect(a.DeleteImmediately)
def on_delete_immediately(store: "FhirStore", action: a.DeleteImmediately, previous: FhirState) -> None:
    store.spawn(delete_at_server(store, action.resource))


async def delete_at_server(store: "FhirStore", resource: Resource) -> None:
    if is_new(resource):
        # never reached the server
        store.dispatch(a.Discarded(resource))
        return

    try:
        await store.server.delete(resource)
    except Exception as e:
        logger.error("FHIR DELETE error", reference=reference_key(resource), error=str(e))
        store.dispatch(a.DeleteFailed(resource, e))
        return

    store.dispatch(a.Deleted(resource))


# =============================================================================
# Unread Tracking
# =============================================================================

@effect(a.Action)
def track_unread_list(store: "FhirStore", action: a.Action, previous: FhirState) -> None:
    """Replace the unread set whenever the unread List changes."""
    list_id = store.state.unread_list_id
    if not list_id or isinstance(action, a.UpdateUnread):
        return

    current = store.state.resources_with_edits.lists.get(list_id)
    if current is None:
        return
    if current != previous.resources_with_edits.lists.get(list_id):
        store.dispatch(a.UpdateUnread(current))
