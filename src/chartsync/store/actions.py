"""
Store Actions

Every change to the store state is described by one of these actions and
applied by the reducer. Commands come from views; the remaining actions are
dispatched by the store's own effects when network work completes.
"""

from typing import Any, Dict, List, Union
from dataclasses import dataclass, field

from chartsync.fhir.types import Resource, new_uuid_id
from chartsync.store.models import QueryRequest, SaveRequest, SaveState, TimelineGroup


@dataclass(frozen=True)
class Action:
    """Base action."""

    @property
    def type(self) -> str:
        return type(self).__name__


# =============================================================================
# Queries
# =============================================================================

@dataclass(frozen=True)
class Query(Action):
    """Load a query into the store (handled by an effect)."""
    request: QueryRequest


@dataclass(frozen=True)
class QueryLoading(Action):
    request: QueryRequest


@dataclass(frozen=True)
class QueryLoaded(Action):
    request: QueryRequest
    resources: List[Resource]


@dataclass(frozen=True)
class QueryError(Action):
    request: QueryRequest
    error: Any


@dataclass(frozen=True)
class SetObservationsByCode(Action):
    observations: Dict[str, List[Resource]]


# =============================================================================
# Edits
# =============================================================================

@dataclass(frozen=True)
class Edit(Action):
    resource: Resource


@dataclass(frozen=True)
class AddAutoGenerated(Action):
    """Show a synthesized resource without treating it as an edit."""
    resource: Resource


@dataclass(frozen=True)
class UndoEdits(Action):
    resource: Resource


@dataclass(frozen=True)
class UndoAll(Action):
    pass


@dataclass(frozen=True)
class ListAdd(Action):
    list: Resource
    add: Resource


@dataclass(frozen=True)
class ListRemove(Action):
    list: Resource
    remove: Resource


# =============================================================================
# Deletions
# =============================================================================

@dataclass(frozen=True)
class Delete(Action):
    """Soft delete, undoable until saved."""
    resource: Resource


@dataclass(frozen=True)
class UndoDelete(Action):
    resource: Resource


@dataclass(frozen=True)
class DeleteImmediately(Action):
    """Delete at the server right away (handled by an effect)."""
    resource: Resource


@dataclass(frozen=True)
class Deleted(Action):
    """The server confirmed an immediate delete."""
    resource: Resource


@dataclass(frozen=True)
class Discarded(Action):
    """An unsaved resource was deleted without a server call."""
    resource: Resource


@dataclass(frozen=True)
class DeleteFailed(Action):
    resource: Resource
    error: Any


# =============================================================================
# Saving
# =============================================================================

@dataclass(frozen=True)
class Save(Action):
    """
    Save pending edits (handled by an effect).

    `note_id` is the id given to the progress note composition when the
    request carries one.
    """
    request: Union[SaveRequest, Resource] = field(default_factory=SaveRequest)
    note_id: str = field(default_factory=new_uuid_id)


@dataclass(frozen=True)
class SetSaveState(Action):
    save_state: SaveState


@dataclass(frozen=True)
class SetSaved(Action):
    """
    The server accepted a transaction. `committed` holds the submitted
    resources as the server stored them, in the same order, with
    server-assigned ids for created resources.
    """
    submitted: List[Resource]
    committed: List[Resource]


# =============================================================================
# Read / Unread
# =============================================================================

@dataclass(frozen=True)
class UpdateUnread(Action):
    list: Resource


@dataclass(frozen=True)
class MarkRead(Action):
    resource: Resource


@dataclass(frozen=True)
class MarkUnread(Action):
    resource: Resource


# =============================================================================
# UI
# =============================================================================

@dataclass(frozen=True)
class ShowPanel(Action):
    panel: str


@dataclass(frozen=True)
class HidePanel(Action):
    panel: str


@dataclass(frozen=True)
class SetSearchingFor(Action):
    text: str


@dataclass(frozen=True)
class SetShowInTimeline(Action):
    group: TimelineGroup
    show: bool


@dataclass(frozen=True)
class SetPractitioner(Action):
    practitioner: Resource
