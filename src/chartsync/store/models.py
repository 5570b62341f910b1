"""
Store Models

State held by the FHIR store: the server-confirmed resource graph, the edit
overlay and its companions, per-query loading state, save state and the
UI flags views read alongside the resources.
"""

from typing import Any, Callable, Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from chartsync.fhir.types import Resource
from chartsync.store.resources import FhirResources


# =============================================================================
# Queries
# =============================================================================

class QueryStatus(str, Enum):
    """Query state machine states."""
    LOADING = "loading"
    ERROR = "error"
    LOADED = "loaded"


class QueryRequest(BaseModel):
    """A FHIR query to load into the store."""
    model_config = ConfigDict(frozen=True)

    query: str
    show_loading_screen: bool = False


class QueryState(BaseModel):
    """State of one query string."""
    model_config = ConfigDict(frozen=True)

    state: QueryStatus
    show_loading_screen: bool = False
    error: Any = None

    @classmethod
    def loading(cls, show_loading_screen: bool = False) -> "QueryState":
        return cls(state=QueryStatus.LOADING, show_loading_screen=show_loading_screen)

    @classmethod
    def loaded(cls) -> "QueryState":
        return cls(state=QueryStatus.LOADED)

    @classmethod
    def failed(cls, error: Any) -> "QueryState":
        return cls(state=QueryStatus.ERROR, error=error)


# =============================================================================
# Saving
# =============================================================================

class SaveStatus(str, Enum):
    """Save process states."""
    SAVING = "saving"
    ERROR = "error"
    SAVED = "saved"


class SaveState(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: SaveStatus
    error: Any = None


class ProgressNote(BaseModel):
    """Rich-text content saved as a progress note alongside the changes."""
    model_config = ConfigDict(frozen=True)

    html: str
    markdown: str = ""


class SaveRequest(BaseModel):
    """
    Which pending edits to save.

    With `resource`, only the edit with the same type and id is saved. With
    `filter`, only edits the predicate accepts. With neither, every pending
    edit is saved.
    """
    model_config = ConfigDict(frozen=True)

    resource: Optional[Resource] = None
    filter: Optional[Callable[[Resource], bool]] = None
    progress_note: Optional[ProgressNote] = None


# =============================================================================
# UI State
# =============================================================================

class TimelineGroup(str, Enum):
    """Kinds of items the timeline can show or hide."""
    OBS = "obs"
    LABS = "labs"
    MEDS = "meds"
    NOTES = "notes"


class ShowInTimeline(BaseModel):
    model_config = ConfigDict(frozen=True)

    obs: bool = True
    labs: bool = True
    meds: bool = True
    notes: bool = False

    def shows(self, group: TimelineGroup | str) -> bool:
        return getattr(self, TimelineGroup(group).value)


class ByCode(BaseModel):
    """Observations indexed by `system|code`."""
    observations: Dict[str, List[Resource]] = Field(default_factory=dict)


# =============================================================================
# Store State
# =============================================================================

class FhirState(BaseModel):
    """
    The whole store state.

    A published FhirState is never modified: the store applies each
    command to a `draft()` and swaps the result in. Readers can therefore
    keep a reference to any state as a consistent snapshot.
    """

    # loaded state of FHIR queries
    queries: Dict[str, QueryState] = Field(default_factory=dict)
    show_loading_screen: bool = True
    show_errors: bool = False

    # resources persisted at the server
    resources_from_server: FhirResources = Field(default_factory=FhirResources)

    # local changes layered over the server state
    edits: FhirResources = Field(default_factory=FhirResources)
    auto_generated: FhirResources = Field(default_factory=FhirResources)
    deletions: Dict[str, Resource] = Field(default_factory=dict)
    pending_deletes: Dict[str, Resource] = Field(default_factory=dict)
    delete_errors: Dict[str, Any] = Field(default_factory=dict)

    # loaded observations by code
    by_code: ByCode = Field(default_factory=ByCode)

    save_state: Optional[SaveState] = None
    save_generation: int = 0

    # session
    patient_id: str = ""
    practitioner_id: str = ""
    unread_list_id: Optional[str] = None

    # misc
    showing_panels: Dict[str, bool] = Field(default_factory=dict)
    showing_in_timeline: ShowInTimeline = Field(default_factory=ShowInTimeline)
    searching_for: Optional[str] = None
    unread: Dict[str, bool] = Field(default_factory=dict)

    _working: Optional[FhirResources] = PrivateAttr(default=None)

    @classmethod
    def from_settings(cls, settings=None) -> "FhirState":
        """Initial state for the configured patient and practitioner."""
        if settings is None:
            from chartsync.config import get_settings
            settings = get_settings()
        return cls(
            patient_id=settings.ehr.patient_id,
            practitioner_id=settings.ehr.practitioner_id,
            unread_list_id=settings.ehr.unread_list_id,
        )

    @property
    def resources_with_edits(self) -> FhirResources:
        """
        The working view: server resources overlaid with auto-generated
        resources and then edits, minus soft and pending deletions.
        Computed once per snapshot.
        """
        if self._working is None:
            self._working = self.resources_from_server.overlaid(
                self.auto_generated,
                self.edits,
                hidden=[*self.deletions, *self.pending_deletes],
            )
        return self._working

    @property
    def has_edits(self) -> bool:
        return len(self.edits) > 0

    def draft(self) -> "FhirState":
        """Copy of this state that a reducer may modify."""
        draft = self.model_copy(
            update={
                "queries": dict(self.queries),
                "resources_from_server": self.resources_from_server.copy_buckets(),
                "edits": self.edits.copy_buckets(),
                "auto_generated": self.auto_generated.copy_buckets(),
                "deletions": dict(self.deletions),
                "pending_deletes": dict(self.pending_deletes),
                "delete_errors": dict(self.delete_errors),
                "showing_panels": dict(self.showing_panels),
                "unread": dict(self.unread),
            }
        )
        draft._working = None
        return draft
