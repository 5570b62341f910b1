"""
chartsync Store

In-memory FHIR resource store with an edit overlay, query loading and
transaction saves.
"""

from chartsync.store.models import (
    FhirState,
    ProgressNote,
    QueryRequest,
    QueryState,
    QueryStatus,
    SaveRequest,
    SaveState,
    SaveStatus,
    ShowInTimeline,
    TimelineGroup,
)
from chartsync.store.resources import FhirResources
from chartsync.store.store import FhirStore

__all__ = [
    "FhirStore",
    "FhirState",
    "FhirResources",
    "ProgressNote",
    "QueryRequest",
    "QueryState",
    "QueryStatus",
    "SaveRequest",
    "SaveState",
    "SaveStatus",
    "ShowInTimeline",
    "TimelineGroup",
]
