"""
Timeline

Builds the date-grouped timeline from a resource snapshot: run the groupers,
sort by timestamp, apply the search filter, then group by calendar date.
Nothing is cached; every call re-scans its input.
"""

from typing import Callable, Dict, List, Optional, Sequence
import json

from chartsync.store.models import FhirState, ShowInTimeline
from chartsync.store.resources import FhirResources
from chartsync.timeline.groupers import DEFAULT_GROUPERS, Grouper
from chartsync.timeline.items import TimelineItem

Searcher = Callable[[TimelineItem], bool]


def sort_items(items: List[TimelineItem], oldest_first: bool = False) -> List[TimelineItem]:
    """Newest first unless `oldest_first`; ties keep their order."""
    return sorted(items, key=lambda i: i.date_time_string, reverse=not oldest_first)


def create_searcher(searching_for: str) -> Searcher:
    """
    Predicate matching items whose resources contain every
    whitespace-separated term, ignoring case.
    """
    terms = [t.lower() for t in searching_for.split()]

    def matches(item: TimelineItem) -> bool:
        text = json.dumps(item.resources(), default=str).lower()
        return all(term in text for term in terms)

    return matches


def group_by_date(items: Sequence[TimelineItem]) -> Dict[str, List[TimelineItem]]:
    """Items keyed by `YYYYMMDD`, dates in order of first appearance."""
    groups: Dict[str, List[TimelineItem]] = {}
    for item in items:
        groups.setdefault(item.date_key, []).append(item)
    return groups


def build_timeline(
    resources: FhirResources,
    showing: Optional[ShowInTimeline] = None,
    groupers: Sequence[Grouper] = DEFAULT_GROUPERS,
    searching_for: Optional[str] = None,
    oldest_first: bool = False,
) -> Dict[str, List[TimelineItem]]:
    showing = showing or ShowInTimeline()

    items = [item for grouper in groupers for item in grouper(resources, showing)]
    items = sort_items(items, oldest_first)

    if searching_for:
        matches = create_searcher(searching_for)
        items = [item for item in items if matches(item)]

    return group_by_date(items)


def timeline_for(
    state: FhirState,
    groupers: Sequence[Grouper] = DEFAULT_GROUPERS,
    oldest_first: bool = False,
) -> Dict[str, List[TimelineItem]]:
    """Timeline of a store snapshot, using its visibility flags and search filter."""
    return build_timeline(
        state.resources_with_edits,
        state.showing_in_timeline,
        groupers,
        state.searching_for,
        oldest_first,
    )
