"""
Patient timeline built from the store's resources.
"""

from chartsync.timeline.groupers import DEFAULT_GROUPERS, Grouper
from chartsync.timeline.items import TimelineItem, parse_fhir_datetime
from chartsync.timeline.timeline import (
    build_timeline,
    create_searcher,
    group_by_date,
    sort_items,
    timeline_for,
)

__all__ = [
    "DEFAULT_GROUPERS",
    "Grouper",
    "TimelineItem",
    "parse_fhir_datetime",
    "build_timeline",
    "create_searcher",
    "group_by_date",
    "sort_items",
    "timeline_for",
]
