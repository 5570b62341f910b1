"""
Timeline Groupers

Each grouper turns one kind of resource into timeline items, honouring the
timeline visibility flags. Resources without a usable timestamp are left
out of the timeline.
"""

from typing import Callable, Dict, List, Optional

import structlog

from chartsync.fhir import codes
from chartsync.fhir.types import Resource, ResourceType, code_short_text, has_code, parse_ref
from chartsync.store.models import ShowInTimeline
from chartsync.store.resources import FhirResources
from chartsync.timeline.items import (
    MedicationAdministrationEntry,
    ObservationEntry,
    ObservationGroupEntry,
    ProgressNoteEntry,
    TimelineItem,
)

logger = structlog.get_logger(__name__)

Grouper = Callable[[FhirResources, ShowInTimeline], List[TimelineItem]]


def effective_time(resource: Resource) -> Optional[str]:
    """Clinically relevant timestamp of a resource."""
    period = resource.get("effectivePeriod") or {}
    return (
        resource.get("effectiveDateTime")
        or period.get("start")
        or resource.get("issued")
        or resource.get("date")
    )


def _item(id: str, when: Optional[str], entry) -> Optional[TimelineItem]:
    if not when:
        return None
    try:
        return TimelineItem.at(id, when, entry)
    except ValueError:
        logger.warning("Unparseable timeline timestamp", item_id=id, timestamp=when)
        return None


def _report_results(report: Resource, observations: Dict[str, Resource]) -> List[Resource]:
    results = []
    for result in report.get("result") or []:
        ref = parse_ref(result.get("reference"), ResourceType.OBSERVATION.value)
        observation = observations.get(ref.id) if ref else None
        if observation is None:
            logger.warning(
                "Missing observation for report",
                report_id=report.get("id"),
                reference=result.get("reference"),
            )
            continue
        results.append(observation)
    return results


def _observations_in_reports(resources: FhirResources) -> set:
    ids = set()
    for report in resources.diagnostic_reports.values():
        for result in report.get("result") or []:
            ref = parse_ref(result.get("reference"), ResourceType.OBSERVATION.value)
            if ref:
                ids.add(ref.id)
    return ids


def observations(resources: FhirResources, showing: ShowInTimeline) -> List[TimelineItem]:
    """Single observations that are not part of a report."""
    if not showing.obs:
        return []

    in_reports = _observations_in_reports(resources)
    items = [
        _item(f"Observation/{o['id']}", effective_time(o), ObservationEntry(observation=o))
        for o in resources.observations.values()
        if o["id"] not in in_reports
    ]
    return [i for i in items if i is not None]


def lab_reports(resources: FhirResources, showing: ShowInTimeline) -> List[TimelineItem]:
    """Diagnostic reports with their result observations clustered together."""
    if not showing.labs:
        return []

    items = []
    for report in resources.diagnostic_reports.values():
        code = report.get("code") or {}
        title = code_short_text(code) or "Report"
        title_full = ", ".join(
            c.get("display") or c.get("code") or "" for c in code.get("coding") or []
        ) or title
        entry = ObservationGroupEntry(
            title=title,
            title_full=title_full,
            observations=_report_results(report, resources.observations),
            report=report,
        )
        item = _item(f"DiagnosticReport/{report['id']}", effective_time(report), entry)
        if item is not None:
            items.append(item)
    return items


def medication_administrations(resources: FhirResources, showing: ShowInTimeline) -> List[TimelineItem]:
    """Medication administrations given at the same time, one item per time."""
    if not showing.meds:
        return []

    by_time: Dict[str, List[Resource]] = {}
    for med in resources.medication_administrations.values():
        when = effective_time(med)
        if when:
            by_time.setdefault(when, []).append(med)

    items = [
        _item(f"MedicationAdministration@{when}", when, MedicationAdministrationEntry(meds=meds))
        for when, meds in by_time.items()
    ]
    return [i for i in items if i is not None]


def progress_notes(resources: FhirResources, showing: ShowInTimeline) -> List[TimelineItem]:
    if not showing.notes:
        return []

    progress_note = codes.CompositionType.PROGRESS_NOTE["coding"][0]
    items = [
        _item(f"Composition/{c['id']}", c.get("date"), ProgressNoteEntry(document=c))
        for c in resources.compositions.values()
        if has_code(c.get("type"), progress_note)
    ]
    return [i for i in items if i is not None]


DEFAULT_GROUPERS: List[Grouper] = [
    observations,
    lab_reports,
    medication_administrations,
    progress_notes,
]
