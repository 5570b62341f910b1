"""
Topics

A topic groups a Composition tagged as a topic with the resources it
references: its encounter, and the conditions, prescriptions and tasks listed
in its section entries. Topics are derived on demand from a snapshot and are
never stored.
"""

from typing import Dict, List, Optional
from enum import Enum

import structlog
from pydantic import BaseModel, Field

from chartsync.fhir import codes
from chartsync.fhir.types import Resource, ResourceType, has_code, parse_reference
from chartsync.store.resources import FhirResources, ResourceById

logger = structlog.get_logger(__name__)


class TopicStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    UNKNOWN = "unknown"


class Topic(BaseModel):
    """A topic composition and the resources it links."""
    id: str
    composition: Resource
    encounter: Optional[Resource] = None
    conditions: List[Resource] = Field(default_factory=list)
    prescriptions: List[Resource] = Field(default_factory=list)
    tasks: List[Resource] = Field(default_factory=list)


def is_topic(composition: Resource) -> bool:
    return has_code(composition.get("type"), codes.CompositionType.TOPIC["coding"][0])


def resources_from_composition(
    composition: Resource,
    resources: ResourceById,
    resource_type: ResourceType,
) -> List[Resource]:
    """
    Resources of one kind referenced from the composition's sections.
    References that do not resolve are logged and skipped.
    """
    found = []
    for section in composition.get("section") or []:
        for entry in section.get("entry") or []:
            ref = parse_reference(entry, resource_type.value)
            if ref is None:
                # another kind of resource
                continue
            resource = resources.get(ref.id)
            if resource is None:
                logger.warning(
                    "Missing resource in composition",
                    composition_id=composition.get("id"),
                    reference=entry.get("reference"),
                )
                continue
            found.append(resource)
    return found


def _encounter_of(composition: Resource, encounters: ResourceById) -> Optional[Resource]:
    reference = composition.get("encounter")
    if not reference:
        return None

    ref = parse_reference(reference, ResourceType.ENCOUNTER.value)
    encounter = encounters.get(ref.id) if ref else None
    if encounter is None:
        logger.warning(
            "Missing encounter for composition",
            composition_id=composition.get("id"),
            reference=reference.get("reference"),
        )
    return encounter


def load_topics(
    compositions: ResourceById,
    encounters: ResourceById,
    conditions: ResourceById,
    prescriptions: Optional[ResourceById] = None,
    tasks: Optional[ResourceById] = None,
) -> List[Topic]:
    """Topics for every topic composition."""
    prescriptions = prescriptions or {}
    tasks = tasks or {}

    return [
        Topic(
            id=composition["id"],
            composition=composition,
            encounter=_encounter_of(composition, encounters),
            conditions=resources_from_composition(composition, conditions, ResourceType.CONDITION),
            prescriptions=resources_from_composition(
                composition, prescriptions, ResourceType.MEDICATION_REQUEST
            ),
            tasks=resources_from_composition(composition, tasks, ResourceType.TASK),
        )
        for composition in compositions.values()
        if is_topic(composition)
    ]


def topics_from(resources: FhirResources) -> List[Topic]:
    """Topics of a whole resource graph (typically the working view)."""
    return load_topics(
        resources.compositions,
        resources.encounters,
        resources.conditions,
        resources.medication_requests,
        resources.tasks,
    )


# =============================================================================
# Status
# =============================================================================

def is_encounter_active(encounter: Resource) -> bool:
    return encounter.get("status") not in ("finished", "cancelled")


def active_status(topic: Topic) -> TopicStatus:
    """
    Status from the linked encounter if there is one, otherwise from the
    composition's topic-status category.
    """
    if topic.encounter is not None:
        return TopicStatus.ACTIVE if is_encounter_active(topic.encounter) else TopicStatus.INACTIVE

    our_codes = [
        (category.get("coding") or [{}])[0].get("code")
        for category in topic.composition.get("category") or []
        if (category.get("coding") or [{}])[0].get("system") == codes.CompositionCategory.SYSTEM
    ]
    if "active" in our_codes:
        return TopicStatus.ACTIVE
    if "inactive" in our_codes:
        return TopicStatus.INACTIVE

    logger.warning("Unknown topic status", topic_id=topic.id)
    return TopicStatus.UNKNOWN


def is_active(topic: Topic) -> bool:
    return active_status(topic) == TopicStatus.ACTIVE


def topics_by_status(topics: List[Topic]) -> Dict[TopicStatus, List[Topic]]:
    grouped: Dict[TopicStatus, List[Topic]] = {status: [] for status in TopicStatus}
    for topic in topics:
        grouped[active_status(topic)].append(topic)
    return grouped
