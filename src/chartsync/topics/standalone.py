"""
Standalone Topics

Conditions and encounters that no topic references yet get a topic of
their own, so every problem shows up in the topic list. The generated
compositions are added to the store as auto-generated resources: visible,
but not edits until the user changes them.
"""

from typing import TYPE_CHECKING, Dict, List
import copy

import structlog

from chartsync.fhir import codes
from chartsync.fhir.composition import new_composition
from chartsync.fhir.types import Resource, code_short_text, now_iso, reference_to
from chartsync.store.resources import FhirResources
from chartsync.topics.topic import load_topics

if TYPE_CHECKING:
    from chartsync.store.store import FhirStore

logger = structlog.get_logger(__name__)

UNCODED_CONDITION_TITLE = "Topic for un-coded Condition"
UNCODED_ENCOUNTER_TITLE = "Topic for un-coded Encounter"


def _patient_reference(patient_id: str) -> Dict[str, str]:
    return {"reference": f"Patient/{patient_id}"}


def topic_composition_from_condition(condition: Resource, patient_id: str) -> Resource:
    title = code_short_text(condition.get("code")) or UNCODED_CONDITION_TITLE
    clinical_status = ((condition.get("clinicalStatus") or {}).get("coding") or [{}])[0]
    active = clinical_status.get("code") == "active"

    return new_composition(
        subject=_patient_reference(patient_id),
        status="preliminary",
        type=copy.deepcopy(codes.CompositionType.TOPIC),
        date=now_iso(),
        category=[
            copy.deepcopy(
                codes.CompositionCategory.ACTIVE if active else codes.CompositionCategory.INACTIVE
            )
        ],
        title=title,
        section=[{"entry": [reference_to(condition)]}],
    )


def topic_composition_from_encounter(encounter: Resource, patient_id: str) -> Resource:
    return new_composition(
        subject=_patient_reference(patient_id),
        status="preliminary",
        type=copy.deepcopy(codes.CompositionType.TOPIC),
        date=now_iso(),
        category=[copy.deepcopy(codes.CompositionCategory.ACTIVE)],
        encounter=reference_to(encounter),
        title=UNCODED_ENCOUNTER_TITLE,
    )


def standalone_topic_compositions(resources: FhirResources, patient_id: str) -> List[Resource]:
    """New topic compositions for conditions and encounters without a topic."""
    topics = load_topics(resources.compositions, resources.encounters, resources.conditions)

    conditions_in_topics = {c["id"] for t in topics for c in t.conditions}
    encounters_in_topics = {t.encounter["id"] for t in topics if t.encounter is not None}

    new_compositions = [
        topic_composition_from_condition(condition, patient_id)
        for condition in resources.conditions.values()
        if condition["id"] not in conditions_in_topics
    ]
    new_compositions += [
        topic_composition_from_encounter(encounter, patient_id)
        for encounter in resources.encounters.values()
        if encounter["id"] not in encounters_in_topics
    ]
    return new_compositions


async def create_topics_for_standalone_resources(store: "FhirStore") -> List[Resource]:
    """
    Wait for the initial resources to load, then add a topic for every
    condition and encounter that has none.
    """
    state = await store.wait_for_resources_to_load()
    compositions = standalone_topic_compositions(state.resources_with_edits, state.patient_id)

    for composition in compositions:
        store.add_auto_generated(composition)

    logger.info("Created standalone topics", count=len(compositions))
    return compositions
