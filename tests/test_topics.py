"""
Tests for topic resolution and standalone topic generation.
"""

import asyncio
import copy

import pytest

from chartsync.fhir import codes
from chartsync.fhir.composition import add_entry, get_entries, get_markdown, remove_entry, set_text
from chartsync.fhir.types import is_new
from chartsync.store.resources import FhirResources
from chartsync.topics import (
    TopicStatus,
    active_status,
    create_topics_for_standalone_resources,
    load_topics,
    standalone_topic_compositions,
    topics_from,
)
from chartsync.topics.standalone import UNCODED_CONDITION_TITLE, UNCODED_ENCOUNTER_TITLE
from chartsync.topics.topic import topics_by_status

from conftest import bundle, condition


def topic_composition(id, *references, encounter=None, category=None):
    composition = {
        "resourceType": "Composition",
        "id": id,
        "status": "preliminary",
        "type": copy.deepcopy(codes.CompositionType.TOPIC),
        "title": f"Topic {id}",
        "section": [{"entry": [{"reference": r} for r in references]}],
    }
    if encounter:
        composition["encounter"] = {"reference": encounter}
    if category:
        composition["category"] = [copy.deepcopy(category)]
    return composition


def graph(*resources):
    result = FhirResources()
    for resource in resources:
        result.put(resource)
    return result


class TestLoadTopics:

    def test_resolves_referenced_resources(self):
        resources = graph(
            topic_composition(
                "t1", "Condition/c1", "MedicationRequest/m1", "Task/k1", encounter="Encounter/e1",
            ),
            condition("c1"),
            {"resourceType": "MedicationRequest", "id": "m1"},
            {"resourceType": "Task", "id": "k1"},
            {"resourceType": "Encounter", "id": "e1", "status": "in-progress"},
        )

        [topic] = topics_from(resources)

        assert topic.id == "t1"
        assert [c["id"] for c in topic.conditions] == ["c1"]
        assert [p["id"] for p in topic.prescriptions] == ["m1"]
        assert [t["id"] for t in topic.tasks] == ["k1"]
        assert topic.encounter["id"] == "e1"

    def test_missing_references_are_dropped(self):
        resources = graph(
            topic_composition("t1", "Condition/c1", "Condition/gone", encounter="Encounter/gone"),
            condition("c1"),
        )

        [topic] = topics_from(resources)

        assert [c["id"] for c in topic.conditions] == ["c1"]
        assert topic.encounter is None

    def test_non_topic_compositions_are_ignored(self):
        note = {
            "resourceType": "Composition",
            "id": "n1",
            "type": copy.deepcopy(codes.CompositionType.PROGRESS_NOTE),
        }
        assert load_topics({"n1": note}, {}, {}) == []


class TestActiveStatus:

    def test_encounter_decides(self):
        resources = graph(
            topic_composition("t1", encounter="Encounter/e1", category=codes.CompositionCategory.ACTIVE),
            {"resourceType": "Encounter", "id": "e1", "status": "finished"},
        )
        assert active_status(topics_from(resources)[0]) == TopicStatus.INACTIVE

    def test_category_when_no_encounter(self):
        active = graph(topic_composition("t1", category=codes.CompositionCategory.ACTIVE))
        inactive = graph(topic_composition("t2", category=codes.CompositionCategory.INACTIVE))

        assert active_status(topics_from(active)[0]) == TopicStatus.ACTIVE
        assert active_status(topics_from(inactive)[0]) == TopicStatus.INACTIVE

    def test_unknown_without_encounter_or_category(self):
        topics = topics_from(graph(topic_composition("t1")))
        assert active_status(topics[0]) == TopicStatus.UNKNOWN
        assert topics_by_status(topics)[TopicStatus.UNKNOWN] == topics


class TestStandaloneTopics:

    def test_condition_without_topic_gets_one(self):
        resources = graph(
            condition("c1", "Hypertension"),
            condition("c2", "Asthma", status="resolved"),
            topic_composition("t1", "Condition/c2"),
        )

        [composition] = standalone_topic_compositions(resources, "42")

        assert is_new(composition)
        assert composition["title"] == "Hypertension"
        assert composition["status"] == "preliminary"
        assert composition["subject"] == {"reference": "Patient/42"}
        assert composition["category"] == [codes.CompositionCategory.ACTIVE]
        assert get_entries(composition) == [{"reference": "Condition/c1"}]

    def test_uncoded_and_inactive_condition(self):
        uncoded = condition("c1", status="inactive")
        del uncoded["code"]

        [composition] = standalone_topic_compositions(graph(uncoded), "42")

        assert composition["title"] == UNCODED_CONDITION_TITLE
        assert composition["category"] == [codes.CompositionCategory.INACTIVE]

    def test_encounter_without_topic_gets_one(self):
        resources = graph({"resourceType": "Encounter", "id": "e1", "status": "in-progress"})

        [composition] = standalone_topic_compositions(resources, "42")

        assert composition["title"] == UNCODED_ENCOUNTER_TITLE
        assert composition["encounter"] == {"reference": "Encounter/e1"}

    @pytest.mark.asyncio
    async def test_created_after_initial_load(self, store, server):
        server.responses["Condition?patient=42"] = bundle(condition("c1"))

        creating = asyncio.ensure_future(create_topics_for_standalone_resources(store))
        store.query("Condition?patient=42", show_loading_screen=True)
        await store.drain()
        [composition] = await asyncio.wait_for(creating, timeout=1)

        [topic] = topics_from(store.working_view)
        assert topic.id == composition["id"]
        assert [c["id"] for c in topic.conditions] == ["c1"]
        assert not store.state.has_edits
        assert store.state.auto_generated.get("Composition", composition["id"]) is not None


class TestCompositionHelpers:

    def test_entries_and_text(self):
        composition = topic_composition("t1", "Condition/c1")

        added = add_entry({"reference": "Condition/c2"}, composition)
        removed = remove_entry({"reference": "Condition/c1"}, added)
        with_text = set_text("<b>BP</b>", "**BP**", removed)

        assert [e["reference"] for e in get_entries(added)] == ["Condition/c1", "Condition/c2"]
        assert get_entries(with_text) == [{"reference": "Condition/c2"}]
        assert get_markdown(with_text) == "**BP**"
        assert "<b>BP</b>" in with_text["section"][0]["text"]["div"]
        # input untouched
        assert get_entries(composition) == [{"reference": "Condition/c1"}]
