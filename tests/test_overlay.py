"""
Tests for the edit overlay: edits, undo, soft deletes, auto-generated
resources and snapshot isolation.
"""

import pytest

from chartsync.errors import UnknownResourceTypeError
from chartsync.fhir.types import new_uuid_id
from chartsync.store import actions as a
from chartsync.store.models import QueryRequest, SaveState, SaveStatus

from conftest import condition


def load(store, *resources, query="Condition?patient=42"):
    store.dispatch(a.QueryLoaded(QueryRequest(query=query), list(resources)))


class TestEdits:

    def test_edit_overrides_server_resource(self, store):
        load(store, condition("c1", "Hypertension"))
        store.edit(condition("c1", "Essential hypertension"))

        view = store.working_view
        assert view.get("Condition", "c1")["code"]["text"] == "Essential hypertension"
        assert store.state.resources_from_server.get("Condition", "c1")["code"]["text"] == "Hypertension"
        assert store.state.has_edits

    def test_edit_resets_save_state(self, store):
        store.dispatch(a.SetSaveState(SaveState(state=SaveStatus.SAVED)))
        store.edit(condition("c1"))
        assert store.state.save_state is None

    def test_undo_edits_restores_server_value(self, store):
        load(store, condition("c1", "Hypertension"))
        before = store.working_view.get("Condition", "c1")

        store.edit(condition("c1", "Changed"))
        store.undo_edits(condition("c1"))

        assert store.working_view.get("Condition", "c1") == before
        assert not store.state.has_edits

    def test_undo_edits_of_new_resource_removes_it(self, store):
        new = condition(new_uuid_id())
        store.edit(new)
        store.undo_edits(new)
        assert store.working_view.get("Condition", new["id"]) is None

    def test_undo_all_restores_server_view(self, store):
        load(store, condition("c1"), condition("c2"))
        store.edit(condition("c1", "Changed"))
        store.edit(condition(new_uuid_id(), "New"))

        store.undo_all()

        assert store.working_view.conditions == store.state.resources_from_server.conditions
        assert not store.state.has_edits

    def test_working_view_merges_server_and_edits(self, store):
        load(store, condition("c1"), condition("c2"))
        store.edit(condition("c2", "Edited"))
        store.edit(condition("c3", "Added"))

        conditions = store.working_view.conditions
        assert set(conditions) == {"c1", "c2", "c3"}
        assert conditions["c1"] == store.state.resources_from_server.conditions["c1"]
        assert conditions["c2"]["code"]["text"] == "Edited"


class TestSnapshots:

    def test_published_snapshot_never_changes(self, store):
        load(store, condition("c1", "Hypertension"))
        snapshot = store.state
        view = snapshot.resources_with_edits

        store.edit(condition("c1", "Changed"))
        store.delete(condition("c1"))

        assert snapshot.edits.conditions == {}
        assert snapshot.deletions == {}
        assert view.get("Condition", "c1")["code"]["text"] == "Hypertension"
        assert store.state is not snapshot

    def test_caller_mutation_does_not_reach_store(self, store):
        resource = condition("c1", "Hypertension")
        store.edit(resource)
        resource["code"]["text"] = "Mutated"

        assert store.working_view.get("Condition", "c1")["code"]["text"] == "Hypertension"

    def test_unknown_type_leaves_state_untouched(self, store):
        before = store.state
        with pytest.raises(UnknownResourceTypeError):
            store.edit({"resourceType": "Immunization", "id": "i1"})
        assert store.state is before

    def test_listeners_see_each_snapshot(self, store):
        seen = []
        unsubscribe = store.subscribe(lambda state, action: seen.append(action.type))

        store.edit(condition("c1"))
        unsubscribe()
        store.edit(condition("c2"))

        assert seen == ["Edit"]
        assert [action.type for action in store.get_history()] == ["Edit", "Edit"]


class TestSoftDelete:

    def test_delete_hides_and_undo_restores(self, store):
        load(store, condition("c1"))
        original = store.working_view.get("Condition", "c1")

        store.delete(condition("c1"))
        assert store.working_view.get("Condition", "c1") is None
        assert "Condition/c1" in store.state.deletions

        store.undo_delete(condition("c1"))
        assert store.working_view.get("Condition", "c1") == original

    def test_delete_drops_pending_edit(self, store):
        load(store, condition("c1", "Hypertension"))
        store.edit(condition("c1", "Changed"))
        store.delete(condition("c1"))
        store.undo_delete(condition("c1"))

        assert store.working_view.get("Condition", "c1")["code"]["text"] == "Hypertension"


class TestAutoGenerated:

    def test_auto_generated_is_visible_but_not_an_edit(self, store):
        composition = {"resourceType": "Composition", "id": new_uuid_id(), "title": "Topic"}
        store.add_auto_generated(composition)

        assert store.working_view.get("Composition", composition["id"]) == composition
        assert not store.state.has_edits

    def test_editing_auto_generated_makes_it_an_edit(self, store):
        composition = {"resourceType": "Composition", "id": new_uuid_id(), "title": "Topic"}
        store.add_auto_generated(composition)
        store.edit({**composition, "title": "Renamed"})

        assert store.state.edits.get("Composition", composition["id"])["title"] == "Renamed"
        assert store.state.auto_generated.get("Composition", composition["id"]) is None

    def test_undo_all_keeps_auto_generated(self, store):
        composition = {"resourceType": "Composition", "id": new_uuid_id(), "title": "Topic"}
        store.add_auto_generated(composition)
        store.undo_all()
        assert store.working_view.get("Composition", composition["id"]) == composition


class TestLists:

    def _list(self, *refs):
        return {
            "resourceType": "List",
            "id": "l1",
            "status": "current",
            "mode": "working",
            "entry": [{"item": {"reference": r}} for r in refs],
        }

    def test_list_add_appends_entry(self, store):
        load(store, self._list("Condition/c1"), query="List/l1")
        store.list_add(self._list(), condition("c2"))

        entries = store.working_view.get("List", "l1")["entry"]
        assert [e["item"]["reference"] for e in entries] == ["Condition/c1", "Condition/c2"]
        assert store.state.edits.get("List", "l1") is not None

    def test_list_remove_drops_first_match_only(self, store):
        load(store, self._list("Condition/c1", "Condition/c2", "Condition/c1"), query="List/l1")
        store.list_remove(self._list(), condition("c1"))

        entries = store.working_view.get("List", "l1")["entry"]
        assert [e["item"]["reference"] for e in entries] == ["Condition/c2", "Condition/c1"]

    def test_list_remove_missing_item_keeps_entries(self, store):
        load(store, self._list("Condition/c1"), query="List/l1")
        store.list_remove(self._list(), condition("c9"))

        entries = store.working_view.get("List", "l1")["entry"]
        assert [e["item"]["reference"] for e in entries] == ["Condition/c1"]


class TestUiState:

    def test_panels_search_and_practitioner(self, store):
        store.show_panel("notes")
        store.set_search_filter("pressure")
        store.set_practitioner({"resourceType": "Practitioner", "id": "p2"})
        assert store.state.showing_panels == {"notes": True}
        assert store.state.searching_for == "pressure"
        assert store.state.practitioner_id == "p2"

        store.hide_panel("notes")
        store.set_search_filter("")
        assert store.state.showing_panels == {"notes": False}
        assert store.state.searching_for is None

    def test_timeline_visibility(self, store):
        store.set_timeline_visibility("notes", True)
        store.set_timeline_visibility("obs", False)

        showing = store.state.showing_in_timeline
        assert showing.notes is True
        assert showing.obs is False
        assert showing.shows("labs") is True

    def test_unknown_timeline_group_raises(self, store):
        with pytest.raises(ValueError):
            store.set_timeline_visibility("vitals", True)
