"""
Tests for read/unread tracking.
"""

import pytest

from chartsync.store import FhirState, FhirStore
from chartsync.store import actions as a
from chartsync.store.models import QueryRequest

from conftest import bundle, condition


def unread_list(*refs):
    return {
        "resourceType": "List",
        "id": "unread",
        "status": "current",
        "mode": "working",
        "entry": [{"item": {"reference": r}} for r in refs],
    }


@pytest.fixture
def tracking_store(server):
    return FhirStore(server, state=FhirState(patient_id="42", unread_list_id="unread"))


def test_update_unread_replaces_set(store):
    store.update_unread(unread_list("Condition/c1", "Condition/c2"))
    store.update_unread(unread_list("Condition/c3"))
    assert store.state.unread == {"Condition/c3": True}


def test_mark_read_and_unread(store):
    store.update_unread(unread_list("Condition/c1"))

    store.mark_read(condition("c1"))
    assert store.state.unread == {}

    store.mark_unread(condition("c2"))
    assert store.state.unread == {"Condition/c2": True}


@pytest.mark.asyncio
async def test_loading_unread_list_updates_unread(tracking_store, server):
    server.responses["List/unread"] = unread_list("Condition/c1", "Observation/o1")

    tracking_store.query("List/unread")
    await tracking_store.drain()

    assert tracking_store.state.unread == {"Condition/c1": True, "Observation/o1": True}


def test_editing_unread_list_updates_unread(tracking_store):
    tracking_store.dispatch(a.QueryLoaded(QueryRequest(query="List/unread"), [unread_list("Condition/c1")]))

    tracking_store.list_add(unread_list(), condition("c2"))
    assert tracking_store.state.unread == {"Condition/c1": True, "Condition/c2": True}

    tracking_store.list_remove(unread_list(), condition("c1"))
    assert tracking_store.state.unread == {"Condition/c2": True}


@pytest.mark.asyncio
async def test_other_queries_leave_unread_alone(tracking_store, server):
    tracking_store.mark_unread(condition("c9"))
    server.responses["Condition?patient=42"] = bundle(condition("c1"))

    tracking_store.query("Condition?patient=42")
    await tracking_store.drain()

    assert tracking_store.state.unread == {"Condition/c9": True}
