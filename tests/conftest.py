"""
Shared fixtures: an in-memory FHIR server and sample resources.
"""

from typing import Any, Dict, List, Optional
import asyncio

import pytest

from chartsync.errors import FhirServerError
from chartsync.fhir.types import Resource, type_id
from chartsync.store import FhirState, FhirStore


class FakeFhirServer:
    """
    Records every call. Query responses are looked up by query string;
    an Exception as a response is raised instead. When `gate` is set,
    each call waits for it before answering.
    """

    def __init__(self):
        self.responses: Dict[str, Any] = {}
        self.post_response: Any = None
        self.delete_error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

        self.created = 0

        self.queries: List[str] = []
        self.posted: List[Resource] = []
        self.deleted: List[str] = []

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    async def get(self, query: str) -> Resource:
        self.queries.append(query)
        await self._wait()
        response = self.responses.get(query)
        if response is None:
            raise FhirServerError(404, query)
        if isinstance(response, Exception):
            raise response
        return response

    async def post(self, bundle: Resource) -> Resource:
        self.posted.append(bundle)
        await self._wait()
        if isinstance(self.post_response, Exception):
            raise self.post_response
        if self.post_response is not None:
            return self.post_response
        return {
            "resourceType": "Bundle",
            "type": "transaction-response",
            "entry": [self._entry_response(e["request"]) for e in bundle.get("entry", [])],
        }

    def _entry_response(self, request: Dict[str, str]) -> Dict[str, Any]:
        if request["method"] == "POST":
            self.created += 1
            location = f"{request['url']}/srv-{self.created}/_history/1"
            return {"response": {"status": "201 Created", "location": location}}
        return {"response": {"status": "200 OK", "location": f"{request['url']}/_history/2"}}

    async def delete(self, resource: Resource) -> None:
        self.deleted.append(type_id(resource))
        await self._wait()
        if self.delete_error is not None:
            raise self.delete_error


def bundle(*resources: Resource) -> Resource:
    return {
        "resourceType": "Bundle",
        "type": "searchset",
        "entry": [{"resource": r} for r in resources],
    }


def condition(id: str = "c1", text: str = "Hypertension", status: str = "active") -> Resource:
    return {
        "resourceType": "Condition",
        "id": id,
        "code": {"text": text},
        "clinicalStatus": {"coding": [{"code": status}]},
        "subject": {"reference": "Patient/42"},
    }


def observation(id: str, when: str, code: str = "8480-6", value: float = 120) -> Resource:
    return {
        "resourceType": "Observation",
        "id": id,
        "status": "final",
        "code": {"coding": [{"system": "http://loinc.org", "code": code}]},
        "effectiveDateTime": when,
        "valueQuantity": {"value": value},
    }


@pytest.fixture
def server() -> FakeFhirServer:
    return FakeFhirServer()


@pytest.fixture
def store(server) -> FhirStore:
    return FhirStore(server, state=FhirState(patient_id="42", practitioner_id="p1"))
