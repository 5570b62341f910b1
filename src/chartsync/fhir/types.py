"""
FHIR R4 Types and Reference Helpers

Resources are handled as plain FHIR JSON dictionaries. This module holds the
closed set of resource kinds the store knows about and the small helpers used
to build and parse references between them.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import uuid

from chartsync.errors import UnknownResourceTypeError

Resource = Dict[str, Any]

TEMP_ID_PREFIX = "urn:uuid:"


# =============================================================================
# Resource Kinds
# =============================================================================

class ResourceType(str, Enum):
    """FHIR R4 resource types held by the store."""
    COMPOSITION = "Composition"
    CONDITION = "Condition"
    ENCOUNTER = "Encounter"
    PATIENT = "Patient"
    OBSERVATION = "Observation"
    DIAGNOSTIC_REPORT = "DiagnosticReport"
    LIST = "List"
    MEDICATION_ADMINISTRATION = "MedicationAdministration"
    MEDICATION_REQUEST = "MedicationRequest"
    SERVICE_REQUEST = "ServiceRequest"
    TASK = "Task"

    @property
    def bucket(self) -> str:
        """Name of the storage bucket for this kind."""
        return BUCKETS[self]

    @classmethod
    def of(cls, resource_type: Optional[str]) -> "ResourceType":
        """
        Look up a kind by its FHIR name.

        Raises:
            UnknownResourceTypeError: the type has no bucket
        """
        try:
            return cls(resource_type)
        except ValueError:
            raise UnknownResourceTypeError(resource_type) from None


BUCKETS: Dict[ResourceType, str] = {
    ResourceType.COMPOSITION: "compositions",
    ResourceType.CONDITION: "conditions",
    ResourceType.ENCOUNTER: "encounters",
    ResourceType.PATIENT: "patients",
    ResourceType.OBSERVATION: "observations",
    ResourceType.DIAGNOSTIC_REPORT: "diagnostic_reports",
    ResourceType.LIST: "lists",
    ResourceType.MEDICATION_ADMINISTRATION: "medication_administrations",
    ResourceType.MEDICATION_REQUEST: "medication_requests",
    ResourceType.SERVICE_REQUEST: "service_requests",
    ResourceType.TASK: "tasks",
}


def resource_type_of(resource: Resource) -> ResourceType:
    """Kind of a resource dict; raises UnknownResourceTypeError."""
    return ResourceType.of(resource.get("resourceType"))


def is_resource(value: Any) -> bool:
    return isinstance(value, dict) and bool(value.get("resourceType"))


def is_bundle(value: Any) -> bool:
    return isinstance(value, dict) and value.get("resourceType") == "Bundle"


# =============================================================================
# Identity & References
# =============================================================================

@dataclass(frozen=True)
class ResourceRef:
    """A parsed `Type/id` reference, with the version when one was given."""
    resource_type: str
    id: str
    version_id: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.resource_type}/{self.id}"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_uuid_id() -> str:
    """Temporary id for a resource the server has not seen yet."""
    return f"{TEMP_ID_PREFIX}{uuid.uuid4()}"


def new_meta() -> Dict[str, Any]:
    return {
        "id": new_uuid_id(),
        "meta": {"lastUpdated": now_iso()},
    }


def is_new(resource: Resource) -> bool:
    return str(resource.get("id", "")).startswith(TEMP_ID_PREFIX)


def type_id(resource: Resource) -> str:
    return f"{resource['resourceType']}/{resource['id']}"


def reference_to(resource: Resource) -> Dict[str, str]:
    """FHIR Reference pointing at a resource."""
    if is_new(resource):
        return {"reference": resource["id"], "type": resource["resourceType"]}
    return {"reference": type_id(resource)}


def reference_key(resource: Resource) -> str:
    """Key used for deletion tracking: the reference string."""
    return reference_to(resource)["reference"]


def is_same_id(r1: Resource, r2: Resource) -> bool:
    return r1.get("id") == r2.get("id") and r1.get("resourceType") == r2.get("resourceType")


def parse_ref(ref: Optional[str], resource_type: Optional[str] = None) -> Optional[ResourceRef]:
    """
    Parse a `Type/id` reference string.

    Lenient: returns None for empty or malformed input, and for references
    that are not of `resource_type` when one is given.
    """
    if not ref:
        return None

    if resource_type:
        prefix = f"{resource_type}/"
        if ref.startswith(prefix) and len(ref) > len(prefix):
            return ResourceRef(resource_type, ref[len(prefix):])
        # not of the required type
        return None

    parts = ref.split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    return ResourceRef(parts[0], parts[1])


def parse_reference(reference: Optional[Dict[str, Any]], resource_type: str) -> Optional[ResourceRef]:
    """
    Parse a FHIR Reference element, including references to unsaved
    resources (a bare temporary id plus an explicit `type`).
    """
    if not reference:
        return None
    ref = reference.get("reference")
    if ref and ref.startswith(TEMP_ID_PREFIX):
        if reference.get("type") == resource_type:
            return ResourceRef(resource_type, ref)
        return None
    return parse_ref(ref, resource_type)


def parse_location(location: Optional[str]) -> Optional[ResourceRef]:
    """
    Parse a transaction response location such as
    `Condition/123/_history/1`, relative or absolute.
    """
    if not location:
        return None

    parts = [p for p in location.split("?")[0].split("/") if p]
    version_id = None
    if "_history" in parts:
        index = parts.index("_history")
        version_id = parts[index + 1] if index + 1 < len(parts) else None
        parts = parts[:index]
    if len(parts) < 2:
        return None
    return ResourceRef(parts[-2], parts[-1], version_id)


def replace_references(value: Any, renamed: Dict[str, str]) -> Any:
    """
    Copy of `value` with every Reference to a key of `renamed` pointing at
    the mapped `Type/id` instead. Values without such a reference are
    returned unchanged.
    """
    if isinstance(value, dict):
        if value.get("reference") in renamed:
            replaced = {k: v for k, v in value.items() if k != "type"}
            replaced["reference"] = renamed[value["reference"]]
            return replaced
        items = {k: replace_references(v, renamed) for k, v in value.items()}
        if all(items[k] is value[k] for k in value):
            return value
        return items
    if isinstance(value, list):
        items = [replace_references(v, renamed) for v in value]
        if all(new is old for new, old in zip(items, value)):
            return value
        return items
    return value


# =============================================================================
# Codes
# =============================================================================

def has_code(concept: Optional[Dict[str, Any]], coding: Dict[str, Any]) -> bool:
    """True if a CodeableConcept carries the given system+code."""
    if not concept:
        return False
    return any(
        c.get("system") == coding.get("system") and c.get("code") == coding.get("code")
        for c in concept.get("coding") or []
    )


def code_short_text(concept: Optional[Dict[str, Any]]) -> Optional[str]:
    """Short display text of a CodeableConcept: text, else a coding display or code."""
    if not concept:
        return None
    if concept.get("text"):
        return concept["text"]
    for coding in concept.get("coding") or []:
        if coding.get("display"):
            return coding["display"]
        if coding.get("code"):
            return coding["code"]
    return None


# =============================================================================
# Bundles
# =============================================================================

def bundle_resources(bundle: Resource) -> List[Resource]:
    """Resources carried in a Bundle's entries."""
    return [e["resource"] for e in bundle.get("entry") or [] if e.get("resource")]


def transaction_entry(resource: Resource) -> Dict[str, Any]:
    """
    Transaction entry for a resource.

    Unsaved resources are created (POST to the type), the rest are
    replaced by id (PUT to Type/id).
    """
    new = is_new(resource)
    return {
        "fullUrl": resource["id"] if new else type_id(resource),
        "resource": resource,
        "request": {
            "method": "POST" if new else "PUT",
            "url": resource["resourceType"] if new else type_id(resource),
        },
    }


def new_transaction(entries: List[Dict[str, Any]]) -> Resource:
    return {
        "resourceType": "Bundle",
        "type": "transaction",
        "id": new_uuid_id(),
        "meta": {"lastUpdated": now_iso()},
        "link": [],
        "entry": entries,
    }
