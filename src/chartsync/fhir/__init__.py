"""
FHIR Types, Codes and Server Access
"""

from chartsync.fhir.client import FhirServer, HttpFhirServer, fhir_up
from chartsync.fhir.types import (
    Resource,
    ResourceRef,
    ResourceType,
    is_bundle,
    is_new,
    is_same_id,
    new_uuid_id,
    parse_ref,
    parse_reference,
    reference_to,
    type_id,
)

__all__ = [
    "FhirServer",
    "HttpFhirServer",
    "fhir_up",
    "Resource",
    "ResourceRef",
    "ResourceType",
    "is_bundle",
    "is_new",
    "is_same_id",
    "new_uuid_id",
    "parse_ref",
    "parse_reference",
    "reference_to",
    "type_id",
]
