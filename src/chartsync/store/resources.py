"""
Resource Graph

Typed, keyed storage for FHIR resources: one bucket per recognized resource
kind, each mapping id to resource. The same shape is used for the
server-confirmed graph, the edit overlay and the auto-generated layer.
"""

from typing import Dict, Iterable, Iterator, Optional

from pydantic import BaseModel, Field

from chartsync.fhir.types import BUCKETS, Resource, ResourceType, reference_key, resource_type_of

ResourceById = Dict[str, Resource]


class FhirResources(BaseModel):
    """Resources grouped by kind."""
    compositions: ResourceById = Field(default_factory=dict)
    conditions: ResourceById = Field(default_factory=dict)
    encounters: ResourceById = Field(default_factory=dict)
    patients: ResourceById = Field(default_factory=dict)
    observations: ResourceById = Field(default_factory=dict)
    diagnostic_reports: ResourceById = Field(default_factory=dict)
    lists: ResourceById = Field(default_factory=dict)
    medication_administrations: ResourceById = Field(default_factory=dict)
    medication_requests: ResourceById = Field(default_factory=dict)
    service_requests: ResourceById = Field(default_factory=dict)
    tasks: ResourceById = Field(default_factory=dict)

    def container(self, resource_type: ResourceType | str) -> ResourceById:
        """
        Bucket for a resource kind.

        Raises:
            UnknownResourceTypeError: the type is not one the store holds
        """
        return getattr(self, ResourceType.of(resource_type).bucket)

    def get(self, resource_type: ResourceType | str, resource_id: str) -> Optional[Resource]:
        return self.container(resource_type).get(resource_id)

    def get_resource(self, resource: Resource) -> Optional[Resource]:
        """The stored resource with the same type and id as `resource`."""
        return self.container(resource_type_of(resource)).get(resource["id"])

    def put(self, resource: Resource) -> None:
        """Insert or overwrite; last write wins."""
        self.container(resource_type_of(resource))[resource["id"]] = resource

    def remove(self, resource_type: ResourceType | str, resource_id: str) -> None:
        self.container(resource_type).pop(resource_id, None)

    def remove_resource(self, resource: Resource) -> None:
        self.remove(resource_type_of(resource), resource["id"])

    def values(self) -> Iterator[Resource]:
        for bucket in BUCKETS.values():
            yield from getattr(self, bucket).values()

    def __len__(self) -> int:
        return sum(len(getattr(self, bucket)) for bucket in BUCKETS.values())

    def copy_buckets(self) -> "FhirResources":
        """
        Structural copy: new bucket dicts holding the same resource objects.
        Resources are never modified in place, so this is enough to isolate
        a draft from the snapshot it was taken from.
        """
        return FhirResources.model_construct(
            **{bucket: dict(getattr(self, bucket)) for bucket in BUCKETS.values()}
        )

    def clear(self) -> None:
        for bucket in BUCKETS.values():
            setattr(self, bucket, {})

    def overlaid(self, *layers: "FhirResources", hidden: Iterable[str] = ()) -> "FhirResources":
        """
        This graph with each layer's entries overriding it in turn, minus the
        resources whose reference is in `hidden`.
        """
        hidden = set(hidden)
        merged = {}
        for bucket in BUCKETS.values():
            combined = dict(getattr(self, bucket))
            for layer in layers:
                combined.update(getattr(layer, bucket))
            if hidden:
                combined = {
                    rid: r for rid, r in combined.items()
                    if reference_key(r) not in hidden
                }
            merged[bucket] = combined
        return FhirResources.model_construct(**merged)
