"""
Store Selectors

Pure functions reading a state snapshot.
"""

from typing import Dict, List, Union

from chartsync.fhir.types import Resource, is_resource, is_same_id
from chartsync.store.models import FhirState, QueryStatus, SaveRequest
from chartsync.store.resources import FhirResources


def resources_to_save(state: FhirState, request: Union[SaveRequest, Resource]) -> List[Resource]:
    """Pending edits selected by a save request."""
    if is_resource(request):
        return [request]

    edited = list(state.edits.values())
    if request.filter is not None:
        return [r for r in edited if request.filter(r)]
    if request.resource is not None:
        return [r for r in edited if is_same_id(r, request.resource)]
    return edited


def observations_by_code(resources: FhirResources) -> Dict[str, List[Resource]]:
    """Index observations by `system|code`, one entry per coding."""
    by_code: Dict[str, List[Resource]] = {}
    for observation in resources.observations.values():
        for coding in (observation.get("code") or {}).get("coding") or []:
            key = f"{coding.get('system') or ''}|{coding.get('code') or ''}"
            by_code.setdefault(key, []).append(observation)
    return by_code


def still_loading(state: FhirState) -> bool:
    """Any query flagged for the loading screen still in flight."""
    return any(
        q.state == QueryStatus.LOADING and q.show_loading_screen
        for q in state.queries.values()
    )


def query_errors(state: FhirState) -> Dict[str, object]:
    return {
        query: q.error
        for query, q in state.queries.items()
        if q.state == QueryStatus.ERROR
    }
