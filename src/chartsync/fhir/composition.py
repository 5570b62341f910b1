"""
Composition Helpers

Compositions are used both as topics (a section whose entries reference the
topic's conditions, prescriptions and tasks) and as progress notes (a section
holding rich text). These helpers return new dicts and never modify their
input.
"""

from typing import Any, Dict, List, Optional
import copy

from chartsync.fhir.codes import CompositionType, Extension
from chartsync.fhir.types import Resource, new_meta, now_iso, reference_to, type_id


def new_composition(**props: Any) -> Resource:
    """New Composition with a temporary id."""
    return {
        "resourceType": "Composition",
        **new_meta(),
        **props,
    }


def set_text(html: str, markdown: str, composition: Resource) -> Resource:
    """Replace the first section's text, keeping the markdown source."""
    sections = composition.get("section") or []
    first = dict(sections[0]) if sections else {}
    first["text"] = {
        "status": "additional",
        "div": f"<div>{html}</div>",
        "_div": {
            "extension": [
                {"url": Extension.RENDERING_MARKDOWN, "valueMarkdown": markdown},
            ]
        },
    }
    return {**composition, "section": [first, *sections[1:]]}


def get_markdown(composition: Resource) -> Optional[str]:
    sections = composition.get("section") or []
    if not sections:
        return None
    extensions = (((sections[0].get("text") or {}).get("_div") or {}).get("extension")) or []
    for extension in extensions:
        if extension.get("url") == Extension.RENDERING_MARKDOWN:
            return extension.get("valueMarkdown")
    return None


def set_entries(entries: List[Dict[str, Any]], composition: Resource) -> Resource:
    sections = composition.get("section") or []
    first = dict(sections[0]) if sections else {}
    first["entry"] = list(entries)
    return {**composition, "section": [first, *sections[1:]]}


def get_entries(composition: Resource) -> List[Dict[str, Any]]:
    """Entries of the first section."""
    sections = composition.get("section") or []
    if not sections:
        return []
    return list(sections[0].get("entry") or [])


def add_entry(entry: Dict[str, Any], composition: Resource) -> Resource:
    return set_entries([*get_entries(composition), entry], composition)


def remove_entry(entry: Dict[str, Any], composition: Resource) -> Resource:
    remaining = [
        e for e in get_entries(composition)
        if e.get("reference") != entry.get("reference")
    ]
    return set_entries(remaining, composition)


# =============================================================================
# Progress Notes
# =============================================================================

def version_specific_reference(resource: Resource) -> Dict[str, Any]:
    """Reference annotated with the version being saved, for later diffs."""
    extensions: List[Dict[str, Any]] = [
        {"url": Extension.RESOLVE_AS_VERSION_SPECIFIC, "valueBoolean": True},
    ]
    version_id = (resource.get("meta") or {}).get("versionId")
    if version_id:
        extensions.append({
            "url": Extension.VERSION_MODIFIED,
            "valueReference": {
                "reference": f"{type_id(resource)}/_history/{version_id}",
            },
        })
    return {**reference_to(resource), "_reference": {"extension": extensions}}


def new_progress_note(
    patient_id: str,
    html: str,
    changes: List[Resource],
    markdown: str = "",
    note_id: Optional[str] = None,
) -> Resource:
    """
    Progress note with the given text, listing the resources saved with it
    under "Associated changes".
    """
    note = new_composition(
        subject={"reference": f"Patient/{patient_id}"},
        status="final",
        type=copy.deepcopy(CompositionType.PROGRESS_NOTE),
        date=now_iso(),
        title="Progress Note",
        section=[
            {"title": "Progress note"},
            {
                "title": "Associated changes",
                "entry": [version_specific_reference(r) for r in changes],
            },
        ],
    )
    if note_id:
        note["id"] = note_id
    return set_text(html, markdown, note)
