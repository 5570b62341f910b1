"""
Code Constants

Codings the store itself writes into resources. Presentation-level code
tables live outside this package.
"""

CODE_SYSTEM_BASE = "http://chartsync.dev/fhir/CodeSystem"
EXTENSION_BASE = "http://chartsync.dev/fhir/StructureDefinition"


class CompositionType:
    """Composition.type values."""
    TOPIC = {
        "coding": [
            {
                "system": f"{CODE_SYSTEM_BASE}/composition-type",
                "code": "topic",
                "display": "Topic",
            }
        ],
        "text": "Topic",
    }
    PROGRESS_NOTE = {
        "coding": [
            {
                "system": "http://loinc.org",
                "code": "11506-3",
                "display": "Progress note",
            }
        ],
        "text": "Progress note",
    }


class CompositionCategory:
    """Composition.category values for topic status."""
    SYSTEM = f"{CODE_SYSTEM_BASE}/topic-status"
    ACTIVE = {
        "coding": [{"system": SYSTEM, "code": "active", "display": "Active"}],
    }
    INACTIVE = {
        "coding": [{"system": SYSTEM, "code": "inactive", "display": "Inactive"}],
    }


class Extension:
    """Extension URLs."""
    RESOLVE_AS_VERSION_SPECIFIC = (
        "http://hl7.org/fhir/StructureDefinition/resolve-as-version-specific"
    )
    VERSION_MODIFIED = f"{EXTENSION_BASE}/version-modified"
    RENDERING_MARKDOWN = "http://hl7.org/fhir/StructureDefinition/rendering-markdown"
