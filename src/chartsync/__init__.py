"""
chartsync: client-side FHIR data layer for a clinical record editor

Keeps an in-memory copy of a patient's FHIR resources, overlays uncommitted
edits on the server-confirmed state and writes them back as atomic
transaction bundles.
"""

__version__ = "0.1.0"
