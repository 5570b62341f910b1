"""
chartsync Exceptions
"""

from typing import Optional


class ChartSyncError(Exception):
    """Base class for all chartsync errors."""


class UnknownResourceTypeError(ChartSyncError):
    """A resource type that has no storage bucket in the store."""

    def __init__(self, resource_type: Optional[str]):
        self.resource_type = resource_type
        super().__init__(f"No state object for resource {resource_type}")


class FhirServerError(ChartSyncError):
    """The FHIR server answered with a non-success status."""

    def __init__(self, status: int, url: str, body: str = ""):
        self.status = status
        self.url = url
        self.body = body
        super().__init__(f"FHIR server returned {status} for {url}")


class TransactionRejectedError(ChartSyncError):
    """A transaction was posted but the response was not a Bundle."""

    def __init__(self, response: object):
        self.response = response
        resource_type = response.get("resourceType") if isinstance(response, dict) else None
        super().__init__(f"Transaction response is not a bundle: {resource_type}")
