"""
FHIR Server Capability

The store talks to the remote FHIR server through three operations only:
get (search or read), post (transaction bundle) and delete. `FhirServer`
describes that capability; `HttpFhirServer` implements it over aiohttp.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable

import aiohttp
import structlog

from chartsync.errors import FhirServerError
from chartsync.fhir.types import Resource, type_id

logger = structlog.get_logger(__name__)


@runtime_checkable
class FhirServer(Protocol):
    """Remote resource server consumed by the store."""

    async def get(self, query: str) -> Resource:
        """Run a query such as `Observation?patient=123`; returns a resource or Bundle."""
        ...

    async def post(self, bundle: Resource) -> Resource:
        """Submit a transaction bundle; the response should be a Bundle."""
        ...

    async def delete(self, resource: Resource) -> None:
        """Delete a single resource by its type and id."""
        ...


# =============================================================================
# HTTP Implementation
# =============================================================================

class HttpFhirServer:
    """
    FHIR R4 server reached over HTTP.

    Non-2xx responses raise FhirServerError; transport errors from aiohttp
    propagate unchanged. Timeouts come from `aiohttp.ClientTimeout`.
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        """Request headers with auth."""
        headers = {
            "Accept": "application/fhir+json",
            "Content-Type": "application/fhir+json",
        }
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _request(self, method: str, url: str, json: Any = None) -> Optional[Resource]:
        async with aiohttp.ClientSession() as session:
            async with session.request(
                method,
                url,
                headers=self._get_headers(),
                json=json,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status >= 300:
                    body = await response.text()
                    logger.error(
                        "FHIR request failed",
                        method=method,
                        url=url,
                        status=response.status,
                    )
                    raise FhirServerError(response.status, url, body)

                logger.debug("FHIR request", method=method, url=url, status=response.status)
                if response.status == 204 or response.content_length == 0:
                    return None
                # servers answer with application/fhir+json
                return await response.json(content_type=None)

    async def get(self, query: str) -> Resource:
        return await self._request("GET", f"{self.base_url}/{query.lstrip('/')}")

    async def post(self, bundle: Resource) -> Resource:
        # transactions are posted to the service base
        return await self._request("POST", self.base_url, json=bundle)

    async def delete(self, resource: Resource) -> None:
        await self._request("DELETE", f"{self.base_url}/{type_id(resource)}")


def fhir_up(settings=None) -> HttpFhirServer:
    """Build the FHIR server from settings."""
    if settings is None:
        from chartsync.config import get_settings
        settings = get_settings()

    token = settings.fhir.access_token
    server = HttpFhirServer(
        base_url=settings.fhir.base_url,
        access_token=token.get_secret_value() if token else None,
        timeout=settings.fhir.timeout,
    )
    logger.info("FHIR server configured", base_url=server.base_url)
    return server
