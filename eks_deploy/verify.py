"""Verifies a deployment by requesting its health endpoint.

The health endpoint is requested through two independent paths: the edge API
gateway and the load balancer created for the ingress. Results are reported
per path. Verification is advisory; a failed check is recorded in the
`HealthReport` rather than raised since the infrastructure may still be
converging.
"""

import asyncio
from dataclasses import dataclass, field
import json
import logging

import aiohttp
from mashumaro import DataClassDictMixin

__all__ = [
    "EndpointResult",
    "HealthReport",
    "Verifier",
    "health_endpoints",
]

_LOGGER = logging.getLogger(__name__)

HEALTH_PATH = "/health"
API_GATEWAY = "api-gateway"
LOAD_BALANCER = "load-balancer"


@dataclass
class EndpointResult(DataClassDictMixin):
    """The result of probing a single endpoint."""

    name: str
    url: str | None
    passed: bool
    status: int | None = None
    detail: str | None = None


@dataclass
class HealthReport(DataClassDictMixin):
    """Pass/fail records for every checked endpoint."""

    results: list[EndpointResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def failures(self) -> list[EndpointResult]:
        return [result for result in self.results if not result.passed]


def health_endpoints(
    gateway_url: str | None, hostname: str | None
) -> dict[str, str | None]:
    """Return the health urls for the gateway and the load balancer."""
    return {
        API_GATEWAY: f"{gateway_url.rstrip('/')}{HEALTH_PATH}" if gateway_url else None,
        LOAD_BALANCER: f"https://{hostname}{HEALTH_PATH}" if hostname else None,
    }


def _status_detail(body: str) -> str | None:
    """Return the reported status from a health response body."""
    try:
        doc = json.loads(body)
    except json.JSONDecodeError:
        return body[:80] if body else None
    if isinstance(doc, dict) and "status" in doc:
        return str(doc["status"])
    return None


class Verifier:
    """Checks health endpoints with a short timeout."""

    def __init__(self, timeout: float = 10.0, verify_ssl: bool = True) -> None:
        """Initialize Verifier."""
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._verify_ssl = verify_ssl

    def session(self) -> aiohttp.ClientSession:
        """Create a client session with the configured timeout."""
        connector = None if self._verify_ssl else aiohttp.TCPConnector(ssl=False)
        return aiohttp.ClientSession(timeout=self._timeout, connector=connector)

    async def check(
        self, session: aiohttp.ClientSession, name: str, url: str | None
    ) -> EndpointResult:
        """Request a single health endpoint, passing on a 2xx status."""
        if not url:
            return EndpointResult(
                name=name, url=None, passed=False, detail="address not available"
            )
        try:
            async with session.get(url) as response:
                body = await response.text()
                return EndpointResult(
                    name=name,
                    url=url,
                    passed=200 <= response.status < 300,
                    status=response.status,
                    detail=_status_detail(body),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            _LOGGER.debug("Health request to %s failed: %s", url, err)
            return EndpointResult(
                name=name,
                url=url,
                passed=False,
                detail=str(err) or type(err).__name__,
            )

    async def verify(self, endpoints: dict[str, str | None]) -> HealthReport:
        """Check every endpoint in turn."""
        report = HealthReport()
        async with self.session() as session:
            for name, url in endpoints.items():
                result = await self.check(session, name, url)
                if not result.passed:
                    _LOGGER.warning(
                        "Health check via %s failed: %s", name, result.detail
                    )
                report.results.append(result)
        return report
