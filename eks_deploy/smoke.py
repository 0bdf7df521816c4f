"""Smoke test that exercises every route of the deployed API.

The calls are made through the API gateway using the api key from the
terraform outputs, plus a few calls directly against the load balancer.
Every call has an expected status; the report records pass/fail per call.
Calls that need an api key are skipped when none is available.

This is read-only with respect to the deployment and may be run at any
time after a deploy.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
import json
import logging
from typing import Any

import aiohttp
from mashumaro import DataClassDictMixin

from .exceptions import MissingOutputError
from .outputs import (
    API_GATEWAY_CUSTOM_DOMAIN,
    API_GATEWAY_URL,
    API_KEY,
    LOAD_BALANCER_DNS,
    OutputExtractor,
)
from .verify import Verifier

__all__ = [
    "ApiCall",
    "CallResult",
    "SmokeReport",
    "SmokeTargets",
    "SmokeTest",
    "build_calls",
]

_LOGGER = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
INVALID_API_KEY = "invalid-key-12345"
BURST_SIZE = 5
MISSING_ID = 9999

VALID_USER = {"name": "John Doe", "email": "john@example.com", "age": 30}
INVALID_USER = {"name": "Jane"}

UNAUTHORIZED = (401, 403)


@dataclass(frozen=True)
class SmokeTargets:
    """Base urls and credentials for the smoke test."""

    gateway_url: str
    api_key: str | None = None
    custom_domain_url: str | None = None
    alb_url: str | None = None

    @classmethod
    def from_extractor(cls, extractor: OutputExtractor) -> "SmokeTargets":
        """Read the API outputs, which are the only ones the smoke test needs."""
        if not (gateway_url := extractor.get_optional(API_GATEWAY_URL)):
            raise MissingOutputError([API_GATEWAY_URL])
        custom_domain = extractor.get_optional(API_GATEWAY_CUSTOM_DOMAIN)
        load_balancer_dns = extractor.get_optional(LOAD_BALANCER_DNS)
        return cls(
            gateway_url=gateway_url.rstrip("/"),
            api_key=extractor.get_optional(API_KEY),
            custom_domain_url=custom_domain.rstrip("/") if custom_domain else None,
            alb_url=f"https://{load_balancer_dns}" if load_balancer_dns else None,
        )


@dataclass(frozen=True)
class ApiCall:
    """A single request and its expected outcome."""

    name: str
    method: str
    url: str
    expect: tuple[int, ...] = ()
    """Accepted status codes, or any 2xx when empty."""

    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    check: Callable[[Any, str], str | None] | None = None
    """Returns an error message when the response body is not as expected."""

    skip_reason: str | None = None

    def accepts(self, status: int) -> bool:
        if self.expect:
            return status in self.expect
        return 200 <= status < 300


@dataclass
class CallResult(DataClassDictMixin):
    """Outcome of a single smoke test call."""

    name: str
    method: str
    url: str
    passed: bool
    status: int | None = None
    detail: str | None = None
    skipped: bool = False


@dataclass
class SmokeReport(DataClassDictMixin):
    """Results of every smoke test call."""

    results: list[CallResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results if not result.skipped)

    @property
    def failures(self) -> list[CallResult]:
        return [r for r in self.results if not r.skipped and not r.passed]


def _check_created(doc: Any, text: str) -> str | None:
    user = doc.get("user", doc) if isinstance(doc, dict) else None
    if not isinstance(user, dict) or "id" not in user:
        return "response has no user id"
    if user.get("status") != "active":
        return f"expected status active but was {user.get('status')}"
    return None


def _check_names_email(doc: Any, text: str) -> str | None:
    if "email" not in text:
        return "error does not name the missing email field"
    return None


def build_calls(targets: SmokeTargets) -> list[ApiCall]:
    """Return the calls to make, in order."""
    gateway = targets.gateway_url
    calls = [
        ApiCall("health via API gateway", "GET", f"{gateway}/health"),
    ]
    if targets.alb_url:
        calls.append(ApiCall("health via load balancer", "GET", f"{targets.alb_url}/health"))
    calls.append(ApiCall("root endpoint", "GET", f"{gateway}/"))

    skip = None if targets.api_key else "API key not available"
    auth = {API_KEY_HEADER: targets.api_key} if targets.api_key else {}
    users = f"{gateway}/v1/users"
    calls.extend(
        [
            ApiCall("list users", "GET", users, headers=auth, skip_reason=skip),
            ApiCall(
                "list users with pagination",
                "GET",
                f"{users}?page=0&size=5",
                headers=auth,
                skip_reason=skip,
            ),
            ApiCall(
                "create user",
                "POST",
                users,
                expect=(201,),
                headers=auth,
                body=VALID_USER,
                check=_check_created,
                skip_reason=skip,
            ),
            ApiCall(
                "create user with missing email",
                "POST",
                users,
                expect=(400,),
                headers=auth,
                body=INVALID_USER,
                check=_check_names_email,
                skip_reason=skip,
            ),
            ApiCall("get user by id", "GET", f"{users}/1", headers=auth, skip_reason=skip),
            ApiCall(
                "get missing user by id",
                "GET",
                f"{users}/{MISSING_ID}",
                expect=(404,),
                headers=auth,
                skip_reason=skip,
            ),
            ApiCall("list users without API key", "GET", users, expect=UNAUTHORIZED),
            ApiCall(
                "list users with invalid API key",
                "GET",
                users,
                expect=UNAUTHORIZED,
                headers={API_KEY_HEADER: INVALID_API_KEY},
            ),
        ]
    )
    calls.extend(
        ApiCall(f"burst request {i}/{BURST_SIZE}", "GET", f"{gateway}/health")
        for i in range(1, BURST_SIZE + 1)
    )
    if targets.custom_domain_url:
        calls.append(
            ApiCall("health via custom domain", "GET", f"{targets.custom_domain_url}/health")
        )
    if targets.alb_url:
        calls.extend(
            [
                ApiCall("system information", "GET", f"{targets.alb_url}/api/system"),
                ApiCall("application metrics", "GET", f"{targets.alb_url}/api/metrics"),
            ]
        )
    return calls


class SmokeTest:
    """Runs the smoke test calls one at a time."""

    def __init__(self, verifier: Verifier) -> None:
        """Initialize SmokeTest, sharing the verifier's session settings."""
        self._verifier = verifier

    async def call(self, session: aiohttp.ClientSession, api_call: ApiCall) -> CallResult:
        result = CallResult(
            name=api_call.name, method=api_call.method, url=api_call.url, passed=False
        )
        if api_call.skip_reason:
            result.skipped = True
            result.detail = api_call.skip_reason
            return result
        try:
            async with session.request(
                api_call.method, api_call.url, headers=api_call.headers, json=api_call.body
            ) as response:
                text = await response.text()
                result.status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            result.detail = str(err) or type(err).__name__
            return result
        if not api_call.accepts(result.status):
            result.detail = f"unexpected status {result.status}"
            return result
        if api_call.check is not None:
            try:
                doc = json.loads(text)
            except json.JSONDecodeError:
                doc = None
            if error := api_call.check(doc, text):
                result.detail = error
                return result
        result.passed = True
        return result

    async def run(self, calls: list[ApiCall]) -> SmokeReport:
        report = SmokeReport()
        async with self._verifier.session() as session:
            for api_call in calls:
                result = await self.call(session, api_call)
                _LOGGER.debug(
                    "%s %s -> %s (%s)",
                    api_call.method,
                    api_call.url,
                    result.status,
                    "pass" if result.passed else "fail",
                )
                report.results.append(result)
        return report
