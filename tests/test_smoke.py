"""Tests for the API smoke test."""

from aiohttp import test_utils
import pytest

from eks_deploy.exceptions import MissingOutputError
from eks_deploy.outputs import OutputExtractor
from eks_deploy.smoke import ApiCall, SmokeTargets, SmokeTest, build_calls
from eks_deploy.verify import Verifier

from . import API_KEY, server_url


def _extractor(**kwargs: str | None) -> OutputExtractor:
    """Extractor holding only the API outputs."""
    values: dict[str, str | None] = {
        "api_gateway_url": "https://api.example.com/prod/",
        "api_key": "key",
    }
    values.update(kwargs)
    return OutputExtractor(
        {name: {"sensitive": False, "value": value} for name, value in values.items()}
    )


@pytest.fixture(name="smoke_test")
def smoke_test_fixture() -> SmokeTest:
    return SmokeTest(Verifier(timeout=5))


def test_targets_from_extractor() -> None:
    """Test only the API outputs are needed to build the targets."""
    targets = SmokeTargets.from_extractor(_extractor(load_balancer_dns="alb.example.com"))
    assert targets == SmokeTargets(
        gateway_url="https://api.example.com/prod",
        api_key="key",
        custom_domain_url=None,
        alb_url="https://alb.example.com",
    )


def test_targets_missing_gateway() -> None:
    with pytest.raises(MissingOutputError, match="api_gateway_url"):
        SmokeTargets.from_extractor(_extractor(api_gateway_url=None))


def test_build_calls() -> None:
    """Test the optional paths are only called when configured."""
    calls = build_calls(SmokeTargets(gateway_url="https://api", api_key="key"))
    names = [call.name for call in calls]
    assert names[:2] == ["health via API gateway", "root endpoint"]
    assert "health via load balancer" not in names
    assert "health via custom domain" not in names
    assert sum(1 for name in names if name.startswith("burst request")) == 5

    calls = build_calls(
        SmokeTargets(
            gateway_url="https://api",
            api_key="key",
            custom_domain_url="https://api.example.com",
            alb_url="https://alb",
        )
    )
    urls = [call.url for call in calls]
    assert "https://alb/health" in urls
    assert "https://api.example.com/health" in urls
    assert urls[-2:] == ["https://alb/api/system", "https://alb/api/metrics"]


def test_accepts() -> None:
    assert ApiCall("a", "GET", "u").accepts(204)
    assert not ApiCall("a", "GET", "u").accepts(404)
    assert ApiCall("a", "GET", "u", expect=(401, 403)).accepts(403)
    assert not ApiCall("a", "GET", "u", expect=(201,)).accepts(200)


async def test_full_run(smoke_test: SmokeTest, api_server: test_utils.TestServer) -> None:
    """Test every call passes against a working API."""
    url = server_url(api_server)
    calls = build_calls(
        SmokeTargets(
            gateway_url=url, api_key=API_KEY, custom_domain_url=url, alb_url=url
        )
    )
    report = await smoke_test.run(calls)
    assert [r.name for r in report.failures] == []
    assert report.passed
    assert len(report.results) == len(calls)
    assert not any(r.skipped for r in report.results)


async def test_create_user(smoke_test: SmokeTest, api_server: test_utils.TestServer) -> None:
    """Test the created user is checked for an id and active status."""
    url = server_url(api_server)
    calls = {
        call.name: call
        for call in build_calls(SmokeTargets(gateway_url=url, api_key=API_KEY))
    }
    report = await smoke_test.run(
        [calls["create user"], calls["create user with missing email"]]
    )
    assert [(r.status, r.passed) for r in report.results] == [(201, True), (400, True)]


async def test_unexpected_status(smoke_test: SmokeTest, api_server: test_utils.TestServer) -> None:
    """Test a call that does not return its expected status fails."""
    call = ApiCall(
        "get missing user by id",
        "GET",
        f"{server_url(api_server)}/v1/users/9999",
        expect=(200,),
        headers={"x-api-key": API_KEY},
    )
    report = await smoke_test.run([call])
    assert not report.passed
    assert report.results[0].status == 404
    assert report.results[0].detail == "unexpected status 404"


async def test_body_check_failure(
    smoke_test: SmokeTest, api_server: test_utils.TestServer
) -> None:
    call = ApiCall(
        "root endpoint",
        "GET",
        f"{server_url(api_server)}/",
        check=lambda doc, text: "no version" if "version" not in doc else "bad",
    )
    report = await smoke_test.run([call])
    assert report.results[0].detail == "bad"
    assert not report.results[0].passed


async def test_without_api_key(smoke_test: SmokeTest, api_server: test_utils.TestServer) -> None:
    """Test authenticated calls are skipped while the rest still run."""
    calls = build_calls(SmokeTargets(gateway_url=server_url(api_server)))
    report = await smoke_test.run(calls)
    skipped = [r for r in report.results if r.skipped]
    assert len(skipped) == 6
    assert {r.detail for r in skipped} == {"API key not available"}
    assert report.passed


async def test_unreachable(smoke_test: SmokeTest) -> None:
    calls = build_calls(SmokeTargets(gateway_url="http://127.0.0.1:1"))
    report = await smoke_test.run(calls[:1])
    assert not report.passed
    assert report.results[0].status is None
