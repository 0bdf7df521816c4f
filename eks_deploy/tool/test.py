"""eks-deploy test action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import io
import logging
import pathlib
from typing import cast

from eks_deploy.exceptions import VerificationError
from eks_deploy.outputs import redact
from eks_deploy.pipeline import DeployState, Pipeline, smoke_stages
from eks_deploy.smoke import SmokeReport, SmokeTest, build_calls
from eks_deploy.verify import Verifier

from . import selector
from .format import PrintFormatter

_LOGGER = logging.getLogger(__name__)


def print_report(report: SmokeReport) -> None:
    """Print a per-call summary of the smoke test."""
    rows = []
    for result in report.results:
        rows.append(
            {
                "name": result.name,
                "method": result.method,
                "status": result.status,
                "result": "skip" if result.skipped else ("pass" if result.passed else "FAIL"),
                "detail": result.detail,
            }
        )
    PrintFormatter(["name", "method", "status", "result", "detail"]).print(rows)
    passed = sum(1 for r in report.results if r.passed)
    skipped = sum(1 for r in report.results if r.skipped)
    print()
    print(
        f"{passed} passed, {len(report.failures)} failed, {skipped} skipped"
    )


class TestAction:
    """eks-deploy test action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "test",
                help="Smoke test every route of the deployed API",
                description="""Calls every API route through the API gateway and
                    the load balancer using urls and the api key from the
                    terraform outputs.""",
            ),
        )
        selector.add_path_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: pathlib.Path,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        settings = selector.build_settings(path)
        state = DeployState(settings=settings)
        result = await Pipeline(smoke_stages()).run(state, file=io.StringIO())
        selector.raise_for_result(result)
        targets = state.require_targets()
        print(f"API gateway: {targets.gateway_url}")
        if targets.custom_domain_url:
            print(f"Custom domain: {targets.custom_domain_url}")
        if targets.api_key:
            print(f"API key: {redact(targets.api_key)}")
        if targets.alb_url:
            print(f"Load balancer: {targets.alb_url}")
        print()

        verifier = Verifier(settings.request_timeout, settings.verify_ssl)
        report = await SmokeTest(verifier).run(build_calls(targets))
        print_report(report)
        if not report.passed:
            raise VerificationError(
                f"{len(report.failures)} smoke test call(s) failed"
            )
