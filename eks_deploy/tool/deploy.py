"""eks-deploy deploy action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
import pathlib
from typing import cast

from eks_deploy.config import PipelineSettings
from eks_deploy.pipeline import DeployState, Pipeline, deploy_stages
from eks_deploy.verify import HealthReport

from . import selector
from .format import PrintFormatter

_LOGGER = logging.getLogger(__name__)


def prompt_for_edit(path: pathlib.Path) -> bool:
    """Ask the operator to edit a newly created config file."""
    print(f"Please update {path} with your specific values before continuing.")
    print("Especially update the domain_name and db_password variables.")
    try:
        input(f"Press Enter to continue after updating {path.name}...")
    except EOFError:
        return False
    return True


def print_health(report: HealthReport) -> None:
    """Print the health check results."""
    print()
    PrintFormatter(["name", "url", "status", "passed", "detail"]).print(
        [result.to_dict() for result in report.results]
    )


def print_access(state: DeployState, settings: PipelineSettings) -> None:
    """Print how to reach and manage the deployment."""
    deployer = settings.deployer
    print()
    print("Access information:")
    if state.hostname:
        print(f"  Application URL: https://{state.hostname}")
        print(f"  Health check: https://{state.hostname}/health")
        print(f"  Metrics: https://{state.hostname}/actuator/prometheus")
    if state.outputs and state.outputs.api_gateway_url:
        print(f"  API gateway: {state.outputs.api_gateway_url}")
    print()
    print("Management commands:")
    print(f"  kubectl get pods -n {deployer.namespace}")
    print(f"  kubectl logs -n {deployer.namespace} deployment/{deployer.deployment_name}")
    print(f"  kubectl describe ingress -n {deployer.namespace} {deployer.ingress_name}")
    print("  kubectl port-forward -n monitoring svc/prometheus-grafana 3000:80")
    if state.hostname:
        print()
        print(f"Update your DNS to point to the load balancer: {state.hostname}")


class DeployAction:
    """eks-deploy deploy action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "deploy",
                help="Provision the infrastructure and deploy the application",
                description="""Runs the full deployment: terraform apply, image
                    build and push, manifest rendering, helm install and health
                    verification. The region is read from AWS_REGION.""",
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
        print(f"Deploying to region {settings.region}")
        state = DeployState(settings=settings, confirm=prompt_for_edit)
        result = await Pipeline(deploy_stages()).run(state)
        selector.print_trace(result)
        selector.raise_for_result(result)
        if state.health is not None:
            print_health(state.health)
            if not state.health.passed:
                print("WARNING: health checks failed, the deployment may still be converging")
        print_access(state, settings)
