"""The deployment pipeline: an ordered list of stages run one at a time.

Each stage is an async function of the shared `DeployState`. A stage that
raises a `DeployException` is recorded as failed and no later stage runs.
The result holds a `StageResult` per stage that ran, so the caller can print
which stages completed and which one failed.

```python
state = DeployState(settings=PipelineSettings.from_env())
result = await Pipeline(deploy_stages()).run(state)
if not result.ok:
    print(f"stage '{result.failed.name}' failed")
```

The pipeline assumes a single run at a time against the same terraform
state; an interrupted run is recovered by running again from the top.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import logging
from pathlib import Path
import sys
from typing import TextIO

from .aws import AwsCli
from .config import DeploymentConfig, PipelineSettings, load_config, materialize_config
from .context import get_trace_collector, trace_context
from .deployer import WorkloadDeployer, WorkloadRelease
from .exceptions import DeployException, InputException, KubectlException
from .image import ImagePublisher
from .manifest import ManifestSet, ManifestValues
from .outputs import OutputExtractor, ProvisionedOutputs, redact
from .prerequisites import REQUIRED_TOOLS, check_prerequisites
from .smoke import SmokeTargets
from .terraform import Terraform
from .verify import HealthReport, Verifier, health_endpoints

__all__ = [
    "DeployState",
    "Pipeline",
    "PipelineResult",
    "Stage",
    "StageResult",
    "deploy_stages",
    "destroy_stages",
    "output_stages",
    "smoke_stages",
]

_LOGGER = logging.getLogger(__name__)


def _always_confirm(path: Path) -> bool:
    return True


@dataclass
class DeployState:
    """State passed down the pipeline from one stage to the next."""

    settings: PipelineSettings
    confirm: Callable[[Path], bool] = _always_confirm
    """Called after a new config file is created, returns False to stop."""

    config: DeploymentConfig | None = None
    account_id: str | None = None
    extractor: OutputExtractor | None = None
    outputs: ProvisionedOutputs | None = None
    targets: SmokeTargets | None = None
    image: str | None = None
    release: WorkloadRelease | None = None
    hostname: str | None = None
    health: HealthReport | None = None

    @property
    def aws(self) -> AwsCli:
        return AwsCli(self.settings.region)

    @property
    def terraform(self) -> Terraform:
        return Terraform(
            self.settings.path,
            environment=self.settings.environment,
            timeout=self.settings.provision_timeout,
        )

    @property
    def deployer(self) -> WorkloadDeployer:
        return WorkloadDeployer(self.settings.deployer, self.settings.path)

    def require_outputs(self) -> ProvisionedOutputs:
        if self.outputs is None:
            raise InputException("Terraform outputs have not been extracted")
        return self.outputs

    def require_extractor(self) -> OutputExtractor:
        if self.extractor is None:
            raise InputException("Terraform outputs have not been read")
        return self.extractor

    def require_targets(self) -> SmokeTargets:
        if self.targets is None:
            raise InputException("API outputs have not been read")
        return self.targets

    def require_account_id(self) -> str:
        if not self.account_id:
            raise InputException("AWS account id has not been resolved")
        return self.account_id


StageAction = Callable[[DeployState], Awaitable[str | None]]


@dataclass(frozen=True)
class Stage:
    """A named step in the pipeline."""

    name: str
    action: StageAction


@dataclass(frozen=True)
class StageResult:
    """Outcome of running a single stage."""

    name: str
    ok: bool
    message: str | None = None
    duration: float = 0.0


@dataclass
class PipelineResult:
    """Results of the stages that ran, in order."""

    results: list[StageResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    @property
    def failed(self) -> StageResult | None:
        return next((result for result in self.results if not result.ok), None)


class Pipeline:
    """Runs stages in order, stopping at the first failure."""

    def __init__(self, stages: list[Stage]) -> None:
        """Initialize Pipeline."""
        self._stages = stages

    @property
    def stages(self) -> list[Stage]:
        return list(self._stages)

    async def run(self, state: DeployState, file: TextIO = sys.stdout) -> PipelineResult:
        result = PipelineResult()
        with get_trace_collector() as collector:
            for stage in self._stages:
                print(f"==> {stage.name}", file=file)
                try:
                    with trace_context(stage.name):
                        message = await stage.action(state)
                except DeployException as err:
                    duration = collector.timings.get(stage.name, 0.0)
                    _LOGGER.debug("Stage %s failed: %s", stage.name, err)
                    print(f"<== {stage.name}: FAILED", file=file)
                    result.results.append(
                        StageResult(stage.name, False, str(err), duration)
                    )
                    break
                duration = collector.timings.get(stage.name, 0.0)
                print(f"<== {stage.name}: {message or 'done'}", file=file)
                result.results.append(StageResult(stage.name, True, message, duration))
        return result


async def _check_prerequisites(state: DeployState) -> str:
    check_prerequisites(REQUIRED_TOOLS)
    return "all tools installed"


async def _check_terraform(state: DeployState) -> str:
    check_prerequisites(["terraform"])
    return "terraform installed"


async def _configuration(state: DeployState) -> str:
    settings = state.settings
    created = materialize_config(
        settings.tfvars_example_path, settings.tfvars_path, state.confirm
    )
    state.config = load_config(settings)
    if created:
        return f"created {settings.tfvars}"
    return f"using {settings.tfvars}"


async def _account(state: DeployState) -> str:
    state.account_id = await state.aws.account_id()
    return f"account {state.account_id} in {state.settings.region}"


async def _terraform_init(state: DeployState) -> None:
    await state.terraform.init()


async def _terraform_plan(state: DeployState) -> None:
    await state.terraform.plan()


async def _terraform_apply(state: DeployState) -> str:
    await state.terraform.apply()
    return "infrastructure applied"


async def _terraform_destroy(state: DeployState) -> str:
    await state.terraform.destroy()
    return "infrastructure destroyed"


async def _extract_outputs(state: DeployState) -> str:
    state.extractor = await OutputExtractor.from_terraform(state.terraform)
    state.outputs = state.extractor.extract()
    return (
        f"cluster {state.outputs.cluster_name}, "
        f"repository {state.outputs.ecr_repository_url}, "
        f"database {redact(state.outputs.rds_endpoint)}"
    )


async def _api_outputs(state: DeployState) -> str:
    state.extractor = await OutputExtractor.from_terraform(state.terraform)
    state.targets = SmokeTargets.from_extractor(state.extractor)
    return f"gateway {state.targets.gateway_url}"


async def _kubeconfig(state: DeployState) -> str:
    outputs = state.require_outputs()
    await state.aws.update_kubeconfig(outputs.cluster_name)
    await state.deployer.wait_for_nodes()
    return f"cluster {outputs.cluster_name} ready"


async def _publish_image(state: DeployState) -> str:
    settings = state.settings
    outputs = state.require_outputs()
    publisher = ImagePublisher(
        state.aws, settings.path / settings.app_dir, settings.image_name
    )
    state.image = await publisher.publish(outputs.ecr_repository_url, settings.image_tag)
    return f"pushed {state.image}"


async def _render_manifests(state: DeployState) -> str:
    settings = state.settings
    outputs = state.require_outputs()
    values = ManifestValues(
        account_id=state.require_account_id(),
        certificate_arn=outputs.certificate_arn,
        alb_security_group_id=outputs.alb_security_group_id,
        public_subnet_ids=outputs.public_subnets,
        db_host=outputs.rds_endpoint,
    )
    manifests = ManifestSet.from_paths(settings.path / p for p in settings.manifests)
    counts = await manifests.render(values, backup=settings.manifest_backup)
    return ", ".join(f"{name} ({count} replaced)" for name, count in counts.items())


async def _deploy_workload(state: DeployState) -> str:
    settings = state.settings
    outputs = state.require_outputs()
    if state.config is None:
        raise InputException("Configuration has not been loaded")
    state.release = await state.deployer.deploy(
        manifests=[settings.path / p for p in settings.manifests],
        repository=outputs.ecr_repository_url,
        tag=settings.image_tag,
        account_id=state.require_account_id(),
        certificate_arn=outputs.certificate_arn,
        db_host=outputs.rds_endpoint,
        db_password=state.config.db_password,
    )
    status = state.release.status
    return f"{status.ready}/{status.desired} replicas ready"


async def _verify(state: DeployState) -> str:
    """Check the health endpoint, never failing the pipeline."""
    outputs = state.require_outputs()
    try:
        state.hostname = await state.deployer.resolve_hostname()
    except KubectlException as err:
        _LOGGER.warning("Unable to resolve ingress hostname: %s", err)
    verifier = Verifier(state.settings.request_timeout, state.settings.verify_ssl)
    state.health = await verifier.verify(
        health_endpoints(outputs.api_gateway_url, state.hostname)
    )
    if state.health.passed:
        return "all health checks passed"
    names = ", ".join(result.name for result in state.health.failures)
    return f"WARNING health checks failed: {names}"


def deploy_stages() -> list[Stage]:
    """Stages of a full deployment."""
    return [
        Stage("check prerequisites", _check_prerequisites),
        Stage("configuration", _configuration),
        Stage("aws account", _account),
        Stage("terraform init", _terraform_init),
        Stage("terraform plan", _terraform_plan),
        Stage("terraform apply", _terraform_apply),
        Stage("terraform outputs", _extract_outputs),
        Stage("kubeconfig", _kubeconfig),
        Stage("publish image", _publish_image),
        Stage("render manifests", _render_manifests),
        Stage("deploy workload", _deploy_workload),
        Stage("verify", _verify),
    ]


def destroy_stages() -> list[Stage]:
    """Stages that tear down the infrastructure."""
    return [
        Stage("check prerequisites", _check_terraform),
        Stage("terraform init", _terraform_init),
        Stage("terraform destroy", _terraform_destroy),
    ]


def output_stages() -> list[Stage]:
    """Stages that only read the terraform outputs."""
    return [
        Stage("check prerequisites", _check_terraform),
        Stage("terraform outputs", _extract_outputs),
    ]


def smoke_stages() -> list[Stage]:
    """Stages that read only the API outputs used by the smoke test."""
    return [
        Stage("check prerequisites", _check_terraform),
        Stage("api outputs", _api_outputs),
    ]
