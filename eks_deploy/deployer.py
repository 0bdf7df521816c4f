"""Deploys the application workload to the cluster.

A deploy happens in three steps:
  - The database secret is rendered and applied, replacing any existing copy
  - The helm chart is installed or upgraded with the image and the values
    from the provisioned infrastructure. Without a chart the rendered
    manifests are applied directly.
  - The deployment is polled until every desired replica runs the new
    spec and is ready

A rollout that does not finish in time raises `RolloutTimeoutError`. The
previous release keeps serving and is never rolled back automatically.
"""

from dataclasses import dataclass
import logging
from pathlib import Path

from .config import DeployerConfig
from .helm import Helm, Options, set_key
from .kubectl import Kubectl
from .rollout import RolloutStatus, poll, wait_for_rollout

__all__ = [
    "WorkloadDeployer",
    "WorkloadRelease",
]

_LOGGER = logging.getLogger(__name__)

ROLE_ARN_ANNOTATION = "eks.amazonaws.com/role-arn"
CERTIFICATE_ARN_ANNOTATION = "alb.ingress.kubernetes.io/certificate-arn"


@dataclass
class WorkloadRelease:
    """Observed state of the deployed workload."""

    image: str
    status: RolloutStatus
    hostname: str | None = None


class WorkloadDeployer:
    """Applies the workload and blocks until it has rolled out."""

    def __init__(
        self,
        config: DeployerConfig,
        path: Path,
        kubectl: Kubectl | None = None,
        helm: Helm | None = None,
    ) -> None:
        """Initialize WorkloadDeployer."""
        self._config = config
        self._path = path
        self._kubectl = kubectl or Kubectl(config.namespace)
        self._helm = helm or Helm(
            config.namespace, Options(timeout=config.rollout_timeout)
        )

    @property
    def chart(self) -> Path:
        return self._path / self._config.chart

    async def wait_for_nodes(self) -> None:
        await self._kubectl.wait_for_nodes(self._config.node_timeout)

    async def apply_secrets(self, db_host: str, db_password: str) -> None:
        """Create or replace the database connection secret."""
        await self._kubectl.ensure_namespace()
        await self._kubectl.apply_secret(
            self._config.secret_name,
            {
                "db-host": db_host,
                "db-name": self._config.db_name,
                "db-username": self._config.db_username,
                "db-password": db_password,
            },
        )

    def helm_values(
        self,
        repository: str,
        tag: str,
        account_id: str,
        certificate_arn: str,
    ) -> dict[str | tuple[str, ...], str]:
        """Values overlay passed to the chart."""
        role_arn = f"arn:aws:iam::{account_id}:role/{self._config.pod_role_name}"
        return {
            "image.repository": repository,
            "image.tag": tag,
            ("serviceAccount", "annotations", ROLE_ARN_ANNOTATION): role_arn,
            ("ingress", "annotations", CERTIFICATE_ARN_ANNOTATION): certificate_arn,
        }

    async def install(
        self,
        manifests: list[Path],
        repository: str,
        tag: str,
        account_id: str,
        certificate_arn: str,
    ) -> None:
        """Install the chart, or apply the manifests when there is no chart."""
        if self.chart.is_dir():
            _LOGGER.debug("Installing chart %s", self.chart)
            values = self.helm_values(repository, tag, account_id, certificate_arn)
            await self._helm.upgrade_install(
                self._config.release_name, self.chart, values
            )
            return
        _LOGGER.debug("No chart at %s, applying manifests", self.chart)
        await self._kubectl.apply(manifests)

    async def wait_for_rollout(self) -> RolloutStatus:
        deployment = self._config.deployment_name
        return await wait_for_rollout(
            f"deployment/{deployment}",
            lambda: self._kubectl.rollout_status(deployment),
            timeout=self._config.rollout_timeout,
            interval=self._config.poll_interval,
        )

    async def resolve_hostname(self) -> str | None:
        """Wait for the ingress to be assigned a load balancer hostname."""
        hostname, _ = await poll(
            lambda: self._kubectl.ingress_hostname(self._config.ingress_name),
            lambda value: value is not None,
            timeout=self._config.ingress_timeout,
            interval=self._config.poll_interval,
        )
        return hostname

    async def deploy(
        self,
        manifests: list[Path],
        repository: str,
        tag: str,
        account_id: str,
        certificate_arn: str,
        db_host: str,
        db_password: str,
    ) -> WorkloadRelease:
        """Apply secrets and workload, then block until the rollout completes."""
        await self.apply_secrets(db_host, db_password)
        await self.install(manifests, repository, tag, account_id, certificate_arn)
        status = await self.wait_for_rollout()
        return WorkloadRelease(image=f"{repository}:{tag}", status=status)
