"""Configuration objects for eks-deploy.

Operator supplied values live in a terraform variables file
(`terraform.tfvars`) that is shared with the infrastructure configuration.
The pipeline only reads simple `key = value` assignments from that file.

Settings that control the pipeline itself (names of the kubernetes objects,
timeouts, local paths) are plain dataclasses with defaults matching the
standard project layout:

```
terraform.tfvars.example
app/Dockerfile
k8s/deployment.yaml
k8s/ingress.yaml
helm/webapp-3tier/
```
"""

from collections.abc import Callable
from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import re
import shutil

from .exceptions import ConfigurationSuspended, InputException, StaleConfigurationError

__all__ = [
    "DeploymentConfig",
    "DeployerConfig",
    "PipelineSettings",
    "parse_tfvars",
    "materialize_config",
    "load_config",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_REGION = "us-west-2"
REGION_ENV = "AWS_REGION"
TFVARS = "terraform.tfvars"
TFVARS_EXAMPLE = "terraform.tfvars.example"

# Keys the operator must change from the example file before deploying
REQUIRED_KEYS = ["domain_name", "db_password"]

_ASSIGNMENT = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_-]*)\s*=\s*(.*?)\s*$")
_QUOTED = re.compile(r'^"((?:[^"\\]|\\.)*)"')


def _strip_comment(value: str) -> str:
    """Remove a trailing comment from an unquoted value."""
    for marker in ("#", "//"):
        if (idx := value.find(marker)) != -1:
            value = value[:idx]
    return value.strip()


def _parse_value(raw: str) -> str:
    if match := _QUOTED.match(raw):
        return re.sub(r"\\(.)", r"\1", match.group(1))
    return _strip_comment(raw)


def parse_tfvars(content: str) -> dict[str, str]:
    """Parse the top level assignments of a terraform variables file.

    Quoted strings are unescaped, other values (numbers, booleans, lists) are
    returned as their literal text. Multi-line values are not supported and
    are skipped.
    """
    values: dict[str, str] = {}
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", "//")):
            continue
        if not (match := _ASSIGNMENT.match(line)):
            continue
        key, raw = match.groups()
        if raw.endswith(("[", "{")):
            _LOGGER.debug("Skipping multi-line value for %s", key)
            continue
        values[key] = _parse_value(raw)
    return values


@dataclass(frozen=True)
class DeploymentConfig:
    """Operator supplied key/value settings loaded from a variables file."""

    path: Path
    """Path of the variables file."""

    values: dict[str, str] = field(default_factory=dict)
    """Parsed assignments."""

    @classmethod
    def read(cls, path: Path) -> "DeploymentConfig":
        """Load the variables file at the path."""
        try:
            content = path.read_text()
        except FileNotFoundError as err:
            raise InputException(f"Configuration file {path} does not exist") from err
        return cls(path=path, values=parse_tfvars(content))

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.values.get(key, default)

    def __getitem__(self, key: str) -> str:
        if not (value := self.values.get(key)):
            raise InputException(f"Configuration file {self.path} has no value for '{key}'")
        return value

    @property
    def db_password(self) -> str:
        return self["db_password"]

    @property
    def domain_name(self) -> str:
        return self["domain_name"]

    def stale_keys(
        self, template: "DeploymentConfig | None", required: list[str]
    ) -> list[str]:
        """Return required keys that are empty or unchanged from the template."""
        stale = []
        for key in required:
            value = self.values.get(key)
            if not value:
                stale.append(key)
            elif template is not None and template.values.get(key) == value:
                stale.append(key)
        return stale


@dataclass
class DeployerConfig:
    """Names and timeouts used when deploying the workload to the cluster."""

    namespace: str = "webapp"
    release_name: str = "webapp-3tier"
    chart: str = "helm/webapp-3tier"
    """Path of the helm chart, relative to the project directory."""

    deployment_name: str = "webapp-3tier"
    ingress_name: str = "webapp-ingress"
    secret_name: str = "webapp-secrets"
    db_name: str = "webapp"
    db_username: str = "webapp_user"
    pod_role_name: str = "webapp-3tier-pod-role"

    node_timeout: float = 300.0
    rollout_timeout: float = 300.0
    ingress_timeout: float = 300.0
    poll_interval: float = 5.0


@dataclass
class PipelineSettings:
    """Settings for a run of the deployment pipeline."""

    path: Path = Path(".")
    """Project directory holding the terraform configuration."""

    region: str = DEFAULT_REGION
    environment: str = "prod"

    tfvars: str = TFVARS
    tfvars_example: str = TFVARS_EXAMPLE
    required_keys: list[str] = field(default_factory=lambda: list(REQUIRED_KEYS))

    app_dir: str = "app"
    """Docker build context, relative to the project directory."""

    image_name: str = "webapp-3tier"
    image_tag: str = "latest"

    manifests: list[str] = field(
        default_factory=lambda: ["k8s/deployment.yaml", "k8s/ingress.yaml"]
    )
    manifest_backup: bool = True

    provision_timeout: float = 3600.0
    request_timeout: float = 10.0
    verify_ssl: bool = True

    deployer: DeployerConfig = field(default_factory=DeployerConfig)

    @classmethod
    def from_env(cls, path: Path | None = None) -> "PipelineSettings":
        """Create settings using the region from the environment."""
        return cls(
            path=path or Path("."),
            region=os.environ.get(REGION_ENV) or DEFAULT_REGION,
        )

    @property
    def tfvars_path(self) -> Path:
        return self.path / self.tfvars

    @property
    def tfvars_example_path(self) -> Path:
        return self.path / self.tfvars_example


def materialize_config(
    template: Path, target: Path, confirm: Callable[[Path], bool]
) -> bool:
    """Create the target config file from the template if it does not exist.

    A newly created file suspends the pipeline until `confirm` returns, which
    lets the operator edit the values first. Returns True when the file was
    created.
    """
    if target.exists():
        _LOGGER.debug("Configuration file %s already exists", target)
        return False
    if not template.exists():
        raise InputException(
            f"Configuration file {target} is missing and no template {template} exists"
        )
    print(f"Creating {target.name} from {template.name}")
    shutil.copyfile(template, target)
    if not confirm(target):
        raise ConfigurationSuspended(
            f"Update {target} with your values and run the deployment again"
        )
    return True


def load_config(settings: PipelineSettings) -> DeploymentConfig:
    """Read and validate the operator configuration."""
    config = DeploymentConfig.read(settings.tfvars_path)
    template = None
    if settings.tfvars_example_path.exists():
        template = DeploymentConfig.read(settings.tfvars_example_path)
    if stale := config.stale_keys(template, settings.required_keys):
        raise StaleConfigurationError(str(settings.tfvars_path), stale)
    return config
