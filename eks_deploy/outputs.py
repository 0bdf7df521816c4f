"""Library for reading named outputs from the provisioner state.

The outputs are read once per run with `terraform output -json` and are not
cached between runs. The database endpoint and api key are always sensitive,
as is any output terraform marks sensitive, and they must be passed through
`redact` before they are displayed.

```python
from eks_deploy.outputs import OutputExtractor

extractor = await OutputExtractor.from_terraform(tf)
outputs = extractor.extract()
print(f"Cluster: {outputs.cluster_name}")
print(f"Database: {redact(outputs.rds_endpoint)}")
```
"""

from dataclasses import dataclass, field
import json
import logging
from typing import Any

from mashumaro import DataClassDictMixin
from mashumaro.config import BaseConfig

from .exceptions import InputException, MissingOutputError
from .terraform import Terraform

__all__ = [
    "OutputExtractor",
    "ProvisionedOutputs",
    "redact",
]

_LOGGER = logging.getLogger(__name__)

CLUSTER_NAME = "cluster_name"
ECR_REPOSITORY_URL = "ecr_repository_url"
RDS_ENDPOINT = "rds_endpoint"
CERTIFICATE_ARN = "certificate_arn"
ALB_SECURITY_GROUP_ID = "alb_security_group_id"
PUBLIC_SUBNETS = "public_subnets"
API_GATEWAY_URL = "api_gateway_url"
API_GATEWAY_CUSTOM_DOMAIN = "api_gateway_custom_domain"
API_KEY = "api_key"
LOAD_BALANCER_DNS = "load_balancer_dns"

# Outputs that must exist before the workload can be deployed
REQUIRED_OUTPUTS = [
    CLUSTER_NAME,
    ECR_REPOSITORY_URL,
    RDS_ENDPOINT,
    CERTIFICATE_ARN,
    ALB_SECURITY_GROUP_ID,
    PUBLIC_SUBNETS,
]

OPTIONAL_OUTPUTS = [
    API_GATEWAY_URL,
    API_GATEWAY_CUSTOM_DOMAIN,
    API_KEY,
    LOAD_BALANCER_DNS,
]

SENSITIVE_OUTPUTS = {RDS_ENDPOINT, API_KEY}

_REDACT_PREFIX = 4


def redact(value: str | None) -> str:
    """Mask a sensitive value for display."""
    if not value:
        return ""
    return f"{value[:_REDACT_PREFIX]}..."


def _to_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


@dataclass
class ProvisionedOutputs(DataClassDictMixin):
    """The well known outputs of a successful apply."""

    cluster_name: str
    ecr_repository_url: str
    rds_endpoint: str
    certificate_arn: str
    alb_security_group_id: str
    public_subnets: list[str] = field(default_factory=list)
    api_gateway_url: str | None = None
    api_gateway_custom_domain: str | None = None
    api_key: str | None = None
    load_balancer_dns: str | None = None

    @property
    def registry(self) -> str:
        """Registry host portion of the repository url."""
        return self.ecr_repository_url.split("/", 1)[0]

    class Config(BaseConfig):
        omit_none = True


class OutputExtractor:
    """Read access to the outputs of the provisioner state."""

    def __init__(self, outputs: dict[str, Any]) -> None:
        """Initialize OutputExtractor from `terraform output -json` objects."""
        self._outputs = outputs

    @classmethod
    async def from_terraform(cls, terraform: Terraform) -> "OutputExtractor":
        """Read all outputs from the terraform state in a single pass."""
        return cls(await terraform.output_json())

    @property
    def names(self) -> list[str]:
        return sorted(self._outputs)

    def is_sensitive(self, name: str) -> bool:
        """Return True if the output must be redacted before display."""
        if name in SENSITIVE_OUTPUTS:
            return True
        output = self._outputs.get(name)
        return isinstance(output, dict) and bool(output.get("sensitive"))

    def redacted(self, outputs: ProvisionedOutputs) -> dict[str, Any]:
        """Return the outputs as a dictionary with sensitive values masked.

        An output is masked when it is always sensitive or when terraform
        marks it sensitive in the state.
        """
        data = outputs.to_dict()
        for name, value in data.items():
            if value and self.is_sensitive(name):
                data[name] = redact(_to_str(value))
        return data

    def _raw(self, name: str) -> Any:
        if (output := self._outputs.get(name)) is None:
            return None
        if isinstance(output, dict) and "value" in output:
            return output["value"]
        return output

    def get(self, name: str) -> str:
        """Return the named output as a string.

        List and map outputs are returned as json text.
        """
        if (value := self._raw(name)) is None:
            raise MissingOutputError([name])
        return _to_str(value)

    def get_optional(self, name: str) -> str | None:
        """Return the named output, or None when absent or null."""
        if (value := self._raw(name)) is None:
            return None
        if (result := _to_str(value)) in ("", "null"):
            return None
        return result

    def get_list(self, name: str) -> list[str]:
        """Return a list output as a list of strings."""
        if (value := self._raw(name)) is None:
            raise MissingOutputError([name])
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as err:
                raise InputException(
                    f"Output {name} is not a json list: {err}"
                ) from err
        if not isinstance(value, list):
            raise InputException(f"Output {name} is not a list: {type(value).__name__}")
        return [_to_str(item) for item in value]

    def extract(self) -> ProvisionedOutputs:
        """Return all well known outputs.

        Every missing required output is reported in a single error.
        """
        if missing := [name for name in REQUIRED_OUTPUTS if self._raw(name) is None]:
            raise MissingOutputError(missing)
        _LOGGER.debug("Extracted outputs: %s", self.names)
        return ProvisionedOutputs(
            cluster_name=self.get(CLUSTER_NAME),
            ecr_repository_url=self.get(ECR_REPOSITORY_URL),
            rds_endpoint=self.get(RDS_ENDPOINT),
            certificate_arn=self.get(CERTIFICATE_ARN),
            alb_security_group_id=self.get(ALB_SECURITY_GROUP_ID),
            public_subnets=self.get_list(PUBLIC_SUBNETS),
            api_gateway_url=self.get_optional(API_GATEWAY_URL),
            api_gateway_custom_domain=self.get_optional(API_GATEWAY_CUSTOM_DOMAIN),
            api_key=self.get_optional(API_KEY),
            load_balancer_dns=self.get_optional(LOAD_BALANCER_DNS),
        )
