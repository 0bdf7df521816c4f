"""Library for running the terraform lifecycle for the infrastructure.

Every command runs in the directory holding the terraform configuration and
is never retried: a failed `apply` leaves partially applied infrastructure
that needs an operator to inspect before running again.

```python
from eks_deploy.terraform import Terraform

tf = Terraform(Path("."), environment="prod")
await tf.init()
await tf.plan()
await tf.apply()
outputs = await tf.output_json()
```
"""

import json
import logging
from pathlib import Path
from typing import Any

from . import command
from .command import Command
from .exceptions import ProvisionException

__all__ = [
    "Terraform",
]

_LOGGER = logging.getLogger(__name__)

TERRAFORM_BIN = "terraform"


class Terraform:
    """Wrapper around the terraform cli for a single working directory."""

    def __init__(
        self,
        path: Path,
        environment: str,
        timeout: float | None = None,
    ) -> None:
        """Initialize Terraform."""
        self._path = path
        self._environment = environment
        self._timeout = timeout

    def _command(self, args: list[str]) -> Command:
        return Command(
            [TERRAFORM_BIN] + args,
            cwd=self._path,
            exc=ProvisionException,
            timeout=self._timeout,
        )

    @property
    def _var_args(self) -> list[str]:
        return [f"-var=environment={self._environment}"]

    async def init(self) -> None:
        """Prepare the working directory, safe to run repeatedly."""
        await command.run(self._command(["init", "-input=false"]))

    async def plan(self) -> str:
        """Compute the changes needed to reach the desired state."""
        return await command.run(
            self._command(["plan", "-input=false"] + self._var_args)
        )

    async def apply(self) -> None:
        """Make the planned changes."""
        await command.run(
            self._command(["apply", "-input=false", "-auto-approve"] + self._var_args)
        )

    async def destroy(self) -> None:
        """Tear down all infrastructure in the state."""
        await command.run(
            self._command(
                ["destroy", "-input=false", "-auto-approve"] + self._var_args
            )
        )

    async def output_json(self) -> dict[str, Any]:
        """Return every output in the state as the raw terraform json objects."""
        out = await command.run(self._command(["output", "-json"]))
        try:
            result = json.loads(out or "{}")
        except json.JSONDecodeError as err:
            raise ProvisionException(
                f"Unable to parse terraform output: {err}"
            ) from err
        if not isinstance(result, dict):
            raise ProvisionException(f"Unexpected terraform output: {out}")
        return result
