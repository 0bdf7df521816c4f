"""Library for issuing `aws` cli commands used by the deployment."""

import logging
from pathlib import Path

from . import command
from .command import Command
from .exceptions import CommandException

__all__ = [
    "AwsCli",
]

_LOGGER = logging.getLogger(__name__)

AWS_BIN = "aws"


class AwsCli:
    """Wrapper around the aws cli for a single region."""

    def __init__(self, region: str, exc: type[CommandException] = CommandException) -> None:
        """Initialize AwsCli."""
        self._region = region
        self._exc = exc

    @property
    def region(self) -> str:
        return self._region

    def command(
        self, args: list[str], exc: type[CommandException] | None = None
    ) -> Command:
        """Return a command for the aws cli in the configured region."""
        return Command(
            [AWS_BIN] + args + ["--region", self._region], exc=exc or self._exc
        )

    async def account_id(self) -> str:
        """Return the account id of the caller's credentials."""
        out = await command.run(
            self.command(
                ["sts", "get-caller-identity", "--query", "Account", "--output", "text"]
            )
        )
        return out.strip()

    def ecr_login_password(self, exc: type[CommandException] | None = None) -> Command:
        """Command that prints a short lived registry password to stdout."""
        return self.command(["ecr", "get-login-password"], exc=exc)

    async def update_kubeconfig(self, cluster_name: str) -> None:
        """Point the local kubeconfig at the cluster."""
        await command.run(
            self.command(["eks", "update-kubeconfig", "--name", cluster_name])
        )

    async def create_policy(
        self, policy_name: str, document: Path, description: str
    ) -> str:
        """Create an IAM policy from a local JSON document and return its ARN."""
        out = await command.run(
            self.command(
                [
                    "iam",
                    "create-policy",
                    "--policy-name",
                    policy_name,
                    "--policy-document",
                    f"file://{document}",
                    "--description",
                    description,
                    "--query",
                    "Policy.Arn",
                    "--output",
                    "text",
                ]
            )
        )
        return out.strip()

    async def attach_role_policy(self, role_name: str, policy_arn: str) -> None:
        """Attach a managed policy to a role."""
        await command.run(
            self.command(
                [
                    "iam",
                    "attach-role-policy",
                    "--role-name",
                    role_name,
                    "--policy-arn",
                    policy_arn,
                ]
            )
        )
