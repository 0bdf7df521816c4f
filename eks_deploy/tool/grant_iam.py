"""eks-deploy grant-iam action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
import pathlib
from typing import cast

from eks_deploy.aws import AwsCli
from eks_deploy.exceptions import InputException

from . import selector

_LOGGER = logging.getLogger(__name__)

DEFAULT_POLICY_NAME = "EKSTerraformDeploymentPolicy"
DEFAULT_POLICY_DOCUMENT = pathlib.Path("iam-policies/eks-terraform-policy.json")
POLICY_DESCRIPTION = (
    "Policy for EKS Terraform deployment including all required AWS services"
)


class GrantIamAction:
    """eks-deploy grant-iam action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "grant-iam",
                help="Grant a CI role the permissions needed to deploy",
                description="""Creates the deployment IAM policy from a local
                    policy document and attaches it to the role used by CI.""",
            ),
        )
        args.add_argument("--role", required=True, help="Name of the IAM role")
        args.add_argument(
            "--policy-name",
            default=DEFAULT_POLICY_NAME,
            help="Name of the IAM policy to create",
        )
        args.add_argument(
            "--policy-document",
            type=pathlib.Path,
            default=DEFAULT_POLICY_DOCUMENT,
            help="Path to the JSON policy document",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        role: str,
        policy_name: str,
        policy_document: pathlib.Path,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        if not policy_document.is_file():
            raise InputException(f"Policy document {policy_document} does not exist")
        aws = AwsCli(selector.build_settings().region)
        print(f"Creating IAM policy {policy_name}")
        policy_arn = await aws.create_policy(
            policy_name, policy_document, POLICY_DESCRIPTION
        )
        print(f"Attaching {policy_arn} to role {role}")
        await aws.attach_role_policy(role, policy_arn)
        print("Role update completed")
        print(f"Verify with: aws iam list-attached-role-policies --role-name {role}")
