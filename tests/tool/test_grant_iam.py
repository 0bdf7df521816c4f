"""Tests for the eks-deploy `grant-iam` command."""

from pathlib import Path

import pytest

from eks_deploy.exceptions import CommandException

from .. import ACCOUNT_ID, FakeBin, add_fake_tools
from . import run_command

POLICY_ARN = f"arn:aws:iam::{ACCOUNT_ID}:policy/EKSTerraformDeploymentPolicy"


async def test_grant_iam(tmp_path: Path, fake_bin: FakeBin) -> None:
    add_fake_tools(fake_bin)
    document = tmp_path / "policy.json"
    document.write_text('{"Version": "2012-10-17", "Statement": []}')

    result = await run_command(
        ["grant-iam", "--role", "ci-deployer", "--policy-document", str(document)],
        env={"AWS_REGION": "us-east-1"},
    )
    assert f"Attaching {POLICY_ARN} to role ci-deployer" in result
    calls = fake_bin.calls("aws")
    assert calls[0].startswith(
        "aws iam create-policy --policy-name EKSTerraformDeploymentPolicy "
        f"--policy-document file://{document}"
    )
    assert calls[0].endswith("--region us-east-1")
    assert calls[1] == (
        "aws iam attach-role-policy --role-name ci-deployer "
        f"--policy-arn {POLICY_ARN} --region us-east-1"
    )


async def test_grant_iam_missing_document(tmp_path: Path, fake_bin: FakeBin) -> None:
    add_fake_tools(fake_bin)
    with pytest.raises(CommandException, match="does not exist"):
        await run_command(
            [
                "grant-iam",
                "--role",
                "ci-deployer",
                "--policy-document",
                str(tmp_path / "missing.json"),
            ]
        )
    assert fake_bin.calls() == []
