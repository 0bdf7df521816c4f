"""Test helpers for eks-deploy tools."""

import sys

from eks_deploy.command import Command, run

EKS_DEPLOY_BIN = [sys.executable, "-m", "eks_deploy"]


async def run_command(args: list[str], env: dict[str, str] | None = None) -> str:
    return await run(Command(EKS_DEPLOY_BIN + args, env=env))
