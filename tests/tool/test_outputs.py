"""Tests for the eks-deploy `outputs` command."""

import json
from pathlib import Path

import pytest
import yaml

from eks_deploy.exceptions import CommandException

from .. import API_KEY, DB_ENDPOINT, REPOSITORY, FakeBin, add_fake_tools
from . import run_command


async def test_outputs_json(tmp_path: Path, fake_bin: FakeBin) -> None:
    """Test sensitive outputs are redacted."""
    add_fake_tools(fake_bin, gateway_url="https://api.example.com/prod")
    result = await run_command(["outputs", "--path", str(tmp_path), "-o", "json"])
    data = json.loads(result)
    assert data["ecr_repository_url"] == REPOSITORY
    assert data["public_subnets"] == ["subnet-a", "subnet-b"]
    assert data["rds_endpoint"] == f"{DB_ENDPOINT[:4]}..."
    assert data["api_key"] == f"{API_KEY[:4]}..."
    assert "load_balancer_dns" not in data


async def test_outputs_yaml(tmp_path: Path, fake_bin: FakeBin) -> None:
    add_fake_tools(fake_bin)
    result = await run_command(["outputs", "--path", str(tmp_path), "-o", "yaml"])
    data = yaml.safe_load(result)
    assert data["cluster_name"] == "webapp-3tier-cluster"
    assert "api_gateway_url" not in data


async def test_outputs_table(tmp_path: Path, fake_bin: FakeBin) -> None:
    add_fake_tools(fake_bin)
    result = await run_command(["outputs", "--path", str(tmp_path)])
    lines = result.splitlines()
    assert lines[0].split() == ["NAME", "VALUE"]
    assert lines[1].split() == ["cluster_name", "webapp-3tier-cluster"]
    assert DB_ENDPOINT not in result


async def test_outputs_missing(tmp_path: Path, fake_bin: FakeBin) -> None:
    """Test reading outputs before anything was applied."""
    fake_bin.add("terraform", "echo '{}'\n")
    with pytest.raises(CommandException, match="Missing terraform output"):
        await run_command(["outputs", "--path", str(tmp_path)])
