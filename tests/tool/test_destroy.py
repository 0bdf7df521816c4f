"""Tests for the eks-deploy `destroy` command."""

from pathlib import Path

import pytest

from eks_deploy.exceptions import CommandException

from .. import FakeBin, add_fake_tools
from . import run_command


async def test_destroy_requires_confirmation(tmp_path: Path, fake_bin: FakeBin) -> None:
    add_fake_tools(fake_bin)
    with pytest.raises(CommandException, match="without --yes"):
        await run_command(["destroy", "--path", str(tmp_path)])
    assert fake_bin.calls() == []


async def test_destroy(tmp_path: Path, fake_bin: FakeBin) -> None:
    add_fake_tools(fake_bin)
    result = await run_command(["destroy", "--yes", "--path", str(tmp_path)])
    assert "<== terraform destroy: infrastructure destroyed" in result
    assert fake_bin.calls("terraform")[-1] == (
        "terraform destroy -input=false -auto-approve -var=environment=prod"
    )
