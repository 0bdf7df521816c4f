"""eks-deploy destroy action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
import pathlib
from typing import cast

from eks_deploy.exceptions import InputException
from eks_deploy.pipeline import DeployState, Pipeline, destroy_stages

from . import selector

_LOGGER = logging.getLogger(__name__)


class DestroyAction:
    """eks-deploy destroy action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "destroy",
                help="Destroy all provisioned infrastructure",
                description="Runs terraform destroy. Requires --yes.",
            ),
        )
        selector.add_path_flag(args)
        args.add_argument(
            "--yes",
            action="store_true",
            default=False,
            help="Confirm that all infrastructure should be destroyed",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: pathlib.Path,
        yes: bool,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        if not yes:
            raise InputException("Refusing to destroy infrastructure without --yes")
        state = DeployState(settings=selector.build_settings(path))
        result = await Pipeline(destroy_stages()).run(state)
        selector.print_trace(result)
        selector.raise_for_result(result)
