"""eks-deploy outputs action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import io
import logging
import pathlib
from typing import cast

from eks_deploy.pipeline import DeployState, Pipeline, output_stages

from . import selector
from .format import JsonFormatter, PrintFormatter, StructFormatter, YamlFormatter

_LOGGER = logging.getLogger(__name__)


class OutputsAction:
    """eks-deploy outputs action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "outputs",
                help="Print the terraform outputs used by the deployment",
                description="Print the terraform outputs with sensitive values redacted.",
            ),
        )
        selector.add_path_flag(args)
        args.add_argument(
            "--output",
            "-o",
            choices=["table", "yaml", "json"],
            default="table",
            help="Output format of the command",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: pathlib.Path,
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        state = DeployState(settings=selector.build_settings(path))
        result = await Pipeline(output_stages()).run(state, file=io.StringIO())
        selector.raise_for_result(result)
        data = state.require_extractor().redacted(state.require_outputs())
        if output == "table":
            PrintFormatter(["name", "value"]).print(
                [{"name": name, "value": value} for name, value in data.items()]
            )
            return
        formatter: StructFormatter = JsonFormatter() if output == "json" else YamlFormatter()
        formatter.print(data)
