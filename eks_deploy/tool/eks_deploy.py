"""Command line tool for deploying the application to EKS."""

import argparse
import asyncio
import logging
import sys
import traceback

from eks_deploy.exceptions import DeployException
from . import deploy, destroy, grant_iam, outputs, test

_LOGGER = logging.getLogger(__name__)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Command line utility for deploying the application to EKS.",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    deploy.DeployAction.register(subparsers)
    destroy.DestroyAction.register(subparsers)
    test.TestAction.register(subparsers)
    outputs.OutputsAction.register(subparsers)
    grant_iam.GrantIamAction.register(subparsers)
    return parser


def main(argv: list[str] | None = None) -> None:
    """eks-deploy command line tool main entry point."""
    parser = _make_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        logging.basicConfig(level=args.log_level)

    action = args.cls()
    try:
        asyncio.run(action.run(**vars(args)))
    except DeployException as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print("eks-deploy error: ", err, file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
