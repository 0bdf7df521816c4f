"""Library for building and publishing the application container image."""

import logging
from pathlib import Path

from . import command
from .aws import AwsCli
from .command import Command
from .exceptions import PublishException

__all__ = [
    "ImagePublisher",
]

_LOGGER = logging.getLogger(__name__)

DOCKER_BIN = "docker"
REGISTRY_USERNAME = "AWS"
_BUILD_TIMEOUT = 1800.0


def registry_host(repository_url: str) -> str:
    """Return the registry host of an image repository url."""
    return repository_url.split("/", 1)[0]


class ImagePublisher:
    """Builds an image from a local context and pushes it to the registry.

    Any failure raises a `PublishException` and the whole publish needs to
    be run again; rebuilding relies on the docker layer cache.
    """

    def __init__(self, aws: AwsCli, context: Path, image_name: str) -> None:
        """Initialize ImagePublisher."""
        self._aws = aws
        self._context = context
        self._image_name = image_name

    def _command(self, args: list[str], timeout: float | None = None) -> Command:
        return Command([DOCKER_BIN] + args, exc=PublishException, timeout=timeout)

    async def login(self, repository_url: str) -> None:
        """Authenticate docker to the registry with a short lived password."""
        await command.run_piped(
            [
                self._aws.ecr_login_password(exc=PublishException),
                self._command(
                    [
                        "login",
                        "--username",
                        REGISTRY_USERNAME,
                        "--password-stdin",
                        registry_host(repository_url),
                    ]
                ),
            ]
        )

    async def build(self) -> None:
        """Build the local image."""
        if not self._context.is_dir():
            raise PublishException(f"Build context {self._context} is not a directory")
        await command.run(
            self._command(
                ["build", "-t", self._image_name, str(self._context)],
                timeout=_BUILD_TIMEOUT,
            )
        )

    async def tag(self, repository_url: str, tag: str) -> str:
        """Tag the local image for the repository, returning the image reference."""
        image = f"{repository_url}:{tag}"
        await command.run(
            self._command(["tag", f"{self._image_name}:latest", image])
        )
        return image

    async def push(self, image: str) -> None:
        await command.run(self._command(["push", image], timeout=_BUILD_TIMEOUT))

    async def publish(self, repository_url: str, tag: str) -> str:
        """Login, build, tag and push the image, returning the image reference."""
        _LOGGER.debug("Publishing %s to %s", self._image_name, repository_url)
        await self.login(repository_url)
        await self.build()
        image = await self.tag(repository_url, tag)
        await self.push(image)
        return image
