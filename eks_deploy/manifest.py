"""Library for rendering environment specific values into kubernetes manifests.

Manifests are checked in with placeholder tokens such as `ACCOUNT_ID` and
`CERTIFICATE_ARN`. Rendering replaces each token with a value from the
provisioned infrastructure and writes the result back to the same file,
keeping a `.bak` copy of the original.

```python
from eks_deploy.manifest import ManifestSet, ManifestValues

manifests = ManifestSet.from_paths([Path("k8s/deployment.yaml"), Path("k8s/ingress.yaml")])
await manifests.render(ManifestValues(account_id="123456789012", ...))
```

Tokens are plain substrings, not a template language, so no token may be a
substring of another token and no value may contain a token. Both are
checked before anything is written.
"""

import base64
from collections.abc import Iterable
from dataclasses import dataclass
import logging
from pathlib import Path
import re

import aiofiles
import yaml

from .exceptions import (
    InputException,
    TokenCollisionError,
    UnresolvedPlaceholderError,
)

__all__ = [
    "rewrite",
    "ManifestSet",
    "ManifestTemplate",
    "ManifestValues",
]

_LOGGER = logging.getLogger(__name__)

ACCOUNT_ID_TOKEN = "ACCOUNT_ID"
CERTIFICATE_ARN_TOKEN = "CERTIFICATE_ARN"
ALB_SECURITY_GROUP_ID_TOKEN = "ALB_SECURITY_GROUP_ID"
PUBLIC_SUBNET_IDS_TOKEN = "PUBLIC_SUBNET_IDS"
DB_HOST_PLACEHOLDER = "db-host: # Base64 encoded RDS endpoint"

MANIFEST_TOKENS = [
    ACCOUNT_ID_TOKEN,
    CERTIFICATE_ARN_TOKEN,
    ALB_SECURITY_GROUP_ID_TOKEN,
    PUBLIC_SUBNET_IDS_TOKEN,
    DB_HOST_PLACEHOLDER,
]

BACKUP_SUFFIX = ".bak"


def check_tokens(replacements: dict[str, str]) -> None:
    """Verify tokens can be replaced without corrupting each other."""
    tokens = list(replacements)
    for token in tokens:
        if not token:
            raise TokenCollisionError("Placeholder tokens must not be empty")
        for other in tokens:
            if other != token and token in other:
                raise TokenCollisionError(
                    f"Placeholder token '{token}' is a substring of '{other}'"
                )
    for token, value in replacements.items():
        for other in tokens:
            if other in value:
                raise TokenCollisionError(
                    f"Value for '{token}' contains placeholder token '{other}'"
                )


def replace_tokens(content: str, replacements: dict[str, str]) -> tuple[str, int]:
    """Replace every token in a single pass in file order.

    Returns the new content and the number of replacements made.
    """
    if not replacements:
        return content, 0
    check_tokens(replacements)
    pattern = re.compile("|".join(re.escape(token) for token in replacements))
    return pattern.subn(lambda match: replacements[match.group(0)], content)


def unresolved_tokens(content: str, tokens: Iterable[str]) -> list[str]:
    """Return the tokens still present in the content."""
    return [token for token in tokens if token in content]


def backup_path(path: Path) -> Path:
    return path.with_name(path.name + BACKUP_SUFFIX)


async def _write(path: Path, content: str) -> None:
    async with aiofiles.open(path, mode="w") as fd:
        await fd.write(content)


async def rewrite(
    path: Path, replacements: dict[str, str], backup: bool = True
) -> int:
    """Replace every literal occurrence of each token in the file.

    The file is only written when something changed, so a second pass with
    the same replacements leaves the file untouched. Returns the number of
    replacements made.
    """
    async with aiofiles.open(path) as fd:
        content = await fd.read()
    result, count = replace_tokens(content, replacements)
    if count == 0:
        _LOGGER.debug("No placeholders to replace in %s", path)
        return 0
    if backup:
        await _write(backup_path(path), content)
    await _write(path, result)
    _LOGGER.debug("Replaced %d placeholders in %s", count, path)
    return count


@dataclass(frozen=True)
class ManifestValues:
    """The closed set of values rendered into the manifests."""

    account_id: str
    certificate_arn: str
    alb_security_group_id: str
    public_subnet_ids: list[str]
    db_host: str

    def replacements(self) -> dict[str, str]:
        """Return the token to value mapping, rejecting empty values."""
        values = {
            "account_id": self.account_id,
            "certificate_arn": self.certificate_arn,
            "alb_security_group_id": self.alb_security_group_id,
            "public_subnet_ids": ",".join(self.public_subnet_ids),
            "db_host": self.db_host,
        }
        if empty := [name for name, value in values.items() if not value]:
            raise InputException(
                f"Manifest values must not be empty: {', '.join(empty)}"
            )
        db_host = base64.b64encode(self.db_host.encode("utf-8")).decode("utf-8")
        return {
            ACCOUNT_ID_TOKEN: values["account_id"],
            CERTIFICATE_ARN_TOKEN: values["certificate_arn"],
            ALB_SECURITY_GROUP_ID_TOKEN: values["alb_security_group_id"],
            PUBLIC_SUBNET_IDS_TOKEN: values["public_subnet_ids"],
            DB_HOST_PLACEHOLDER: f"db-host: {db_host}",
        }


class ManifestTemplate:
    """A manifest file containing placeholder tokens."""

    def __init__(self, path: Path) -> None:
        """Initialize ManifestTemplate."""
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._path.stem

    async def render(self, values: ManifestValues, backup: bool = True) -> int:
        """Render the values into the manifest file in place.

        The rendered content is checked for leftover placeholders and must
        parse as yaml before it is written.
        """
        replacements = values.replacements()
        async with aiofiles.open(self._path) as fd:
            content = await fd.read()
        result, count = replace_tokens(content, replacements)
        if tokens := unresolved_tokens(result, MANIFEST_TOKENS):
            raise UnresolvedPlaceholderError(str(self._path), tokens)
        try:
            list(yaml.safe_load_all(result))
        except yaml.YAMLError as err:
            raise InputException(
                f"Rendered manifest {self._path} is not valid yaml: {err}"
            ) from err
        if count == 0:
            return 0
        if backup:
            await _write(backup_path(self._path), content)
        await _write(self._path, result)
        _LOGGER.debug("Rendered %d placeholders in %s", count, self._path)
        return count


class ManifestSet:
    """The named manifests rendered for a deployment."""

    def __init__(self, templates: list[ManifestTemplate]) -> None:
        """Initialize ManifestSet."""
        self._templates = templates

    @classmethod
    def from_paths(cls, paths: Iterable[Path]) -> "ManifestSet":
        return cls([ManifestTemplate(path) for path in paths])

    @property
    def templates(self) -> list[ManifestTemplate]:
        return list(self._templates)

    @property
    def paths(self) -> list[Path]:
        return [template.path for template in self._templates]

    async def render(self, values: ManifestValues, backup: bool = True) -> dict[str, int]:
        """Render every manifest, returning the replacement count by name."""
        missing = [str(t.path) for t in self._templates if not t.path.exists()]
        if missing:
            raise InputException(f"Manifest files do not exist: {', '.join(missing)}")
        return {
            template.name: await template.render(values, backup=backup)
            for template in self._templates
        }
