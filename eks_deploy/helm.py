"""Library for installing the application helm chart.

The chart is installed with `helm upgrade --install` so the same call both
creates and upgrades the release. Values are passed as `--set` overrides
where dots in a key (e.g. annotation names) are escaped:

```python
helm = Helm(namespace="webapp")
await helm.upgrade_install(
    "webapp-3tier",
    Path("helm/webapp-3tier"),
    {
        "image.repository": repo,
        ("serviceAccount", "annotations", "eks.amazonaws.com/role-arn"): role,
    },
)
```
"""

from dataclasses import dataclass
import logging
from pathlib import Path

from . import command
from .command import Command
from .exceptions import HelmException

__all__ = [
    "Helm",
    "Options",
    "set_key",
]

_LOGGER = logging.getLogger(__name__)

HELM_BIN = "helm"


def set_key(*parts: str) -> str:
    """Join key parts into a `--set` path, escaping dots inside each part."""
    return ".".join(part.replace(".", "\\.") for part in parts)


@dataclass
class Options:
    """Options to use when installing a Helm chart."""

    create_namespace: bool = True
    """Create the release namespace if missing."""

    wait: bool = True
    """Wait for resources to be ready before returning."""

    timeout: float = 300.0
    """Value of the helm --timeout flag in seconds."""

    @property
    def install_args(self) -> list[str]:
        args = []
        if self.create_namespace:
            args.append("--create-namespace")
        if self.wait:
            args.append("--wait")
        args.append(f"--timeout={int(self.timeout)}s")
        return args


class Helm:
    """Manages a helm release in a namespace."""

    def __init__(self, namespace: str, options: Options | None = None) -> None:
        """Initialize Helm."""
        self._namespace = namespace
        self._options = options or Options()

    async def upgrade_install(
        self,
        release: str,
        chart: Path,
        values: dict[str | tuple[str, ...], str],
    ) -> None:
        """Install or upgrade the release with the values overlay."""
        args = [
            HELM_BIN,
            "upgrade",
            "--install",
            release,
            str(chart),
            "--namespace",
            self._namespace,
        ]
        args.extend(self._options.install_args)
        for key, value in values.items():
            path = set_key(*key) if isinstance(key, tuple) else key
            args.extend(["--set", f"{path}={value}"])
        await command.run(
            Command(args, exc=HelmException, timeout=self._options.timeout + 60)
        )
