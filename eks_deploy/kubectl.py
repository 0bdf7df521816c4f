"""Library for issuing `kubectl` commands against the cluster."""

import json
import logging
from pathlib import Path
from typing import Any

from . import command
from .command import Command
from .exceptions import KubectlException
from .rollout import RolloutStatus

__all__ = [
    "Kubectl",
]

_LOGGER = logging.getLogger(__name__)

KUBECTL_BIN = "kubectl"


class Kubectl:
    """Wrapper around kubectl for a single namespace."""

    def __init__(self, namespace: str) -> None:
        """Initialize Kubectl."""
        self._namespace = namespace

    def _command(
        self,
        args: list[str],
        timeout: float | None = None,
        sensitive: list[str] | None = None,
    ) -> Command:
        return Command(
            [KUBECTL_BIN] + args,
            exc=KubectlException,
            timeout=timeout,
            sensitive=sensitive,
        )

    async def wait_for_nodes(self, timeout: float) -> None:
        """Block until all nodes report ready."""
        await command.run(
            self._command(
                [
                    "wait",
                    "--for=condition=Ready",
                    "nodes",
                    "--all",
                    f"--timeout={int(timeout)}s",
                ],
                timeout=timeout + 30,
            )
        )

    async def apply_secret(self, name: str, literals: dict[str, str]) -> None:
        """Create or replace a generic secret from literal values.

        The secret is rendered client side and applied so that running again
        replaces the existing secret instead of failing.
        """
        args = ["create", "secret", "generic", name, "-n", self._namespace]
        args.extend(f"--from-literal={key}={value}" for key, value in literals.items())
        args.extend(["--dry-run=client", "-o", "yaml"])
        sensitive = list(literals.values())
        await command.run_piped(
            [
                self._command(args, sensitive=sensitive),
                self._command(["apply", "-f", "-"], sensitive=sensitive),
            ]
        )

    async def ensure_namespace(self) -> None:
        """Create the namespace if it does not exist."""
        await command.run_piped(
            [
                self._command(
                    ["create", "namespace", self._namespace, "--dry-run=client", "-o", "yaml"]
                ),
                self._command(["apply", "-f", "-"]),
            ]
        )

    async def apply(self, paths: list[Path]) -> None:
        """Apply manifest files."""
        args = ["apply", "-n", self._namespace]
        for path in paths:
            args.extend(["-f", str(path)])
        await command.run(self._command(args))

    async def get(self, kind: str, name: str) -> dict[str, Any]:
        """Return an object in the namespace."""
        out = await command.run(
            self._command(["get", kind, name, "-n", self._namespace, "-o", "json"])
        )
        try:
            return json.loads(out)
        except json.JSONDecodeError as err:
            raise KubectlException(f"Unable to parse {kind}/{name}: {err}") from err

    async def rollout_status(self, deployment: str) -> RolloutStatus:
        """Return the replica counts of a deployment."""
        return RolloutStatus.from_deployment(await self.get("deployment", deployment))

    async def ingress_hostname(self, ingress: str) -> str | None:
        """Return the load balancer hostname of an ingress once assigned."""
        doc = await self.get("ingress", ingress)
        entries = doc.get("status", {}).get("loadBalancer", {}).get("ingress") or []
        for entry in entries:
            if hostname := entry.get("hostname") or entry.get("ip"):
                return str(hostname)
        return None
