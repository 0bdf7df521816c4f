"""Polling helpers that block until a workload reaches its desired state."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
from typing import Any, TypeVar

from .exceptions import DeployException, RolloutTimeoutError

__all__ = [
    "RolloutStatus",
    "poll",
    "wait_for_rollout",
]

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")


@dataclass(frozen=True)
class RolloutStatus:
    """Replica counts and generations of a deployment."""

    desired: int
    ready: int
    updated: int = 0
    """Replicas running the current pod template."""

    available: int = 0
    generation: int = 0
    observed_generation: int = 0

    @property
    def observed(self) -> bool:
        """True once the controller has seen the latest spec."""
        return self.observed_generation >= self.generation

    @property
    def complete(self) -> bool:
        return (
            self.observed
            and self.updated >= self.desired
            and self.ready >= self.desired
            and self.available >= self.desired
        )

    @classmethod
    def from_deployment(cls, doc: dict[str, Any]) -> "RolloutStatus":
        """Parse the replica counts from a Deployment object."""
        metadata = doc.get("metadata") or {}
        spec = doc.get("spec") or {}
        status = doc.get("status") or {}
        return cls(
            desired=int(spec.get("replicas", 1)),
            ready=int(status.get("readyReplicas") or 0),
            updated=int(status.get("updatedReplicas") or 0),
            available=int(status.get("availableReplicas") or 0),
            generation=int(metadata.get("generation") or 0),
            observed_generation=int(status.get("observedGeneration") or 0),
        )


async def poll(
    fetch: Callable[[], Awaitable[_T]],
    done: Callable[[_T], bool],
    timeout: float,
    interval: float,
) -> tuple[_T, bool]:
    """Call `fetch` until `done` accepts its result or the timeout elapses.

    Each attempt is a fresh call; attempts never overlap. Returns the last
    result and whether it was accepted.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        result = await fetch()
        if done(result):
            return result, True
        remaining = deadline - loop.time()
        if remaining <= 0:
            return result, False
        await asyncio.sleep(min(interval, remaining))


async def wait_for_rollout(
    name: str,
    fetch: Callable[[], Awaitable[RolloutStatus]],
    timeout: float,
    interval: float,
) -> RolloutStatus:
    """Block until every desired replica runs the latest spec and is ready.

    The deployment must have observed its latest generation and have all
    desired replicas updated, ready and available. Replicas of the previous
    release being ready is not enough. Raises `RolloutTimeoutError` if that
    is not reached in time. The previous release is left running; there is
    no automatic rollback.
    """
    if timeout < 0 or interval <= 0:
        raise DeployException("Rollout timeout and interval must be positive")
    status, ok = await poll(fetch, lambda s: s.complete, timeout, interval)
    if not ok:
        raise RolloutTimeoutError(
            name,
            status.desired,
            status.ready,
            timeout,
            updated=status.updated,
            available=status.available,
            observed=status.observed,
        )
    _LOGGER.debug("Rollout of %s complete (%d/%d)", name, status.ready, status.desired)
    return status
