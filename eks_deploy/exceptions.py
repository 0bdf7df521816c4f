"""Exceptions related to eks-deploy."""

__all__ = [
    "DeployException",
    "InputException",
    "CommandException",
    "MissingPrerequisiteError",
    "ConfigurationSuspended",
    "StaleConfigurationError",
    "ProvisionException",
    "MissingOutputError",
    "TokenCollisionError",
    "UnresolvedPlaceholderError",
    "PublishException",
    "KubectlException",
    "HelmException",
    "RolloutTimeoutError",
    "VerificationError",
    "PipelineFailedError",
]


class DeployException(Exception):
    """Generic base exception used for this library."""


class InputException(DeployException):
    """Raised when the input files or values are not formatted as expected."""


class CommandException(DeployException):
    """Raised when there is a failure running a subcommand."""


class MissingPrerequisiteError(DeployException):
    """Raised when a required command line tool is not installed."""

    def __init__(self, tool: str) -> None:
        super().__init__(f"{tool} is required but not installed")
        self.tool = tool


class ConfigurationSuspended(DeployException):
    """Raised when the operator has not confirmed a newly created config file."""


class StaleConfigurationError(InputException):
    """Raised when the variables file is missing values or still has template values."""

    def __init__(self, path: str, keys: list[str]) -> None:
        super().__init__(
            f"Configuration file {path} must set values for: {', '.join(keys)}"
        )
        self.path = path
        self.keys = keys


class ProvisionException(CommandException):
    """Raised when there is a failure running a terraform command."""


class MissingOutputError(DeployException):
    """Raised when a named output is not present in the provisioner state."""

    def __init__(self, names: list[str]) -> None:
        super().__init__(
            f"Missing terraform output(s): {', '.join(names)}; "
            "has 'terraform apply' completed?"
        )
        self.names = names


class TokenCollisionError(InputException):
    """Raised when one placeholder token contains another."""


class UnresolvedPlaceholderError(InputException):
    """Raised when a rendered manifest still contains placeholder tokens."""

    def __init__(self, path: str, tokens: list[str]) -> None:
        super().__init__(
            f"Manifest {path} has unresolved placeholders: {', '.join(tokens)}"
        )
        self.path = path
        self.tokens = tokens


class PublishException(CommandException):
    """Raised when there is a failure authenticating, building or pushing an image."""


class KubectlException(CommandException):
    """Raised when there is a failure running a kubectl command."""


class HelmException(CommandException):
    """Raised when there is a failure running a helm command."""


class RolloutTimeoutError(DeployException):
    """Raised when a workload does not become ready before the timeout."""

    def __init__(
        self,
        name: str,
        desired: int,
        ready: int,
        timeout: float,
        updated: int = 0,
        available: int = 0,
        observed: bool = True,
    ) -> None:
        message = (
            f"Rollout of {name} timed out after {timeout:.0f}s "
            f"({ready}/{desired} replicas ready, {updated}/{desired} updated, "
            f"{available}/{desired} available)"
        )
        if not observed:
            message += "; the latest generation was never observed"
        super().__init__(message)
        self.name = name
        self.desired = desired
        self.ready = ready
        self.updated = updated
        self.available = available
        self.observed = observed
        self.timeout = timeout


class VerificationError(DeployException):
    """Raised by the smoke test command when any call failed."""


class PipelineFailedError(DeployException):
    """Raised when a pipeline stage failed."""

    def __init__(self, stage: str, message: str | None) -> None:
        super().__init__(f"stage '{stage}' failed: {message or 'Unknown error'}")
        self.stage = stage
        self.message = message
